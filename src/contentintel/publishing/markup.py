"""Placeholder markup for product and comparison nodes in composed content."""

from __future__ import annotations

from html import escape
from typing import Mapping

from ..domain.models import ComparisonTable, ProductCandidate


def product_link(asin: str | None, tag: str = "") -> str:
    if not asin:
        return ""
    url = f"https://www.amazon.com/dp/{asin}"
    return f"{url}?tag={tag}" if tag else url


def render_product_box(product: ProductCandidate, tag: str = "") -> str:
    href = escape(product_link(product.asin, tag), quote=True)
    return (
        f'<div class="ci-product" data-asin="{escape(product.asin or "", quote=True)}" '
        f'data-mode="{product.deployment_mode.value}">'
        f'<a href="{href}" rel="nofollow sponsored">{escape(product.title)}</a>'
        "</div>"
    )


def _spec_value(product: ProductCandidate, spec: str) -> str:
    key = spec.lower()
    if key == "price":
        return product.price
    if key == "rating":
        return f"{product.rating:.1f}" if product.rating else ""
    if key == "reviews":
        return str(product.review_count) if product.review_count else ""
    if key == "prime":
        return "Yes" if product.prime else "No"
    return product.specs.get(spec, "")


def render_comparison_table(table: ComparisonTable, products: Mapping[str, ProductCandidate], tag: str = "") -> str:
    rows = [p for p in (products.get(pid) for pid in table.product_ids) if p is not None]
    if not rows:
        return ""
    head = "".join(f"<th>{escape(s)}</th>" for s in ("Product",) + tuple(table.specs))
    body = []
    for p in rows:
        cells = [f'<td><a href="{escape(product_link(p.asin, tag), quote=True)}">{escape(p.title)}</a></td>']
        cells.extend(f"<td>{escape(_spec_value(p, s))}</td>" for s in table.specs)
        body.append(f"<tr>{''.join(cells)}</tr>")
    return f'<table class="ci-comparison"><thead><tr>{head}</tr></thead><tbody>{"".join(body)}</tbody></table>'

"""Article body extraction (noise removal + main-content selection)."""

from __future__ import annotations

from bs4 import BeautifulSoup

DEFAULT_NOISE_SELECTORS = [
    "script",
    "style",
    "noscript",
    "header",
    "footer",
    "nav",
    ".sidebar",
    ".widget-area",
    ".comments-area",
    ".sharedaddy",
    ".advertisement",
]


class ContentFilter:
    """Rules:
    - Apply noise filters before content extraction
    - Prefer the CMS article body over the whole document
    """

    def __init__(self, noise_selectors: list[str] | None = None, min_main_chars: int = 200):
        self._noise_selectors = noise_selectors or list(DEFAULT_NOISE_SELECTORS)
        self._min_main_chars = min_main_chars
        self._content_selectors = [
            ".entry-content",
            ".post-content",
            ".article-content",
            "article",
            "main",
            "#content",
            ".content",
        ]

    def extract_main_html(self, html: str) -> str:
        soup = BeautifulSoup(html or "", "lxml")
        for selector in self._noise_selectors:
            for el in soup.select(selector):
                el.decompose()

        main = self._find_main_content(soup)
        if main is not None:
            return main.decode_contents().strip()
        body = soup.body
        return body.decode_contents().strip() if body is not None else str(soup)

    def extract_title(self, html: str) -> str:
        soup = BeautifulSoup(html or "", "lxml")
        h1 = soup.select_one("h1")
        if h1 is not None and h1.get_text(strip=True):
            return h1.get_text(" ", strip=True)
        return soup.title.get_text(strip=True) if soup.title else ""

    def _find_main_content(self, soup: BeautifulSoup):
        for selector in self._content_selectors:
            candidate = soup.select_one(selector)
            if candidate is None:
                continue
            if len(candidate.get_text(strip=True)) >= self._min_main_chars:
                return candidate
        return None

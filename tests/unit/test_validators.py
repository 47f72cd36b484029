from __future__ import annotations

from contentintel.utils.validators import extract_asin, is_valid_http_url, validate_manual_url


def test_validate_manual_url_adds_scheme_and_normalizes() -> None:
    v = validate_manual_url("  example.com/guides/best-kettles/#top ")
    assert v.is_valid
    assert v.normalized_url == "https://example.com/guides/best-kettles"


def test_validate_manual_url_rejects_bad_input() -> None:
    assert not validate_manual_url("").is_valid
    assert not validate_manual_url("ftp://example.com/file").is_valid
    assert not validate_manual_url("localhost").is_valid
    assert validate_manual_url("not a url").error


def test_is_valid_http_url() -> None:
    assert is_valid_http_url("https://example.com")
    assert not is_valid_http_url("example.com")
    assert not is_valid_http_url("mailto:a@b.com")


def test_extract_asin_from_bare_id_and_urls() -> None:
    assert extract_asin("b08n5wrwnw") == "B08N5WRWNW"
    assert extract_asin("https://www.amazon.com/Echo-Dot/dp/B08N5WRWNW/ref=sr_1_1") == "B08N5WRWNW"
    assert extract_asin("https://www.amazon.co.uk/gp/product/B07FZ8S74R?th=1") == "B07FZ8S74R"
    assert extract_asin("https://example.com/?ASIN=B000000001") == "B000000001"
    assert extract_asin("not-an-asin") is None
    assert extract_asin("") is None

from __future__ import annotations

from contentintel.crawling.content_filter import ContentFilter


def test_content_filter_removes_noise_and_keeps_article_body() -> None:
    html = f"""
    <html>
      <head><title>Site | Best Kettles</title><script>track()</script></head>
      <body>
        <nav>Nav</nav>
        <div class="entry-content">
          <h1>Best Kettles</h1>
          <p>{"word " * 60}</p>
          <div class="sharedaddy">Share this</div>
        </div>
        <footer>Footer</footer>
      </body>
    </html>
    """
    f = ContentFilter()
    out = f.extract_main_html(html)
    assert "Nav" not in out
    assert "Footer" not in out
    assert "Share this" not in out
    assert "track()" not in out
    assert out.startswith("<h1>Best Kettles</h1>")
    assert f.extract_title(html) == "Best Kettles"


def test_short_main_content_falls_back_to_body() -> None:
    html = "<html><body><article><p>Too short.</p></article><p>Loose paragraph.</p></body></html>"
    out = ContentFilter().extract_main_html(html)
    assert "Too short." in out
    assert "Loose paragraph." in out


def test_title_falls_back_to_document_title() -> None:
    assert ContentFilter().extract_title("<html><head><title>Hello</title></head><body></body></html>") == "Hello"

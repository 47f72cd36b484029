from __future__ import annotations

from contentintel.utils.quality import (
    significant_words,
    split_into_blocks,
    strip_tags,
    visible_length,
)


def test_split_into_blocks_wraps_loose_text() -> None:
    html = "Intro line <em>here</em>\n<h2>Title</h2>\n<p>Body.</p>\n<p>   </p><hr/>Tail"
    assert split_into_blocks(html) == [
        "<p>Intro line <em>here</em></p>",
        "<h2>Title</h2>",
        "<p>Body.</p>",
        "<hr/>",
        "<p>Tail</p>",
    ]


def test_text_helpers() -> None:
    assert strip_tags("<p>Hello <b>big</b>\n world</p>") == "Hello big world"
    assert visible_length("<p> abc </p>") == 3
    assert significant_words("The Sony WH-1000XM5 is great") == ["sony", "wh-1000xm5", "great"]

from __future__ import annotations

from contentintel.services.structural_extractor import (
    SOURCE_BOLD,
    SOURCE_HEADING,
    SOURCE_LIST_ITEM,
    SOURCE_MARKETPLACE_LINK,
    extract_structural_candidates,
    match_brand_model,
)

ARTICLE = (
    "<h2>1. Sony WH-1000XM5</h2>\n"
    '<p>I tested <a href="https://www.amazon.com/dp/B09XS7JWHH">the Sony headphones</a> for a month.</p>\n'
    "<ul><li>Bose QuietComfort 45 - great for travel</li><li>Check the price today</li></ul>\n"
    "<p><strong>Best Dyson V15 Detect</strong></p>"
)


def test_match_brand_model() -> None:
    assert match_brand_model("1. Sony WH-1000XM5") == "Sony WH-1000XM5"
    assert match_brand_model("Best Dyson V15 Detect") == "Dyson V15 Detect"
    assert match_brand_model("Top 10 Picks") is None
    assert match_brand_model("how we picked") is None


def test_extracts_each_source_with_block_index() -> None:
    found = extract_structural_candidates(ARTICLE)
    by_source = {c.source_type: c for c in found}

    assert by_source[SOURCE_HEADING].name == "Sony WH-1000XM5"
    assert by_source[SOURCE_HEADING].paragraph_index == 0
    assert by_source[SOURCE_MARKETPLACE_LINK].asin == "B09XS7JWHH"
    assert by_source[SOURCE_MARKETPLACE_LINK].paragraph_index == 1
    assert by_source[SOURCE_LIST_ITEM].name == "Bose QuietComfort 45"
    assert by_source[SOURCE_LIST_ITEM].paragraph_index == 2
    assert by_source[SOURCE_BOLD].name == "Dyson V15 Detect"
    assert by_source[SOURCE_BOLD].paragraph_index == 3
    assert len(found) == 4


def test_duplicate_mentions_keep_highest_confidence_in_first_position() -> None:
    html = "<p><strong>Sony WH-1000XM5</strong> is light.</p><h3>Sony WH-1000XM5</h3>"
    found = extract_structural_candidates(html)

    assert len(found) == 1
    assert found[0].source_type == SOURCE_HEADING
    assert found[0].confidence == 0.5
    assert found[0].paragraph_index == 1


def test_plain_prose_has_no_candidates() -> None:
    assert extract_structural_candidates("<p>we brewed coffee every morning for a week.</p>") == []
    assert extract_structural_candidates("") == []

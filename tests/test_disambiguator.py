"""Tests for suggestion disambiguation.

Tests cover:
- Target containment and exclusion tokens
- Lexical variants of the typed location
- Clicking the chosen suggestion on a page
"""

import pytest
from playwright.async_api import Error as PlaywrightError

from ecomscout.core.exceptions import SuggestionNotFound
from ecomscout.scrapers.disambiguator import (
    SuggestionDisambiguator,
    choose,
    is_match,
    location_variants,
    split_camel_case,
)
from ecomscout.scrapers.selector_engine import css

from conftest import FakeElement, FakePage


class TestChoose:
    """Tests for the pure choose() rule."""

    def test_excluded_landmark_skipped(self):
        texts = ["RT Nagar Railway Station", "RT Nagar, Bengaluru, Karnataka"]
        assert choose(texts, "RT Nagar") == 1

    def test_first_passing_candidate_wins(self):
        texts = ["Koramangala", "RT Nagar Main Road", "RT Nagar, Bengaluru"]
        assert choose(texts, "rt nagar") == 1

    def test_whitespace_and_case_folded(self):
        assert choose(["  RT   NAGAR  Post Office "], "rt nagar") == 0

    def test_no_match_returns_none(self):
        assert choose(["Hebbal", "RT Nagar Bus Stand"], "RT Nagar") is None

    def test_ui_noise_rows_excluded(self):
        texts = ["Search results for RT Nagar", "Enter RT Nagar manually", "RT Nagar, Bengaluru"]
        assert choose(texts, "RT Nagar") == 2

    def test_variant_used_when_target_matches_nothing(self):
        """'RT Nagar' falls back to 'RTNagar'."""
        assert choose(["Hebbal", "RTNagar Layout"], "RT Nagar") == 1

    def test_camel_case_variant(self):
        """'rtNagar' falls back to 'rt Nagar'."""
        assert choose(["RT Nagar, Bengaluru"], "rtNagar") == 0

    def test_target_phase_beats_variant_phase(self):
        texts = ["RTNagar Layout", "RT Nagar, Bengaluru"]
        assert choose(texts, "RT Nagar") == 1

    def test_custom_exclusions(self):
        assert choose(["RT Nagar Hospital", "RT Nagar"], "RT Nagar", exclusions=("hospital",)) == 1


class TestIsMatch:
    """Tests for is_match token handling."""

    def test_tokens_match_whole_words(self):
        assert is_match("Forum Center, Koramangala", "Koramangala")

    def test_multi_word_token(self):
        assert not is_match("Majestic Bus Stand", "Majestic")

    def test_token_inside_target_is_ignored(self):
        assert is_match("Railway Colony, Mysuru", "Railway Colony")
        assert not is_match("Railway Colony Metro Station", "Railway Colony")

    def test_empty_target_never_matches(self):
        assert not is_match("anything", "   ")


class TestLocationVariants:
    """Tests for lexical variant generation."""

    def test_split_camel_case(self):
        assert split_camel_case("rtNagar") == "rt Nagar"
        assert split_camel_case("RTNagar") == "RT Nagar"

    def test_spaced_target(self):
        assert location_variants("RT Nagar") == ["RTNagar"]

    def test_camel_target(self):
        assert location_variants("rtNagar") == ["rt Nagar"]

    def test_upper_camel_target(self):
        assert location_variants("RTNagar") == ["RT Nagar"]

    def test_single_lowercase_word_has_no_variants(self):
        assert location_variants("hebbal") == []


class TestSuggestionDisambiguator:
    """Tests for SuggestionDisambiguator.select against a page."""

    async def test_clicks_matching_suggestion(self, fast_timings):
        station = FakeElement("RT Nagar Railway Station")
        locality = FakeElement("RT Nagar, Bengaluru")
        page = FakePage({"li": [station, locality]})
        disambiguator = SuggestionDisambiguator("dmart", timings=fast_timings)

        chosen = await disambiguator.select(page, (css("li"),), "RT Nagar")

        assert chosen.text == "RT Nagar, Bengaluru"
        assert station.clicks == 0
        assert locality.clicks == 1

    async def test_descriptor_order_before_dom_order(self, fast_timings):
        page = FakePage(
            {
                "[role=option]": [FakeElement("RT Nagar Post Office")],
                "li": [FakeElement("RT Nagar, Bengaluru")],
            }
        )
        disambiguator = SuggestionDisambiguator("dmart", timings=fast_timings)

        chosen = await disambiguator.select(page, (css("[role=option]"), css("li")), "RT Nagar")

        assert chosen.text == "RT Nagar Post Office"

    async def test_hidden_rows_ignored(self, fast_timings):
        page = FakePage({"li": [FakeElement("RT Nagar"), FakeElement("RT Nagar Layout", visible=False)]})
        disambiguator = SuggestionDisambiguator("dmart", timings=fast_timings)

        candidates = await disambiguator.collect(page, (css("li"),))

        assert [c.text for c in candidates] == ["RT Nagar"]

    async def test_falls_back_to_next_passing_when_click_fails(self, fast_timings):
        stale = FakeElement("RT Nagar, Bengaluru", click_error=PlaywrightError("detached"))
        fresh = FakeElement("RT Nagar Post Office")
        page = FakePage({"li": [stale, fresh]})
        disambiguator = SuggestionDisambiguator("jiomart", timings=fast_timings)

        chosen = await disambiguator.select(page, (css("li"),), "RT Nagar")

        assert chosen is not None
        assert chosen.text == "RT Nagar Post Office"
        assert stale.clicks == 1

    async def test_no_suggestions_visible(self, fast_timings):
        disambiguator = SuggestionDisambiguator("zepto", timings=fast_timings)

        with pytest.raises(SuggestionNotFound, match="no suggestions visible"):
            await disambiguator.select(FakePage(), (css("li"),), "RT Nagar")

    async def test_nothing_passes(self, fast_timings):
        page = FakePage({"li": [FakeElement("Hebbal"), FakeElement("RT Nagar Railway Station")]})
        disambiguator = SuggestionDisambiguator("zepto", timings=fast_timings)

        with pytest.raises(SuggestionNotFound) as exc_info:
            await disambiguator.select(page, (css("li"),), "RT Nagar")

        assert exc_info.value.location == "RT Nagar"
        assert exc_info.value.tried_variants == ["RT Nagar", "RTNagar"]
        assert exc_info.value.kind == "SuggestionNotFound"

    async def test_every_passing_click_fails(self, fast_timings):
        page = FakePage({"li": [FakeElement("RT Nagar", click_error=PlaywrightError("detached"))]})
        disambiguator = SuggestionDisambiguator("zepto", timings=fast_timings)

        with pytest.raises(SuggestionNotFound, match="clickable"):
            await disambiguator.select(page, (css("li"),), "RT Nagar")

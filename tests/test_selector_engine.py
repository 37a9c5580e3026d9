"""Tests for the cascading selector resolution engine."""

import pytest
from playwright.async_api import Error as PlaywrightError

from ecomscout.core.exceptions import LocatorNotFound
from ecomscout.scrapers.selector_engine import (
    LocatorDescriptor,
    LocatorKind,
    SelectorResolver,
    click,
    fill,
    css,
    placeholder,
    role,
    text,
    type_slowly,
    xpath,
)

from conftest import FakeElement, FakePage


class TestLocatorDescriptor:
    """Tests for rendering descriptors to Playwright selectors."""

    def test_css_passthrough(self):
        assert css("div.location").selector == "div.location"

    def test_xpath_prefixed_once(self):
        assert xpath("//button").selector == "xpath=//button"
        assert xpath("xpath=//button").selector == "xpath=//button"

    def test_text_and_role(self):
        assert text("Select Location").selector == "text=Select Location"
        assert role('button[name="Confirm"]').selector == 'role=button[name="Confirm"]'

    def test_placeholder_is_case_insensitive_attribute_match(self):
        assert placeholder("area").selector == '[placeholder*="area" i]'

    def test_descriptor_is_immutable(self):
        descriptor = LocatorDescriptor(LocatorKind.CSS, "li", rank=1, note="items")
        with pytest.raises(AttributeError):
            descriptor.expression = "ul"


class TestSelectorResolver:
    """Tests for SelectorResolver.resolve ordering and failure handling."""

    async def test_first_unmatchable_second_wins(self, fast_timings):
        """[A (never appears), B, C] resolves to B."""
        page = FakePage({"#b": [FakeElement()], "#c": [FakeElement()]})
        resolver = SelectorResolver("dmart", fast_timings)

        resolution = await resolver.resolve(
            page, (css("#a"), css("#b"), css("#c")), click(), step="open_location_menu"
        )

        assert resolution.index == 1
        assert resolution.descriptor.expression == "#b"
        assert page.clicked == [("#b", 0)]

    async def test_earliest_visible_candidate_wins(self, fast_timings):
        page = FakePage({"#a": [FakeElement()], "#b": [FakeElement()]})
        resolver = SelectorResolver("dmart", fast_timings)

        resolution = await resolver.resolve(page, (css("#a"), css("#b")), click(), step="confirm")

        assert resolution.index == 0
        assert page.clicked == [("#a", 0)]

    async def test_hidden_candidate_skipped(self, fast_timings):
        page = FakePage({"#a": [FakeElement(visible=False)], "#b": [FakeElement()]})
        resolver = SelectorResolver("dmart", fast_timings)

        resolution = await resolver.resolve(page, (css("#a"), css("#b")), click(), step="confirm")

        assert resolution.index == 1

    async def test_action_failure_moves_on_without_repeating(self, fast_timings):
        """A visible candidate whose click fails counts as failed."""
        broken = FakeElement(click_error=PlaywrightError("Element is not attached to the DOM"))
        working = FakeElement()
        page = FakePage({"#a": [broken], "#b": [working]})
        resolver = SelectorResolver("dmart", fast_timings)

        resolution = await resolver.resolve(page, (css("#a"), css("#b")), click(), step="confirm")

        assert resolution.index == 1
        assert broken.clicks == 1
        assert working.clicks == 1

    async def test_hanging_action_is_bounded(self, fast_timings):
        fast = fast_timings.model_copy(update={"ACTION_TIMEOUT_MS": 50})
        page = FakePage({"#a": [FakeElement(hang_on_click=True)], "#b": [FakeElement()]})
        resolver = SelectorResolver("dmart", fast)

        resolution = await resolver.resolve(page, (css("#a"), css("#b")), click(), step="confirm")

        assert resolution.index == 1

    async def test_visibility_only(self, fast_timings):
        page = FakePage({"#b": [FakeElement()]})
        resolver = SelectorResolver("dmart", fast_timings)

        resolution = await resolver.resolve(page, (css("#a"), css("#b")), None, step="visibility_check")

        assert resolution.index == 1
        assert page.clicked == []

    async def test_all_candidates_fail(self, fast_timings):
        page = FakePage()
        resolver = SelectorResolver("jiomart", fast_timings)

        with pytest.raises(LocatorNotFound) as exc_info:
            await resolver.resolve(page, (css("#a"), css("#b"), css("#c")), click(), step="open_location_menu")

        assert exc_info.value.step == "open_location_menu"
        assert exc_info.value.tried == 3
        assert exc_info.value.website == "jiomart"
        assert exc_info.value.kind == "LocatorNotFound"

    async def test_type_slowly_clears_then_types(self, fast_timings):
        field = FakeElement(value="old text")
        page = FakePage({"input": [field]})
        resolver = SelectorResolver("zepto", fast_timings)

        await resolver.resolve(page, (css("input"),), type_slowly("RT Nagar", 0), step="type_location")

        assert field.value == "RT Nagar"
        assert page.typed == ["RT Nagar"]

    async def test_fill_replaces_value(self, fast_timings):
        field = FakeElement(value="Hebbal")
        page = FakePage({"#pincode": [FakeElement(visible=False)], "input[name=pincode]": [field]})
        resolver = SelectorResolver("jiomart", fast_timings)

        resolution = await resolver.resolve(
            page, (css("#pincode"), css("input[name=pincode]")), fill("560032"), step="type_location"
        )

        assert resolution.index == 1
        assert field.value == "560032"
        assert page.typed == []

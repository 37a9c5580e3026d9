"""Tests for the submit/poll wire schemas."""

import pytest
from pydantic import ValidationError

from ecomscout.core.exceptions import LocatorNotFound
from ecomscout.schemas import AggregateResult, LocationSelectionRequest, WebsiteOutcome
from ecomscout.scrapers.records import ExtractionResult, ProductRecord


class TestLocationSelectionRequest:
    def test_accepts_camel_case(self):
        request = LocationSelectionRequest.model_validate({"productQuery": " toor   dal ", "location": "RT Nagar"})

        assert request.product_query == "toor dal"
        assert request.location == "RT Nagar"

    @pytest.mark.parametrize("field", ["product_query", "location"])
    def test_blank_rejected(self, field):
        values = {"product_query": "milk", "location": "RT Nagar", field: "  "}
        with pytest.raises(ValidationError):
            LocationSelectionRequest(**values)

    def test_frozen(self):
        request = LocationSelectionRequest(product_query="milk", location="RT Nagar")
        with pytest.raises(ValidationError):
            request.location = "Hebbal"


class TestOutcomes:
    def test_from_error_uses_adapter_kind(self):
        outcome = WebsiteOutcome.from_error("zepto", LocatorNotFound("zepto", "type_location", tried=3), 1.23456, 1)

        assert outcome.success is False
        assert outcome.error_kind == "LocatorNotFound"
        assert "type_location" in outcome.error
        assert outcome.duration_seconds == 1.235

    def test_aggregate_counts_and_wire(self):
        result = ExtractionResult(
            website="dmart",
            location="RT Nagar",
            product="milk",
            products=[ProductRecord(name="Amul Gold Milk", price=34, mrp=36)],
        )
        outcomes = [
            WebsiteOutcome.from_result(result, 2.0, 1),
            WebsiteOutcome.from_error("jiomart", RuntimeError("boom"), 0.5, 1),
        ]

        aggregate = AggregateResult.from_outcomes(outcomes)
        wire = aggregate.to_wire()

        assert (aggregate.total_websites, aggregate.successful, aggregate.failed) == (2, 1, 1)
        assert wire["totalProducts"] == 1
        assert wire["websites"][0]["data"]["products"][0]["mrp"] == 36
        assert wire["websites"][1]["errorKind"] == "RuntimeError"
        assert aggregate.outcome_for("bigbasket") is None

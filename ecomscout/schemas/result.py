"""Pydantic schemas for per-website outcomes and the job aggregate."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, InstanceOf, field_serializer
from pydantic.alias_generators import to_camel

from ecomscout.core.exceptions import AdapterError
from ecomscout.scrapers.records import ExtractionResult


class WebsiteOutcome(BaseModel):
    """How one storefront fared within a job.

    ``empty`` marks a run that completed every step but found no products;
    it still counts as a success.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    website: str
    success: bool
    error: Optional[str] = None
    error_kind: Optional[str] = None
    product_count: int = 0
    data: Optional[InstanceOf[ExtractionResult]] = None
    empty: bool = False
    duration_seconds: float = 0.0
    attempts: int = 1

    @field_serializer("data")
    def serialize_data(self, data: Optional[ExtractionResult]) -> Optional[Dict[str, Any]]:
        return data.to_dict() if data is not None else None

    @classmethod
    def from_result(cls, result: ExtractionResult, duration_seconds: float, attempts: int) -> "WebsiteOutcome":
        return cls(
            website=result.website,
            success=True,
            product_count=len(result.products),
            data=result,
            empty=result.is_empty,
            duration_seconds=round(duration_seconds, 3),
            attempts=attempts,
        )

    @classmethod
    def from_error(
        cls, website: str, error: Exception, duration_seconds: float, attempts: int
    ) -> "WebsiteOutcome":
        kind = error.kind if isinstance(error, AdapterError) else type(error).__name__
        return cls(
            website=website,
            success=False,
            error=str(error),
            error_kind=kind,
            duration_seconds=round(duration_seconds, 3),
            attempts=attempts,
        )


class AggregateResult(BaseModel):
    """All website outcomes of one job plus summary counts."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    websites: List[WebsiteOutcome] = Field(default_factory=list)
    total_websites: int = 0
    successful: int = 0
    failed: int = 0
    total_products: int = 0

    @classmethod
    def from_outcomes(cls, outcomes: List[WebsiteOutcome]) -> "AggregateResult":
        successful = sum(1 for o in outcomes if o.success)
        return cls(
            websites=list(outcomes),
            total_websites=len(outcomes),
            successful=successful,
            failed=len(outcomes) - successful,
            total_products=sum(o.product_count for o in outcomes),
        )

    def outcome_for(self, website: str) -> Optional[WebsiteOutcome]:
        for outcome in self.websites:
            if outcome.website == website:
                return outcome
        return None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

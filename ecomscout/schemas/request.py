"""Pydantic schema for an incoming location-selection request."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class LocationSelectionRequest(BaseModel):
    """What to search for and where to deliver it.

    Accepts ``productQuery``/``location`` on the wire and snake_case names in
    Python. Instances are immutable.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    product_query: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Search term typed into the storefront search",
        examples=["milk"],
    )
    location: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Delivery locality typed into the location picker",
        examples=["RT Nagar"],
    )

    @field_validator("product_query", "location")
    @classmethod
    def collapse_whitespace(cls, value: str) -> str:
        return " ".join(value.split())

"""Pydantic schemas for the submit/poll contract."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from ecomscout.schemas.result import AggregateResult


class JobSubmitResponse(BaseModel):
    """Returned as soon as a job is queued."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str
    status: str = "queued"


class JobStatusResponse(BaseModel):
    """Poll response for one job."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_id: str
    status: str
    product: str
    location: str
    created_at: datetime
    result: Optional[AggregateResult] = None
    error: Optional[str] = None

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str:
        return value.isoformat()

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

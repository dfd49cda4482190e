"""Schemas for the events API."""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class PublishEventRequest(BaseModel):
    """Publish an arbitrary registered event through the bus."""
    model_config = ConfigDict(populate_by_name=True)

    event_type: str = Field(..., alias="eventType", min_length=1)
    data: Dict[str, Any]
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Pagination(BaseModel):
    page: int
    limit: int
    has_more: bool = Field(..., serialization_alias="hasMore")


class SuccessResponse(BaseModel):
    status: str = "success"
    message: Optional[str] = None
    results: Optional[int] = None
    pagination: Optional[Pagination] = None
    data: Optional[Dict[str, Any]] = None

    def dump(self) -> Dict[str, Any]:
        payload = self.model_dump(by_alias=True)
        return {key: value for key, value in payload.items() if value is not None}

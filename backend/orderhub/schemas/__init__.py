"""Pydantic schemas for request/response validation"""
from orderhub.schemas.events import (
    PublishEventRequest,
    Pagination,
    SuccessResponse,
)

__all__ = [
    "PublishEventRequest",
    "Pagination",
    "SuccessResponse",
]

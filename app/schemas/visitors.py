"""Pydantic schemas for visitor logging."""

from pydantic import BaseModel, ConfigDict, Field


class VisitorLogRequest(BaseModel):
    fingerprint: str = Field(..., min_length=1, max_length=255)


class VisitorLogResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fingerprint: str
    visit_count: int = Field(..., alias="visitCount")

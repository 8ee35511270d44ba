from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator


class PipelineRequest(BaseModel):
    latitude: float
    longitude: float
    keyword: str
    radius: float
    include_phone: bool = False

    @field_validator("latitude", "longitude")
    @classmethod
    def _non_zero(cls, value: float) -> float:
        if value == 0:
            raise ValueError("coordinate must be non-zero")
        return value

    @field_validator("keyword")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("keyword must not be empty")
        return value.strip()

    @field_validator("radius")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("radius must be positive")
        return value


class PipelineResponse(BaseModel):
    success: bool
    message: str
    file_name: str | None = None
    file_path: str | None = None
    place_count: int = 0
    phone_count: int = 0


class JobSubmittedResponse(BaseModel):
    job_id: str
    status: str
    message: str


class JobStatusResponse(BaseModel):
    job_id: str
    status: str
    created_at: datetime
    finished_at: datetime | None = None
    keyword: str | None = None
    result: PipelineResponse | None = None
    error: str | None = None


class FileInfo(BaseModel):
    name: str
    size: int
    modified: datetime


class PhoneLookupRequest(BaseModel):
    url: str


class PhoneLookupResponse(BaseModel):
    url: str
    phone: str | None = None
    status: str  # "phone" | "empty" | "failure"
    reason: str | None = None

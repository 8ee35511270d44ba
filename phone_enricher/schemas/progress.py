from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter

from phone_enricher.schemas.records import BatchSummary


class ProgressUpdate(BaseModel):
    type: Literal["progress"] = "progress"
    message: str = ""
    percentage: int
    current: int
    total: int
    stage: str  # "scraping" | "phones"


class LogEvent(BaseModel):
    type: Literal["log"] = "log"
    message: str


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    message: str
    summary: BatchSummary | None = None
    file_name: str | None = None


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str


ProgressEvent = Annotated[
    ProgressUpdate | LogEvent | CompleteEvent | ErrorEvent,
    Field(discriminator="type"),
]

progress_event_adapter: TypeAdapter[ProgressEvent] = TypeAdapter(ProgressEvent)

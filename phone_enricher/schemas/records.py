from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel

from phone_enricher.exceptions.custom import RecordAlreadyEnrichedError


def _is_blank(value: str | None) -> bool:
    return value is None or value.strip() == ""


class Record(BaseModel):
    name: str = ""
    address: str = ""
    stars: str = ""
    reviews: str = ""
    phone: str = ""  # phone already known from the listing
    hours: str = ""
    website: str = ""
    google_url: str = ""
    scraped_phone: str = ""  # filled by enrichment, at most once

    @property
    def needs_lookup(self) -> bool:
        return (
            _is_blank(self.phone)
            and _is_blank(self.scraped_phone)
            and not _is_blank(self.google_url)
        )

    @property
    def has_phone(self) -> bool:
        return not _is_blank(self.phone) or not _is_blank(self.scraped_phone)

    def assign_scraped_phone(self, phone: str) -> None:
        if self.scraped_phone:
            raise RecordAlreadyEnrichedError(self.name)
        self.scraped_phone = phone


class OutcomeStatus(StrEnum):
    phone = "phone"
    empty = "empty"
    failure = "failure"


class FailureReason(StrEnum):
    timeout = "timeout"
    navigation = "navigation"
    page_error = "page_error"
    unexpected = "unexpected"


class ExtractionOutcome(BaseModel):
    status: OutcomeStatus
    phone: str | None = None
    reason: FailureReason | None = None
    detail: str | None = None

    @classmethod
    def found(cls, phone: str) -> ExtractionOutcome:
        return cls(status=OutcomeStatus.phone, phone=phone)

    @classmethod
    def empty(cls) -> ExtractionOutcome:
        return cls(status=OutcomeStatus.empty)

    @classmethod
    def failed(cls, reason: FailureReason, detail: str | None = None) -> ExtractionOutcome:
        return cls(status=OutcomeStatus.failure, reason=reason, detail=detail)


@dataclass
class ExtractionJob:
    """One bounded attempt to enrich a single record.

    ``deadline`` is expressed on the event loop clock (``loop.time()``).
    """

    index: int
    record: Record
    deadline: float
    outcome: ExtractionOutcome | None = None

    @property
    def target(self) -> str:
        return self.record.google_url


class BatchSummary(BaseModel):
    total: int
    with_phone: int
    success_rate: float  # percentage
    processed: int = 0
    extracted: int = 0
    failed: int = 0

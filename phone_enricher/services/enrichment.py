import logging
from dataclasses import dataclass
from pathlib import Path

from phone_enricher.exceptions.custom import (
    EmptyBatchError,
    InputFileError,
    PersistenceError,
)
from phone_enricher.schemas.progress import CompleteEvent, ErrorEvent, LogEvent
from phone_enricher.schemas.records import (
    BatchSummary,
    ExtractionOutcome,
    OutcomeStatus,
    Record,
)
from phone_enricher.services import storage
from phone_enricher.services.broadcaster import ProgressBroadcaster
from phone_enricher.services.page import PageSource
from phone_enricher.services.worker_pool import WorkerPool

logger = logging.getLogger(__name__)


def compute_summary(
    records: list[Record], outcomes: dict[int, ExtractionOutcome],
) -> BatchSummary:
    """Single scan over the final records; only call after the batch barrier."""
    total = len(records)
    with_phone = sum(1 for r in records if r.has_phone)
    extracted = sum(1 for o in outcomes.values() if o.status == OutcomeStatus.phone)
    failed = sum(1 for o in outcomes.values() if o.status == OutcomeStatus.failure)
    rate = round(with_phone * 100 / total, 1) if total else 0.0
    return BatchSummary(
        total=total,
        with_phone=with_phone,
        success_rate=rate,
        processed=len(outcomes),
        extracted=extracted,
        failed=failed,
    )


@dataclass
class EnrichmentResult:
    records: list[Record]
    summary: BatchSummary
    output_path: Path | None = None


class EnrichmentService:
    def __init__(
        self,
        pool: WorkerPool,
        pages: PageSource,
        broadcaster: ProgressBroadcaster,
    ):
        self._pool = pool
        self._pages = pages
        self._broadcaster = broadcaster

    async def process(self, records: list[Record]) -> tuple[list[Record], BatchSummary]:
        """Enrich in-memory records and announce the summary."""
        records, summary = await self._enrich(records)
        self._publish_complete(summary)
        return records, summary

    async def _enrich(self, records: list[Record]) -> tuple[list[Record], BatchSummary]:
        if not records:
            raise EmptyBatchError()

        pending = sum(1 for r in records if r.needs_lookup)
        self._broadcaster.publish(LogEvent(
            message=f"Procesando {len(records)} lugares para extraer teléfonos ({pending} por visitar)",
        ))

        outcomes = await self._pool.run_batch(records, self._pages)

        summary = compute_summary(records, outcomes)
        logger.info(
            "Batch done: %d places, %d with phone (%.1f%%), %d extracted, %d failed",
            summary.total, summary.with_phone, summary.success_rate,
            summary.extracted, summary.failed,
        )
        return records, summary

    async def process_csv(self, path: Path, output_path: Path | None = None) -> EnrichmentResult:
        """Load, enrich and persist one CSV; always ends with a complete or error event."""
        try:
            records = storage.read_records(path)
            records, summary = await self._enrich(records)
            output_path = output_path or storage.enriched_path(path)
            storage.write_records(records, output_path)
        except (EmptyBatchError, InputFileError, PersistenceError) as exc:
            logger.error("Enrichment of %s failed: %s", path, exc)
            self._broadcaster.publish(ErrorEvent(message=str(exc)))
            raise
        except Exception as exc:
            logger.exception("Enrichment of %s failed", path)
            self._broadcaster.publish(ErrorEvent(message=f"Error en el enriquecimiento: {exc}"))
            raise

        self._publish_complete(summary, output_path.name)
        return EnrichmentResult(records=records, summary=summary, output_path=output_path)

    def _publish_complete(self, summary: BatchSummary, file_name: str | None = None) -> None:
        self._broadcaster.publish(CompleteEvent(
            message=(
                f"Teléfonos encontrados: {summary.with_phone}/{summary.total} "
                f"({summary.success_rate:.1f}%)"
            ),
            summary=summary,
            file_name=file_name,
        ))

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from phone_enricher.exceptions.custom import RecordAlreadyEnrichedError
from phone_enricher.schemas.progress import ProgressUpdate
from phone_enricher.schemas.records import ExtractionOutcome, OutcomeStatus, Record
from phone_enricher.services.broadcaster import ProgressBroadcaster
from phone_enricher.services.extraction import ExtractionJobRunner
from phone_enricher.services.page import PageSource

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3
PACING_DELAY = 1.0  # seconds a worker waits before taking its next record


class _BatchState:
    """Shared per-batch state; only touched while holding ``lock``."""

    def __init__(self, records: list[Record]) -> None:
        self.records = records
        self.total = len(records)
        self.current = 0
        self.outcomes: dict[int, ExtractionOutcome] = {}
        self.lock = asyncio.Lock()


class WorkerPool:
    """Bounded-concurrency dispatcher for extraction jobs.

    At most ``concurrency_cap`` jobs hold a slot at any time. Each worker
    releases its slot when a job finishes, records the outcome, emits one
    progress tick and then waits ``pacing_delay`` before its next record.
    ``run_batch`` returns only when every dispatched job is done.
    """

    def __init__(
        self,
        runner: ExtractionJobRunner,
        broadcaster: ProgressBroadcaster,
        concurrency_cap: int = DEFAULT_CONCURRENCY,
        pacing_delay: float = PACING_DELAY,
        stage: str = "phones",
    ) -> None:
        if concurrency_cap < 1:
            raise ValueError("concurrency_cap must be at least 1")
        self._runner = runner
        self._broadcaster = broadcaster
        self._cap = concurrency_cap
        self._pacing_delay = pacing_delay
        self._stage = stage
        self._slots = asyncio.Semaphore(concurrency_cap)
        self._in_flight = 0
        self._peak_in_flight = 0

    @property
    def concurrency_cap(self) -> int:
        return self._cap

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        return self._peak_in_flight

    async def run_batch(
        self, records: list[Record], pages: PageSource,
    ) -> dict[int, ExtractionOutcome]:
        """Enrich ``records`` in place; returns outcomes of dispatched records by index."""
        state = _BatchState(records)
        self._peak_in_flight = 0
        queue: asyncio.Queue[int] = asyncio.Queue()

        for index, record in enumerate(records):
            if record.needs_lookup:
                queue.put_nowait(index)
            else:
                # Already has a phone or nothing to visit: done without dispatch
                await self._tick(state)

        dispatched = queue.qsize()
        logger.info(
            "Procesando %d lugares (%d a visitar, %d workers)",
            state.total, dispatched, min(self._cap, dispatched),
        )

        try:
            async with asyncio.TaskGroup() as group:
                for _ in range(min(self._cap, dispatched)):
                    group.create_task(self._worker(queue, state, pages))
        except ExceptionGroup as exc_group:
            # A worker only fails on fatal errors (e.g. the browser is gone)
            raise exc_group.exceptions[0]

        return state.outcomes

    async def _worker(
        self, queue: asyncio.Queue[int], state: _BatchState, pages: PageSource,
    ) -> None:
        while True:
            try:
                index = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            record = state.records[index]
            async with self._slot():
                job = self._runner.new_job(index, record)
                outcome = await self._runner.run(job, pages)

            async with state.lock:
                if outcome.status == OutcomeStatus.phone and outcome.phone:
                    try:
                        record.assign_scraped_phone(outcome.phone)
                    except RecordAlreadyEnrichedError as exc:
                        logger.warning("Keeping existing phone: %s", exc)
                state.outcomes[index] = outcome
            await self._tick(state)

            if self._pacing_delay > 0 and not queue.empty():
                await asyncio.sleep(self._pacing_delay)

    @asynccontextmanager
    async def _slot(self) -> AsyncIterator[None]:
        async with self._slots:
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            try:
                yield
            finally:
                self._in_flight -= 1

    async def _tick(self, state: _BatchState) -> None:
        async with state.lock:
            state.current += 1
            current = state.current
        percentage = int(current * 100 / state.total) if state.total else 100
        logger.debug("Procesados: %d/%d", current, state.total)
        self._broadcaster.publish(
            ProgressUpdate(
                percentage=percentage,
                current=current,
                total=state.total,
                stage=self._stage,
                message=f"Procesados: {current}/{state.total}",
            )
        )


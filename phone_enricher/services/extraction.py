import asyncio
import logging

from phone_enricher.exceptions.custom import (
    BrowserUnavailableError,
    NavigationFailure,
    PageQueryError,
)
from phone_enricher.mappers.phone import normalize_phone
from phone_enricher.schemas.phone import PhoneCandidate
from phone_enricher.schemas.records import (
    ExtractionJob,
    ExtractionOutcome,
    FailureReason,
    Record,
)
from phone_enricher.services.locator import PhoneLocator
from phone_enricher.services.page import PageSource

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0  # seconds


class ExtractionJobRunner:
    """Run a single record's lookup under one deadline.

    The deadline covers opening the page, navigation, waiting for the
    page to settle and every locator query. When it passes, the lookup
    coroutine is cancelled at its current await and the page session is
    closed on the way out, so the browser work does not outlive the job.
    """

    def __init__(self, locator: PhoneLocator, timeout: float = DEFAULT_TIMEOUT):
        self._locator = locator
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    def new_job(self, index: int, record: Record) -> ExtractionJob:
        deadline = asyncio.get_running_loop().time() + self._timeout
        return ExtractionJob(index=index, record=record, deadline=deadline)

    async def run(self, job: ExtractionJob, pages: PageSource) -> ExtractionOutcome:
        job.outcome = await self._run(job, pages)
        return job.outcome

    async def lookup(self, url: str, pages: PageSource) -> ExtractionOutcome:
        """Single-URL lookup, same path as a batch job."""
        job = self.new_job(0, Record(google_url=url))
        return await self.run(job, pages)

    async def _run(self, job: ExtractionJob, pages: PageSource) -> ExtractionOutcome:
        url = job.target
        try:
            async with asyncio.timeout_at(job.deadline):
                candidate = await self._find(url, pages)
        except TimeoutError:
            logger.info("Timeout finding phone for %s", url)
            return ExtractionOutcome.failed(FailureReason.timeout, f"timeout after {self._timeout:.0f}s")
        except NavigationFailure as exc:
            logger.info("Navigation failed for %s: %s", url, exc.message)
            return ExtractionOutcome.failed(FailureReason.navigation, exc.message)
        except PageQueryError as exc:
            logger.info("Page query failed for %s: %s", url, exc.message)
            return ExtractionOutcome.failed(FailureReason.page_error, exc.message)
        except BrowserUnavailableError:
            raise
        except Exception as exc:
            logger.exception("Unexpected error extracting phone from %s", url)
            return ExtractionOutcome.failed(FailureReason.unexpected, str(exc))

        if candidate is None:
            logger.debug("No phone found for %s", url)
            return ExtractionOutcome.empty()

        phone = normalize_phone(candidate.raw, self._locator.locale)
        return ExtractionOutcome.found(phone)

    async def _find(self, url: str, pages: PageSource) -> PhoneCandidate | None:
        async with pages.session() as page:
            await page.navigate(url)
            await page.wait_stable()
            return await self._locator.locate(page)

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from phone_enricher.config import Settings
from phone_enricher.exceptions.custom import (
    BrowserUnavailableError,
    EmptyBatchError,
    PersistenceError,
    PipelineProcessError,
    PipelineTimeoutError,
)
from phone_enricher.exceptions.handlers import (
    browser_unavailable_error_handler,
    empty_batch_error_handler,
    persistence_error_handler,
    pipeline_process_error_handler,
    pipeline_timeout_error_handler,
)
from phone_enricher.jobs import JobStore
from phone_enricher.log_setup import configure_logging
from phone_enricher.routers.files import router as files_router
from phone_enricher.routers.phone import router as phone_router
from phone_enricher.routers.pipeline import router as pipeline_router
from phone_enricher.routers.progress import router as progress_router
from phone_enricher.schemas.phone import PhoneLocale
from phone_enricher.services.broadcaster import ProgressBroadcaster
from phone_enricher.services.browser import PlaywrightPageSource
from phone_enricher.services.extraction import ExtractionJobRunner
from phone_enricher.services.locator import PhoneLocator
from phone_enricher.services.pipeline_runner import PipelineRunner

logger = logging.getLogger(__name__)


def build_page_source(settings: Settings) -> PlaywrightPageSource:
    return PlaywrightPageSource(
        headless=settings.headless,
        executable_path=settings.chrome_path,
        navigation_timeout=settings.navigation_timeout,
        settle_delay=settings.settle_delay,
    )


def build_extraction_runner(settings: Settings) -> ExtractionJobRunner:
    locale = PhoneLocale(
        country_code=settings.country_code,
        national_digits=settings.national_digits,
    )
    locator = PhoneLocator(locale, label_keyword=settings.phone_label_keyword)
    return ExtractionJobRunner(locator, timeout=settings.job_timeout)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()
    configure_logging(settings.log_level)

    broadcaster = ProgressBroadcaster(queue_size=settings.broadcast_queue_size)
    page_source = build_page_source(settings)
    job_store = JobStore()

    app.state.settings = settings
    app.state.broadcaster = broadcaster
    app.state.page_source = page_source
    app.state.extraction_runner = build_extraction_runner(settings)
    app.state.pipeline_runner = PipelineRunner(settings, broadcaster)
    app.state.job_store = job_store

    logger.info("Serving files from %s", settings.output_dir.resolve())
    try:
        yield
    finally:
        await job_store.shutdown()
        await broadcaster.shutdown()
        await page_source.close()


app = FastAPI(title="Maps Phone Enricher", lifespan=lifespan)

app.add_exception_handler(PipelineTimeoutError, pipeline_timeout_error_handler)
app.add_exception_handler(PipelineProcessError, pipeline_process_error_handler)
app.add_exception_handler(EmptyBatchError, empty_batch_error_handler)
app.add_exception_handler(PersistenceError, persistence_error_handler)
app.add_exception_handler(BrowserUnavailableError, browser_unavailable_error_handler)

app.include_router(pipeline_router)
app.include_router(files_router)
app.include_router(phone_router)
app.include_router(progress_router)


@app.get("/", include_in_schema=False)
async def root() -> RedirectResponse:
    return RedirectResponse("/docs")

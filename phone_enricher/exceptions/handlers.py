import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from .custom import (
    BrowserUnavailableError,
    EmptyBatchError,
    PersistenceError,
    PipelineProcessError,
    PipelineTimeoutError,
)

logger = logging.getLogger(__name__)


async def pipeline_timeout_error_handler(
    _request: Request, exc: PipelineTimeoutError
) -> JSONResponse:
    logger.warning("Pipeline timed out during %s after %.0fs", exc.stage, exc.timeout)
    return JSONResponse(
        status_code=504,
        content={"success": False, "message": exc.message},
    )


async def pipeline_process_error_handler(
    _request: Request, exc: PipelineProcessError
) -> JSONResponse:
    logger.error("Pipeline %s failed: %s (returncode=%s)", exc.stage, exc.message, exc.returncode)
    return JSONResponse(
        status_code=502,
        content={"success": False, "message": f"Error en el pipeline: {exc.message}"},
    )


async def empty_batch_error_handler(_request: Request, exc: EmptyBatchError) -> JSONResponse:
    logger.warning("Rejected empty batch: %s", exc.message)
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": exc.message},
    )


async def persistence_error_handler(_request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("Persistence error: %s (path=%s)", exc.message, exc.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": f"Error guardando resultados: {exc.message}"},
    )


async def browser_unavailable_error_handler(
    _request: Request, exc: BrowserUnavailableError
) -> JSONResponse:
    logger.error("Browser unavailable: %s", exc.message)
    return JSONResponse(
        status_code=503,
        content={"success": False, "message": exc.message},
    )

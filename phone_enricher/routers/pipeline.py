import asyncio
import logging

from fastapi import APIRouter, HTTPException

from phone_enricher.dependencies import JobStoreDep, PipelineRunnerDep
from phone_enricher.jobs import JobStore
from phone_enricher.schemas.responses import (
    JobStatusResponse,
    JobSubmittedResponse,
    PipelineRequest,
    PipelineResponse,
)
from phone_enricher.services.pipeline_runner import PipelineRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


async def _run_pipeline(
    job_id: str,
    runner: PipelineRunner,
    store: JobStore,
    request: PipelineRequest,
) -> None:
    store.mark_running(job_id)
    try:
        result = await runner.execute(request)
        store.mark_completed(job_id, result)
    except asyncio.CancelledError:
        store.mark_failed(job_id, "Pipeline cancelado")
        raise
    except Exception as exc:
        logger.exception("Pipeline job %s failed", job_id)
        store.mark_failed(job_id, getattr(exc, "message", str(exc)))


@router.post("/execute", response_model=JobSubmittedResponse, status_code=202)
async def execute_pipeline(
    request: PipelineRequest,
    runner: PipelineRunnerDep,
    store: JobStoreDep,
) -> JobSubmittedResponse:
    logger.info("Received request: %s", request.model_dump())

    existing = store.active_job()
    if existing:
        raise HTTPException(
            status_code=409,
            detail=f"Ya existe un pipeline en ejecución (job_id={existing.job_id})",
        )

    job = store.create_job(keyword=request.keyword)
    task = asyncio.create_task(_run_pipeline(job.job_id, runner, store, request))
    store.track(job.job_id, task)
    return JobSubmittedResponse(
        job_id=job.job_id,
        status=job.status,
        message="Pipeline job submitted",
    )


@router.post("/execute/sync", response_model=PipelineResponse)
async def execute_pipeline_sync(
    request: PipelineRequest,
    runner: PipelineRunnerDep,
) -> PipelineResponse:
    return await runner.execute(request)


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, store: JobStoreDep) -> JobStatusResponse:
    job = store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(**job.model_dump())

"""Tests for the in-memory JobStore."""

import asyncio

from phone_enricher.jobs import JobStatus, JobStore
from phone_enricher.schemas.responses import PipelineResponse


def _result():
    return PipelineResponse(success=True, message="ok", file_name="prospects_spa.csv")


def test_create_job_is_pending():
    store = JobStore()
    job = store.create_job(keyword="spa")

    assert job.status == JobStatus.pending
    assert job.keyword == "spa"
    assert store.get_job(job.job_id) is job


def test_job_lifecycle_completed():
    store = JobStore()
    job = store.create_job(keyword="spa")

    store.mark_running(job.job_id)
    assert job.status == JobStatus.running

    store.mark_completed(job.job_id, _result())
    assert job.status == JobStatus.completed
    assert job.result.file_name == "prospects_spa.csv"
    assert job.finished_at is not None


def test_job_lifecycle_failed():
    store = JobStore()
    job = store.create_job()
    store.mark_failed(job.job_id, "boom")

    assert job.status == JobStatus.failed
    assert job.error == "boom"


def test_active_job():
    """Only pending or running jobs count as active."""
    store = JobStore()
    assert store.active_job() is None

    job = store.create_job(keyword="spa")
    assert store.active_job() is job

    store.mark_running(job.job_id)
    assert store.active_job() is job

    store.mark_completed(job.job_id, _result())
    assert store.active_job() is None


def test_unknown_job_is_ignored():
    store = JobStore()
    store.mark_running("missing")
    store.mark_failed("missing", "x")
    assert store.get_job("missing") is None


def test_eviction_drops_oldest_finished_jobs():
    store = JobStore(max_jobs=2)
    first = store.create_job()
    store.mark_completed(first.job_id, _result())
    second = store.create_job()
    store.mark_completed(second.job_id, _result())

    third = store.create_job()

    assert store.get_job(first.job_id) is None
    assert store.get_job(second.job_id) is second
    assert store.get_job(third.job_id) is third


def test_eviction_keeps_active_jobs():
    store = JobStore(max_jobs=1)
    first = store.create_job()
    second = store.create_job()

    assert store.get_job(first.job_id) is first
    assert store.get_job(second.job_id) is second


async def test_shutdown_cancels_tracked_tasks():
    store = JobStore()
    job = store.create_job(keyword="spa")
    task = asyncio.create_task(asyncio.sleep(30))
    store.track(job.job_id, task)

    await store.shutdown()

    assert task.cancelled()
    assert store._tasks == {}


async def test_finished_task_is_released():
    store = JobStore()
    job = store.create_job(keyword="spa")
    task = asyncio.create_task(asyncio.sleep(0))
    store.track(job.job_id, task)

    await task
    await asyncio.sleep(0)  # let the done callback run

    assert store._tasks == {}

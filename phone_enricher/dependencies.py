from typing import Annotated

from fastapi import Depends, Request, WebSocket

from phone_enricher.config import Settings
from phone_enricher.jobs import JobStore
from phone_enricher.services.broadcaster import ProgressBroadcaster
from phone_enricher.services.extraction import ExtractionJobRunner
from phone_enricher.services.page import PageSource
from phone_enricher.services.pipeline_runner import PipelineRunner


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_pipeline_runner(request: Request) -> PipelineRunner:
    return request.app.state.pipeline_runner


def get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


def get_extraction_runner(request: Request) -> ExtractionJobRunner:
    return request.app.state.extraction_runner


def get_page_source(request: Request) -> PageSource:
    return request.app.state.page_source


def get_broadcaster(websocket: WebSocket) -> ProgressBroadcaster:
    return websocket.app.state.broadcaster


SettingsDep = Annotated[Settings, Depends(get_settings)]
PipelineRunnerDep = Annotated[PipelineRunner, Depends(get_pipeline_runner)]
JobStoreDep = Annotated[JobStore, Depends(get_job_store)]
ExtractionRunnerDep = Annotated[ExtractionJobRunner, Depends(get_extraction_runner)]
PageSourceDep = Annotated[PageSource, Depends(get_page_source)]
BroadcasterDep = Annotated[ProgressBroadcaster, Depends(get_broadcaster)]

import asyncio
import logging
import sys
import time
from pathlib import Path

from pydantic import ValidationError

from phone_enricher.config import Settings
from phone_enricher.exceptions.custom import (
    EmptyBatchError,
    InputFileError,
    PipelineProcessError,
    PipelineTimeoutError,
)
from phone_enricher.schemas.progress import (
    CompleteEvent,
    ErrorEvent,
    LogEvent,
    progress_event_adapter,
)
from phone_enricher.schemas.records import BatchSummary
from phone_enricher.schemas.responses import PipelineRequest, PipelineResponse
from phone_enricher.services import storage
from phone_enricher.services.broadcaster import ProgressBroadcaster
from phone_enricher.services.enrichment import compute_summary

logger = logging.getLogger(__name__)

COLLECTION_STAGE = "scraping"
ENRICHMENT_STAGE = "phones"


def _format_number(value: float) -> str:
    return f"{value:g}"


def _summary_of(response: PipelineResponse) -> BatchSummary:
    total = response.place_count
    rate = round(response.phone_count * 100 / total, 1) if total else 0.0
    return BatchSummary(total=total, with_phone=response.phone_count, success_rate=rate)


class PipelineRunner:
    """Run the collector process and, optionally, the phone enrichment process.

    Both run as child processes in ``output_dir`` under one wall-clock budget:
    ``collection_timeout`` for collection-only runs, ``full_pipeline_timeout``
    when phones are included. A process that overruns is killed and the run
    fails with ``PipelineTimeoutError``; a cancelled run kills its process too.
    """

    def __init__(self, settings: Settings, broadcaster: ProgressBroadcaster):
        self._settings = settings
        self._broadcaster = broadcaster

    @property
    def output_dir(self) -> Path:
        return Path(self._settings.output_dir)

    def _budget(self, include_phone: bool) -> float:
        if include_phone:
            return self._settings.full_pipeline_timeout
        return self._settings.collection_timeout

    def _collector_args(self, request: PipelineRequest) -> list[str]:
        return [
            *self._settings.collector_command,
            "--lat", _format_number(request.latitude),
            "--lon", _format_number(request.longitude),
            "--query", request.keyword,
            "--radius", _format_number(request.radius),
        ]

    def _enrichment_args(self, csv_path: Path) -> list[str]:
        command = self._settings.enrichment_command or [sys.executable, "-m", "phone_enricher.cli"]
        return [*command, "csv", "--file", str(csv_path), "--jsonl"]

    async def execute(self, request: PipelineRequest) -> PipelineResponse:
        try:
            response = await self._execute(request)
        except (PipelineTimeoutError, PipelineProcessError) as exc:
            self._broadcaster.publish(ErrorEvent(message=exc.message))
            raise
        except Exception as exc:
            logger.exception("Pipeline failed")
            self._broadcaster.publish(ErrorEvent(message=f"Error en el pipeline: {exc}"))
            raise
        self._broadcaster.publish(CompleteEvent(
            message=response.message,
            summary=_summary_of(response),
            file_name=response.file_name,
        ))
        return response

    async def _execute(self, request: PipelineRequest) -> PipelineResponse:
        budget = self._budget(request.include_phone)
        deadline = time.monotonic() + budget
        logger.info(
            "Starting pipeline: keyword=%s radius=%skm phones=%s timeout=%.0f min",
            request.keyword, _format_number(request.radius), request.include_phone, budget / 60,
        )
        self._publish_log(f"Iniciando pipeline para '{request.keyword}' ({_format_number(request.radius)} km)")

        await self._run_process(
            COLLECTION_STAGE, self._collector_args(request), deadline, budget,
        )

        collected = storage.find_latest_csv(
            self.output_dir, request.keyword, request.radius, enriched=False,
        )
        if collected is None:
            raise PipelineProcessError(
                COLLECTION_STAGE,
                "El pipeline se ejecutó pero no se generó el archivo CSV esperado",
            )

        try:
            places = storage.read_records(collected)
        except (EmptyBatchError, InputFileError):
            places = []
        if not places:
            logger.warning("No places found in %s, skipping phone extraction", collected.name)
            return self._response("No se encontraron lugares", collected, 0, 0)

        self._publish_log(f"Total de lugares encontrados: {len(places)}")
        if not request.include_phone:
            summary = compute_summary(places, {})
            return self._response(
                "Pipeline ejecutado exitosamente", collected, summary.total, summary.with_phone,
            )

        await self._run_process(
            ENRICHMENT_STAGE, self._enrichment_args(collected), deadline, budget,
        )

        enriched = storage.enriched_path(collected)
        if not enriched.exists():
            raise PipelineProcessError(
                ENRICHMENT_STAGE, "No se generó el archivo de salida con teléfonos",
            )
        summary = compute_summary(storage.read_records(enriched), {})
        return self._response(
            "Pipeline ejecutado exitosamente", enriched, summary.total, summary.with_phone,
        )

    def _response(self, message: str, path: Path, places: int, phones: int) -> PipelineResponse:
        logger.info("Pipeline finished: %s (%d places, %d phones)", path.name, places, phones)
        return PipelineResponse(
            success=True,
            message=message,
            file_name=path.name,
            file_path=str(path),
            place_count=places,
            phone_count=phones,
        )

    async def _run_process(
        self, stage: str, args: list[str], deadline: float, budget: float,
    ) -> None:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise PipelineTimeoutError(stage, budget)

        logger.info("Running %s: %s", stage, args)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=self.output_dir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise PipelineProcessError(stage, f"Error iniciando {args[0]}: {exc}") from exc

        logger.info("%s started, PID %d", stage, process.pid)
        heartbeat = asyncio.create_task(self._heartbeat(stage))
        try:
            async with asyncio.timeout(remaining):
                await asyncio.gather(
                    self._relay_stdout(stage, process.stdout),
                    self._relay_stderr(stage, process.stderr),
                )
                returncode = await process.wait()
        except TimeoutError:
            logger.warning("%s exceeded %.0f min, killing PID %d", stage, budget / 60, process.pid)
            raise PipelineTimeoutError(stage, budget) from None
        finally:
            heartbeat.cancel()
            if process.returncode is None:
                # timed out, cancelled or a relay failed
                process.kill()
                await process.wait()

        if returncode != 0:
            raise PipelineProcessError(
                stage, f"{Path(args[0]).name} terminó con código {returncode}", returncode,
            )

    async def _relay_stdout(self, stage: str, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        async for raw in stream:
            line = raw.decode("utf-8", errors="replace").rstrip()
            if not line:
                continue
            try:
                event = progress_event_adapter.validate_json(line)
            except ValidationError:
                logger.info("[%s] %s", stage, line)
                self._publish_log(line)
                continue
            if isinstance(event, (CompleteEvent, ErrorEvent)):
                # only the runner announces the end of the whole run
                event = LogEvent(message=event.message)
            self._broadcaster.publish(event)

    async def _relay_stderr(self, stage: str, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        async for raw in stream:
            line = raw.decode("utf-8", errors="replace").rstrip()
            if line:
                logger.info("[%s stderr] %s", stage, line)

    async def _heartbeat(self, stage: str) -> None:
        started = time.monotonic()
        while True:
            await asyncio.sleep(self._settings.heartbeat_interval)
            elapsed = (time.monotonic() - started) / 60
            self._publish_log(f"Pipeline ejecutándose ({stage})... {elapsed:.1f} minutos")

    def _publish_log(self, message: str) -> None:
        self._broadcaster.publish(LogEvent(message=message))

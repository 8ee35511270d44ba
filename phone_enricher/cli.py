"""
Phone enrichment CLI

Usage:
  python -m phone_enricher.cli csv --file prospects_spa_2.0km_20250101.csv
  python -m phone_enricher.cli csv --file prospects_spa.csv --jsonl
  python -m phone_enricher.cli url --url "https://www.google.com/maps/place/..."
  python -m phone_enricher.cli serve --port 8080

With --jsonl every progress event is written to stdout as one JSON object
per line (logs go to stderr); this is how the web server follows a run.

Exit codes:
  0 - success
  1 - fatal error (unreadable input, empty batch, results not saved, no browser)
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from phone_enricher.config import Settings
from phone_enricher.exceptions.custom import (
    BrowserUnavailableError,
    EmptyBatchError,
    InputFileError,
    PersistenceError,
)
from phone_enricher.log_setup import configure_logging
from phone_enricher.main import build_extraction_runner, build_page_source
from phone_enricher.schemas.progress import ProgressEvent, ProgressUpdate
from phone_enricher.schemas.records import OutcomeStatus
from phone_enricher.services.broadcaster import ProgressBroadcaster
from phone_enricher.services.enrichment import EnrichmentService
from phone_enricher.services.worker_pool import WorkerPool

logger = logging.getLogger("phone_enricher.cli")


async def _write_json_line(event: ProgressEvent) -> None:
    sys.stdout.write(event.model_dump_json(exclude_none=True) + "\n")
    sys.stdout.flush()


async def _log_event(event: ProgressEvent) -> None:
    if isinstance(event, ProgressUpdate):
        logger.info("🔄 %s (%d%%)", event.message, event.percentage)
    else:
        logger.info("%s", event.message)


async def run_csv(settings: Settings, path: Path, jsonl: bool = False) -> int:
    broadcaster = ProgressBroadcaster(queue_size=settings.broadcast_queue_size)
    broadcaster.register(_write_json_line if jsonl else _log_event)

    pages = build_page_source(settings)
    pool = WorkerPool(
        build_extraction_runner(settings),
        broadcaster,
        concurrency_cap=settings.concurrency_cap,
        pacing_delay=settings.pacing_delay,
    )
    service = EnrichmentService(pool, pages, broadcaster)

    try:
        result = await service.process_csv(path)
    except (EmptyBatchError, InputFileError, PersistenceError, BrowserUnavailableError) as exc:
        logger.error("Error processing %s: %s", path, exc)
        return 1
    finally:
        await broadcaster.flush()
        await broadcaster.shutdown()
        await pages.close()

    if not jsonl:
        summary = result.summary
        print(f"✅ Archivo actualizado guardado: {result.output_path}")
        print("📊 Estadísticas:")
        print(f"   Total lugares: {summary.total}")
        print(f"   Teléfonos encontrados: {summary.with_phone} ({summary.success_rate:.1f}%)")
        print(f"   Extraídos ahora: {summary.extracted}, fallidos: {summary.failed}")
    return 0


async def run_url(settings: Settings, url: str) -> int:
    pages = build_page_source(settings)
    runner = build_extraction_runner(settings)
    print(f"Extrayendo teléfono de: {url}")
    try:
        outcome = await runner.lookup(url, pages)
    except BrowserUnavailableError as exc:
        logger.error("%s", exc.message)
        return 1
    finally:
        await pages.close()

    if outcome.status == OutcomeStatus.phone:
        print(f"✅ Teléfono encontrado: {outcome.phone}")
    elif outcome.status == OutcomeStatus.failure:
        print(f"❌ Error obteniendo teléfono: {outcome.reason} ({outcome.detail})")
    else:
        print("❌ No se encontró teléfono")
    return 0


def serve(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("phone_enricher.main:app", host=host, port=port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="phone_enricher",
        description="Extrae números de teléfono de URLs de Google Maps o procesa archivos CSV",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    csv_cmd = sub.add_parser("csv", help="Procesa un archivo CSV para extraer teléfonos")
    csv_cmd.add_argument("-f", "--file", required=True, type=Path, help="Archivo CSV a procesar")
    csv_cmd.add_argument("--jsonl", action="store_true", help="Emit progress events as JSON lines")

    url_cmd = sub.add_parser("url", help="Extrae teléfono de una URL específica")
    url_cmd.add_argument("-u", "--url", required=True, help="URL de Google Maps")

    serve_cmd = sub.add_parser("serve", help="Start the web server")
    serve_cmd.add_argument("--host", default="0.0.0.0")
    serve_cmd.add_argument("--port", type=int, default=8080)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    jsonl = getattr(args, "jsonl", False)
    configure_logging(settings.log_level, stream=sys.stderr if jsonl else sys.stdout)

    if args.command == "csv":
        return asyncio.run(run_csv(settings, args.file, jsonl=jsonl))
    if args.command == "url":
        return asyncio.run(run_url(settings, args.url))
    return serve(args.host, args.port)


if __name__ == "__main__":
    sys.exit(main())

"""Tests for PipelineRunner using small Python scripts as child processes."""

import asyncio
import os
import sys
import textwrap

import pytest

from phone_enricher.config import Settings
from phone_enricher.exceptions.custom import PipelineProcessError, PipelineTimeoutError
from phone_enricher.schemas.progress import CompleteEvent, ErrorEvent, LogEvent, ProgressUpdate
from phone_enricher.schemas.responses import PipelineRequest
from phone_enricher.services.broadcaster import ProgressBroadcaster
from phone_enricher.services.pipeline_runner import PipelineRunner

HEADER = "Name,Address,Stars,Reviews,Phone,Hours,Website,GoogleURL"

COLLECTOR = textwrap.dedent("""
    import argparse, json, sys
    parser = argparse.ArgumentParser()
    parser.add_argument("--lat")
    parser.add_argument("--lon")
    parser.add_argument("--query")
    parser.add_argument("--radius", type=float)
    args = parser.parse_args()
    rows = {rows!r}
    print("Buscando lugares...", flush=True)
    print(json.dumps({{"type": "progress", "percentage": 50, "current": 1, "total": 2, "stage": "scraping"}}), flush=True)
    with open(f"prospects_{{args.query}}_{{args.radius:.1f}}km_20250101.csv", "w") as f:
        f.write({header!r} + "\\n")
        for row in rows:
            f.write(row + "\\n")
""")

ENRICHER = textwrap.dedent("""
    import json, sys
    path = sys.argv[sys.argv.index("--file") + 1]
    lines = open(path).read().splitlines()
    with open(path[:-4] + "_with_phones.csv", "w") as f:
        f.write(lines[0] + ",ScrapedPhone\\n")
        for line in lines[1:]:
            f.write(line + ",222 123 4567\\n")
    print(json.dumps({"type": "progress", "percentage": 100, "current": 1, "total": 1, "stage": "phones"}), flush=True)
    print(json.dumps({"type": "complete", "message": "Teléfonos encontrados: 1/1 (100.0%)"}), flush=True)
""")


def _script(tmp_path, name, source):
    path = tmp_path / name
    path.write_text(source, encoding="utf-8")
    return [sys.executable, str(path)]


def _collector(tmp_path, rows=("Spa,Calle 1,4.5,10,,,,https://maps/a",)):
    return _script(tmp_path, "collector.py", COLLECTOR.format(rows=list(rows), header=HEADER))


def _settings(tmp_path, **overrides):
    if "collector_command" not in overrides:
        overrides["collector_command"] = _collector(tmp_path)
    if "enrichment_command" not in overrides:
        overrides["enrichment_command"] = _script(tmp_path, "enricher.py", ENRICHER)
    return Settings(output_dir=tmp_path, heartbeat_interval=60.0, **overrides)


def _request(include_phone=False):
    return PipelineRequest(latitude=19.43, longitude=-99.13, keyword="spa", radius=2, include_phone=include_phone)


@pytest.fixture
async def broadcaster():
    broadcaster = ProgressBroadcaster()
    yield broadcaster
    await broadcaster.shutdown()


@pytest.fixture
async def events(broadcaster):
    received = []

    async def collect(event):
        received.append(event)

    broadcaster.register(collect)
    return received


async def test_collection_only(tmp_path, broadcaster, events):
    runner = PipelineRunner(_settings(tmp_path), broadcaster)

    response = await runner.execute(_request())
    await broadcaster.flush()

    assert response.success
    assert response.file_name == "prospects_spa_2.0km_20250101.csv"
    assert response.place_count == 1
    assert response.phone_count == 0
    assert any(isinstance(e, ProgressUpdate) and e.stage == "scraping" for e in events)
    assert any(isinstance(e, LogEvent) and e.message == "Buscando lugares..." for e in events)
    assert isinstance(events[-1], CompleteEvent)


async def test_full_pipeline_with_phones(tmp_path, broadcaster, events):
    runner = PipelineRunner(_settings(tmp_path), broadcaster)

    response = await runner.execute(_request(include_phone=True))
    await broadcaster.flush()

    assert response.file_name == "prospects_spa_2.0km_20250101_with_phones.csv"
    assert response.place_count == 1
    assert response.phone_count == 1
    # the child's complete is relayed as a log line; only the run's own complete remains
    completes = [e for e in events if isinstance(e, CompleteEvent)]
    assert len(completes) == 1
    assert events[-1] is completes[0]
    assert completes[0].summary.with_phone == 1
    assert completes[0].summary.success_rate == 100.0
    assert any(isinstance(e, LogEvent) and e.message.startswith("Teléfonos encontrados") for e in events)


async def test_no_places_found(tmp_path, broadcaster):
    settings = _settings(tmp_path, collector_command=_collector(tmp_path, rows=()))
    runner = PipelineRunner(settings, broadcaster)

    response = await runner.execute(_request(include_phone=True))

    assert response.success
    assert response.message == "No se encontraron lugares"
    assert response.place_count == 0
    assert not (tmp_path / "prospects_spa_2.0km_20250101_with_phones.csv").exists()


async def test_timeout_kills_process(tmp_path, broadcaster, events):
    slow = _script(tmp_path, "slow.py", "import time\ntime.sleep(30)\n")
    runner = PipelineRunner(_settings(tmp_path, collector_command=slow, collection_timeout=0.5), broadcaster)

    with pytest.raises(PipelineTimeoutError) as exc_info:
        await runner.execute(_request())
    await broadcaster.flush()

    assert exc_info.value.stage == "scraping"
    assert isinstance(events[-1], ErrorEvent)
    assert "cancelado" in events[-1].message


async def test_nonzero_exit(tmp_path, broadcaster, events):
    failing = _script(tmp_path, "fail.py", "import sys\nsys.exit(3)\n")
    runner = PipelineRunner(_settings(tmp_path, collector_command=failing), broadcaster)

    with pytest.raises(PipelineProcessError) as exc_info:
        await runner.execute(_request())
    await broadcaster.flush()

    assert exc_info.value.returncode == 3
    assert isinstance(events[-1], ErrorEvent)


async def test_missing_executable(tmp_path, broadcaster):
    settings = _settings(tmp_path, collector_command=[str(tmp_path / "no-such-binary")])
    runner = PipelineRunner(settings, broadcaster)

    with pytest.raises(PipelineProcessError):
        await runner.execute(_request())


async def test_collector_without_output(tmp_path, broadcaster):
    silent = _script(tmp_path, "silent.py", "print('done')\n")
    runner = PipelineRunner(_settings(tmp_path, collector_command=silent), broadcaster)

    with pytest.raises(PipelineProcessError) as exc_info:
        await runner.execute(_request())
    assert "CSV" in exc_info.value.message


def test_collector_arguments(tmp_path):
    runner = PipelineRunner(_settings(tmp_path, collector_command=["./mapsscrap-1"]), ProgressBroadcaster())
    request = PipelineRequest(latitude=19.5, longitude=-99.25, keyword="spa", radius=2.5)
    assert runner._collector_args(request) == [
        "./mapsscrap-1", "--lat", "19.5", "--lon", "-99.25", "--query", "spa", "--radius", "2.5",
    ]


async def test_cancel_kills_process(tmp_path, broadcaster):
    hanging = _script(tmp_path, "hang.py", textwrap.dedent("""
        import os, time
        with open("child.pid", "w") as f:
            f.write(str(os.getpid()))
        time.sleep(30)
    """))
    runner = PipelineRunner(_settings(tmp_path, collector_command=hanging), broadcaster)
    pid_file = tmp_path / "child.pid"

    task = asyncio.create_task(runner.execute(_request()))
    for _ in range(200):
        if pid_file.exists() and pid_file.read_text():
            break
        await asyncio.sleep(0.05)
    pid = int(pid_file.read_text())

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    # reaped, so the pid no longer exists
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)


async def test_child_error_is_relayed_once(tmp_path, broadcaster, events):
    failing = _script(tmp_path, "enricher_error.py", textwrap.dedent("""
        import json, sys
        print(json.dumps({"type": "error", "message": "No se pudo abrir el navegador"}), flush=True)
        sys.exit(1)
    """))
    runner = PipelineRunner(_settings(tmp_path, enrichment_command=failing), broadcaster)

    with pytest.raises(PipelineProcessError):
        await runner.execute(_request(include_phone=True))
    await broadcaster.flush()

    errors = [e for e in events if isinstance(e, ErrorEvent)]
    assert len(errors) == 1
    assert events[-1] is errors[0]
    assert any(isinstance(e, LogEvent) and e.message == "No se pudo abrir el navegador" for e in events)

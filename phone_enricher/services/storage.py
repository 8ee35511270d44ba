import csv
import logging
from datetime import datetime, timezone
from pathlib import Path

from phone_enricher.exceptions.custom import (
    EmptyBatchError,
    InputFileError,
    MalformedInputError,
    PersistenceError,
)
from phone_enricher.schemas.records import Record
from phone_enricher.schemas.responses import FileInfo

logger = logging.getLogger(__name__)

INPUT_COLUMNS = ("Name", "Address", "Stars", "Reviews", "Phone", "Hours", "Website", "GoogleURL")
OUTPUT_COLUMNS = (*INPUT_COLUMNS, "ScrapedPhone")

_RECORD_FIELDS = (
    "name", "address", "stars", "reviews", "phone", "hours", "website", "google_url",
)

OUTPUT_PREFIX = "prospects_"
ENRICHED_SUFFIX = "_with_phones"


def parse_row(row: list[str], line_number: int) -> Record:
    if len(row) < len(_RECORD_FIELDS):
        raise MalformedInputError(
            f"Row {line_number} has {len(row)} columns, expected {len(_RECORD_FIELDS)}",
            row=line_number,
        )
    record = Record(**dict(zip(_RECORD_FIELDS, row)))
    # Re-reading an enriched file keeps the phone found last time
    if len(row) > len(_RECORD_FIELDS) and row[len(_RECORD_FIELDS)].strip():
        record.assign_scraped_phone(row[len(_RECORD_FIELDS)].strip())
    return record


def read_records(path: Path) -> list[Record]:
    """Read listings from a CSV with a header row.

    Rows with missing columns are skipped with a warning.
    """
    try:
        with path.open(newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise InputFileError(f"Cannot read {path}: {exc}", path=str(path)) from exc

    if len(rows) < 2:
        raise EmptyBatchError("CSV must have at least header and one data row")

    records: list[Record] = []
    for line_number, row in enumerate(rows[1:], start=2):
        if not any(cell.strip() for cell in row):
            continue
        try:
            records.append(parse_row(row, line_number))
        except MalformedInputError as exc:
            logger.warning("Skipping row: %s", exc.message)
    return records


def write_records(records: list[Record], path: Path) -> None:
    try:
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(OUTPUT_COLUMNS)
            for r in records:
                writer.writerow([
                    r.name, r.address, r.stars, r.reviews, r.phone,
                    r.hours, r.website, r.google_url, r.scraped_phone,
                ])
    except OSError as exc:
        raise PersistenceError(f"Cannot write {path}: {exc}", path=str(path)) from exc
    logger.info("Saved %d records to %s", len(records), path)


def enriched_path(path: Path) -> Path:
    """prospects_spa.csv -> prospects_spa_with_phones.csv"""
    return path.with_name(f"{path.stem}{ENRICHED_SUFFIX}{path.suffix or '.csv'}")


def _format_radius(radius: float, decimals: int) -> str:
    return f"{radius:.{decimals}f}"


def candidate_patterns(keyword: str, radius: float) -> list[str]:
    sanitized = keyword.replace(" ", "_").replace("/", "_").replace("\\", "_")
    return [
        f"{OUTPUT_PREFIX}{sanitized}_{_format_radius(radius, 1)}km_*.csv",
        f"{OUTPUT_PREFIX}{sanitized}_{_format_radius(radius, 0)}km_*.csv",
        f"{OUTPUT_PREFIX}{sanitized}_*{ENRICHED_SUFFIX}.csv",
        f"{OUTPUT_PREFIX}{sanitized}_*.csv",
        f"{OUTPUT_PREFIX}*{ENRICHED_SUFFIX}.csv",
        f"{OUTPUT_PREFIX}*.csv",
    ]


def find_latest_csv(
    directory: Path, keyword: str, radius: float, *, enriched: bool | None = None,
) -> Path | None:
    """Newest CSV for the first pattern that matches anything.

    ``enriched`` restricts the result to ``*_with_phones.csv`` files (True)
    or to plain collector output (False).
    """
    for pattern in candidate_patterns(keyword, radius):
        matches = [p for p in directory.glob(pattern) if p.is_file()]
        if enriched is not None:
            matches = [p for p in matches if p.stem.endswith(ENRICHED_SUFFIX) == enriched]
        logger.debug("Pattern %s found %d files", pattern, len(matches))
        if matches:
            latest = max(matches, key=lambda p: p.stat().st_mtime)
            logger.info("Selected file: %s", latest.name)
            return latest
    logger.info("No CSV file found in %s", directory)
    return None


def is_valid_filename(filename: str) -> bool:
    if not filename.endswith(".csv"):
        return False
    if ".." in filename or "/" in filename or "\\" in filename:
        return False
    return filename.startswith(OUTPUT_PREFIX)


def list_output_files(directory: Path) -> list[FileInfo]:
    files: list[FileInfo] = []
    for path in sorted(directory.glob(f"{OUTPUT_PREFIX}*.csv")):
        try:
            stat = path.stat()
        except OSError:
            continue
        files.append(FileInfo(
            name=path.name,
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        ))
    return files

import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from phone_enricher.dependencies import SettingsDep
from phone_enricher.schemas.responses import FileInfo
from phone_enricher.services import storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/files", response_model=list[FileInfo])
async def list_files(settings: SettingsDep) -> list[FileInfo]:
    return storage.list_output_files(Path(settings.output_dir))


@router.get("/download/{filename}")
async def download_file(filename: str, settings: SettingsDep) -> FileResponse:
    logger.info("Download request for file: %s", filename)
    if not storage.is_valid_filename(filename):
        logger.warning("Invalid filename: %s", filename)
        raise HTTPException(status_code=400, detail="Invalid filename")

    path = Path(settings.output_dir) / filename
    if not path.is_file():
        logger.info("File not found: %s", path)
        raise HTTPException(status_code=404, detail=f"File not found: {filename}")

    return FileResponse(path, media_type="text/csv", filename=filename)

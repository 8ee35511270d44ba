import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from phone_enricher.dependencies import BroadcasterDep
from phone_enricher.schemas.progress import ProgressEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.websocket("/ws")
async def progress_socket(websocket: WebSocket, broadcaster: BroadcasterDep) -> None:
    await websocket.accept()

    async def send(event: ProgressEvent) -> None:
        await websocket.send_text(event.model_dump_json(exclude_none=True))

    subscription = broadcaster.register(send)
    logger.info("WebSocket client connected (observer %d)", subscription.id)
    try:
        # Clients only listen; reading just detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect as exc:
        # The observer is dropped on its next failed write
        logger.info("WebSocket client disconnected (code=%s)", exc.code)

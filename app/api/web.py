"""Web API — WebSocket live updates for a character sheet."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.api.characters import RollRequestBody, submit_roll
from app.domain.dispatcher import EngineContext
from app.infra.engine import get_engine
from app.infra.ws_manager import ws_manager

logger = logging.getLogger("sheet-engine.web")

router = APIRouter(prefix="/api/web", tags=["web"])


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "message": "Web API active."}


@router.websocket("/ws/{character_id}")
async def websocket_character(
    websocket: WebSocket,
    character_id: str,
    ctx: Annotated[EngineContext, Depends(get_engine)],
) -> None:
    """WebSocket endpoint for a character's rolls and state changes.

    Connect with: ws://host/api/web/ws/{character_id}

    Receives: JSON roll requests (same format as POST /api/characters/{id}/rolls).
    Sends: EngineResult JSON for every roll or transition on the character,
    whichever client submitted it.
    """
    connection_id = await ws_manager.connect(character_id, websocket)

    try:
        while True:
            text = await websocket.receive_text()
            try:
                # Frames that are not JSON fail validation like any other bad body.
                body = RollRequestBody.model_validate_json(text)
            except ValidationError as exc:
                await websocket.send_json(
                    {"success": False, "error": str(exc), "error_code": "invalid_request"}
                )
                continue
            # The result reaches this socket through the character broadcast.
            await submit_roll(ctx, body, character_id)
    except WebSocketDisconnect:
        logger.debug("Socket %s left character %s", connection_id, character_id)
    finally:
        ws_manager.disconnect(character_id, connection_id)

"""WebSocket endpoint relaying battle events in real time."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

router = APIRouter()

# One outgoing queue per connected client
connections: list[asyncio.Queue] = []


def relay(name: str, payload: dict[str, Any]) -> None:
    """Event bus subscriber: queue ``{"type", "payload"}`` for every client."""
    message = {"type": name, "payload": jsonable_encoder(payload)}
    for queue in connections:
        queue.put_nowait(message)


async def _pump(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        message = await queue.get()
        await websocket.send_json(message)


@router.websocket("/ws")
async def battle_events(websocket: WebSocket) -> None:
    """Stream every published battle event to the client."""
    await websocket.accept()

    queue: asyncio.Queue = asyncio.Queue()
    connections.append(queue)
    sender = None
    try:
        await websocket.send_json({"type": "connected", "payload": {}})
        sender = asyncio.create_task(_pump(websocket, queue))
        # Keep the connection open; client messages are ignored
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected")
    finally:
        if sender is not None:
            sender.cancel()
        connections.remove(queue)

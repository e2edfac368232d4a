# app/routers/realtime.py
"""
WebSocket stream of lifecycle events for map / table / reports views.

/ws/alerts                 — every terminal
/ws/alerts?terminalId=T01  — one terminal only

Messages: {"event": "<name>", "data": {...}}. Clients may send
{"type": "ping"} and get {"type": "pong"}; the server pings on its own every
WS_PING_INTERVAL seconds. Missed events are not replayed — refetch over REST.
"""

import asyncio
import json
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.config import settings
from app.services.broadcaster import broadcaster
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


async def _server_ping_loop(websocket: WebSocket, stop_event: asyncio.Event):
    while not stop_event.is_set():
        await asyncio.sleep(settings.WS_PING_INTERVAL)
        if stop_event.is_set():
            break
        try:
            await websocket.send_json({"type": "ping"})
        except Exception:
            break


async def _receive_loop(websocket: WebSocket, stop_event: asyncio.Event):
    try:
        while not stop_event.is_set():
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError as e:
                logger.warning(f"[Realtime] Invalid JSON from observer: {e}")
                continue
            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        stop_event.set()


@router.websocket("/ws/alerts")
async def alerts_stream(websocket: WebSocket, terminalId: Optional[str] = None):
    observer = await broadcaster.connect(websocket, terminal_id=terminalId)
    await websocket.send_json({"type": "connected", "terminalId": terminalId})

    stop_event = asyncio.Event()
    ping_task = asyncio.create_task(_server_ping_loop(websocket, stop_event))
    receive_task = asyncio.create_task(_receive_loop(websocket, stop_event))
    try:
        await asyncio.wait([ping_task, receive_task], return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop_event.set()
        for task in (ping_task, receive_task):
            task.cancel()
        await broadcaster.disconnect(observer)

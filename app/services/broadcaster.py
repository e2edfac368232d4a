# app/services/broadcaster.py
"""
Real-time fan-out of lifecycle events to connected dashboards.

Best-effort only: an event is serialized once and pushed to every matching
observer; failed sockets are dropped, nothing is stored or replayed. A client
that reconnects re-fetches state through the REST read endpoints.

Events:
    alert:created        — new alert ingested
    rescueForm:created   — dispatcher filed a rescue form
    alert:statusUpdate   — alert / rescue form status changed
    postRescue:created   — after-action report filed
    waitlist:formRemoved — rescue form left the waitlist (dispatched/completed)
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from fastapi import WebSocket

from app.utils.logger import get_logger

logger = get_logger(__name__)

ALERT_CREATED = "alert:created"
RESCUE_FORM_CREATED = "rescueForm:created"
ALERT_STATUS_UPDATE = "alert:statusUpdate"
POST_RESCUE_CREATED = "postRescue:created"
WAITLIST_FORM_REMOVED = "waitlist:formRemoved"
EVENTS = (ALERT_CREATED, RESCUE_FORM_CREATED, ALERT_STATUS_UPDATE,
          POST_RESCUE_CREATED, WAITLIST_FORM_REMOVED)


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


@dataclass(eq=False)
class Observer:
    """One connected dashboard. terminal_id=None follows every terminal."""
    ws: WebSocket
    terminal_id: Optional[str] = None
    connected_at: datetime = field(default_factory=datetime.utcnow)

    def wants(self, terminal_id: Optional[str]) -> bool:
        return self.terminal_id is None or self.terminal_id == terminal_id


class ConnectionManager:
    def __init__(self):
        self._observers: set[Observer] = set()
        self._lock = asyncio.Lock()

    async def connect(self, ws: WebSocket, terminal_id: Optional[str] = None) -> Observer:
        await ws.accept()
        observer = Observer(ws=ws, terminal_id=terminal_id)
        async with self._lock:
            self._observers.add(observer)
            total = len(self._observers)
        logger.info(f"[Realtime] Observer connected (terminal={terminal_id or 'all'}, total={total})")
        return observer

    async def disconnect(self, observer: Observer) -> None:
        async with self._lock:
            self._observers.discard(observer)
            total = len(self._observers)
        logger.info(f"[Realtime] Observer disconnected (total={total})")

    async def publish(self, event: str, payload: dict, terminal_id: Optional[str] = None) -> int:
        """
        Send `event` to every observer following `terminal_id` (or all).
        Returns the number of observers it reached.
        """
        if event not in EVENTS:
            raise ValueError(f"Unknown realtime event: {event}")

        async with self._lock:
            targets = [o for o in self._observers if o.wants(terminal_id)]
        if not targets:
            return 0

        message = json.dumps({"event": event, "data": payload}, default=_json_default)

        failed = []
        for observer in targets:
            try:
                await observer.ws.send_text(message)
            except Exception as e:
                logger.warning(f"[Realtime] Failed to send {event}: {e}")
                failed.append(observer)

        if failed:
            async with self._lock:
                for observer in failed:
                    self._observers.discard(observer)

        delivered = len(targets) - len(failed)
        logger.debug(f"[Realtime] {event} → {delivered} observer(s)")
        return delivered

    @property
    def count(self) -> int:
        return len(self._observers)


broadcaster = ConnectionManager()

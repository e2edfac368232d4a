# tests/test_broadcaster.py
"""Unit tests for the real-time fan-out."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime
from app.services.broadcaster import ALERT_CREATED, WAITLIST_FORM_REMOVED, ConnectionManager


def fake_socket(fail=False):
    ws = MagicMock()
    ws.accept = AsyncMock()
    ws.send_text = AsyncMock(side_effect=RuntimeError("socket closed") if fail else None)
    return ws


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_publish_reaches_every_observer(self):
        manager = ConnectionManager()
        a, b = fake_socket(), fake_socket()
        await manager.connect(a)
        await manager.connect(b)

        delivered = await manager.publish(ALERT_CREATED, {"alertId": "ALRT0001", "timeSent": datetime(2025, 10, 1, 8, 0)})
        assert delivered == 2
        a.accept.assert_awaited_once()

        message = json.loads(a.send_text.call_args.args[0])
        assert message == {"event": "alert:created",
                           "data": {"alertId": "ALRT0001", "timeSent": "2025-10-01T08:00:00"}}
        # serialized once, same text for everyone
        assert a.send_text.call_args.args[0] == b.send_text.call_args.args[0]

    @pytest.mark.asyncio
    async def test_failed_socket_is_dropped(self):
        manager = ConnectionManager()
        good, bad = fake_socket(), fake_socket(fail=True)
        await manager.connect(good)
        await manager.connect(bad)

        assert await manager.publish(WAITLIST_FORM_REMOVED, {"alertId": "ALRT0001"}) == 1
        assert manager.count == 1

        await manager.publish(WAITLIST_FORM_REMOVED, {"alertId": "ALRT0002"})
        assert bad.send_text.await_count == 1
        assert good.send_text.await_count == 2

    @pytest.mark.asyncio
    async def test_terminal_filter(self):
        manager = ConnectionManager()
        everything, t01, t03 = fake_socket(), fake_socket(), fake_socket()
        await manager.connect(everything)
        await manager.connect(t01, terminal_id="T01")
        await manager.connect(t03, terminal_id="T03")

        assert await manager.publish(ALERT_CREATED, {"alertId": "ALRT0001"}, terminal_id="T01") == 2
        t03.send_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_disconnect(self):
        manager = ConnectionManager()
        observer = await manager.connect(fake_socket())
        await manager.disconnect(observer)
        assert manager.count == 0
        assert await manager.publish(ALERT_CREATED, {}) == 0

    @pytest.mark.asyncio
    async def test_unknown_event_rejected(self):
        with pytest.raises(ValueError):
            await ConnectionManager().publish("alert:deleted", {})

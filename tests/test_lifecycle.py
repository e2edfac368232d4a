# tests/test_lifecycle.py
"""Unit tests for the shared alert / rescue form state machine."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import pytest
from unittest.mock import MagicMock
from datetime import datetime
from sqlalchemy.exc import IntegrityError
from app.exceptions import BadRequestError, ConflictError
from app.models import Alert, RescueForm
from app.services.lifecycle import (
    AlertStatus, CREATION_STATUSES, coerce_status, commit_or_raise, is_dispatched_or_later,
    next_sequential_id, transition,
)
from app.utils.locks import KeyedLock


class TestCoerceStatus:
    def test_accepts_known_status(self):
        assert coerce_status("Dispatched") is AlertStatus.DISPATCHED

    def test_legacy_waitlist_spelling(self):
        assert coerce_status("Waitlist") is AlertStatus.WAITLISTED

    def test_rejects_unknown(self):
        with pytest.raises(BadRequestError) as exc:
            coerce_status("Pending")
        assert "Waitlisted|Dispatched|Completed" in exc.value.message

    def test_completed_not_allowed_at_creation(self):
        with pytest.raises(BadRequestError):
            coerce_status("Completed", allowed=CREATION_STATUSES)


class TestTransition:
    def test_writes_both_records(self):
        alert = Alert(id="ALRT0001", status="Waitlisted")
        form = RescueForm(id="RF0001", status="Waitlisted")
        previous = transition(alert, form, AlertStatus.DISPATCHED)
        assert previous == "Waitlisted"
        assert alert.status == form.status == "Dispatched"

    def test_backward_move_allowed(self):
        alert = Alert(id="ALRT0001", status="Dispatched")
        form = RescueForm(id="RF0001", status="Dispatched")
        transition(alert, form, AlertStatus.WAITLISTED)
        assert alert.status == form.status == "Waitlisted"

    def test_dispatched_or_later(self):
        assert not is_dispatched_or_later(None)
        assert not is_dispatched_or_later(RescueForm(status="Waitlisted"))
        assert is_dispatched_or_later(RescueForm(status="Dispatched"))
        assert is_dispatched_or_later(RescueForm(status="Completed"))


class TestSequentialIds:
    def _alert(self, alert_id):
        return Alert(id=alert_id, terminal_id="T01", alert_type="Critical", sent_through="Sensor",
                     status="Unassigned", created_at=datetime.utcnow())

    def test_first_id(self, db):
        assert next_sequential_id(db, Alert, "ALRT") == "ALRT0001"

    def test_increments_past_padding_width(self, db):
        db.add_all([self._alert("ALRT9999"), self._alert("ALRT0500")])
        db.commit()
        assert next_sequential_id(db, Alert, "ALRT") == "ALRT10000"

        db.add(self._alert("ALRT10000"))
        db.commit()
        assert next_sequential_id(db, Alert, "ALRT") == "ALRT10001"


class TestCommitOrRaise:
    def test_integrity_error_becomes_domain_error(self):
        db = MagicMock()
        db.commit.side_effect = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(ConflictError):
            commit_or_raise(db, ConflictError("Rescue Form Already Exists"))
        db.rollback.assert_called_once()

    def test_clean_commit(self):
        db = MagicMock()
        commit_or_raise(db, ConflictError("Rescue Form Already Exists"))
        db.commit.assert_called_once()
        db.rollback.assert_not_called()


class TestKeyedLock:
    @pytest.mark.asyncio
    async def test_same_key_serializes(self):
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.hold("ALRT0001"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_different_keys_overlap(self):
        locks = KeyedLock()
        order = []

        async def worker(key):
            async with locks.hold(key):
                order.append(f"{key}-in")
                await asyncio.sleep(0.01)
                order.append(f"{key}-out")

        await asyncio.gather(worker("ALRT0001"), worker("ALRT0002"))
        assert order[:2] == ["ALRT0001-in", "ALRT0002-in"]

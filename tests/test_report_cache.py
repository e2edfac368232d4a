# tests/test_report_cache.py
"""Unit tests for the Report Cache and its post-commit invalidation hook."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock
from datetime import datetime
from app.models import Alert, Dispatcher
from app.services import report_cache as cache
from app.services.report_cache import ReportCache, report_cache


class TestReportCache:
    def test_miss_then_hit(self):
        c = ReportCache()
        assert c.get(cache.PENDING) is None
        c.set(cache.PENDING, [{"alertId": "ALRT0001"}])
        assert c.get(cache.PENDING) == [{"alertId": "ALRT0001"}]
        assert c.stats() == {"entries": 1, "hits": 1, "misses": 1}

    def test_empty_list_is_a_valid_snapshot(self):
        c = ReportCache()
        c.set(cache.COMPLETED, [])
        loader = MagicMock(return_value=["fresh"])
        assert c.get_or_load(cache.COMPLETED, loader) == []
        loader.assert_not_called()

    def test_returned_value_is_a_copy(self):
        c = ReportCache()
        c.set(cache.PENDING, [{"alertId": "ALRT0001"}])
        c.get(cache.PENDING)[0]["alertId"] = "mutated"
        assert c.get(cache.PENDING)[0]["alertId"] == "ALRT0001"

    def test_unknown_category_rejected(self):
        with pytest.raises(ValueError):
            ReportCache().set("bogus", [])

    def test_refresh_bypasses_and_reseeds(self):
        c = ReportCache()
        c.set(cache.PENDING, ["stale"])
        loader = MagicMock(return_value=["fresh"])
        assert c.get_or_load(cache.PENDING, loader, refresh=True) == ["fresh"]
        loader.assert_called_once()
        assert c.get(cache.PENDING) == ["fresh"]

    def test_load_racing_a_commit_is_not_stored(self):
        c = ReportCache()

        def loader():
            # a write commits while the rows are being read
            c.invalidate()
            return ["before-write"]

        assert c.get_or_load(cache.COMPLETED, loader) == ["before-write"]
        assert c.get(cache.COMPLETED) is None

        loader_after = MagicMock(return_value=["after-write"])
        assert c.get_or_load(cache.COMPLETED, loader_after) == ["after-write"]
        assert c.get(cache.COMPLETED) == ["after-write"]

    def test_refresh_racing_a_commit_is_not_stored(self):
        c = ReportCache()
        c.set(cache.PENDING, ["old"])

        def loader():
            c.invalidate()
            return ["before-write"]

        c.get_or_load(cache.PENDING, loader, refresh=True)
        assert c.get(cache.PENDING) is None

    def test_invalidate_scopes(self):
        c = ReportCache()
        c.set(cache.AGGREGATED, ["a"], key="alert:ALRT0001")
        c.set(cache.AGGREGATED, ["b"], key="terminal:T01")
        c.set(cache.CHART, ["c"], key="last3months")

        assert c.invalidate(cache.AGGREGATED, "alert:ALRT0001") == 1
        assert c.get(cache.AGGREGATED, "terminal:T01") == ["b"]
        assert c.invalidate(cache.AGGREGATED) == 1
        assert c.invalidate() == 1
        assert c.stats()["entries"] == 0


class TestInvalidationHook:
    def _seed_cache(self):
        report_cache.set(cache.PENDING, ["snapshot"])
        report_cache.set(cache.CHART, ["snapshot"], key="last6months")

    def test_commit_touching_alerts_clears_everything(self, db):
        self._seed_cache()
        db.add(Alert(id="ALRT0001", terminal_id="T01", alert_type="Critical", sent_through="Sensor",
                     status="Unassigned", created_at=datetime.utcnow()))
        db.commit()
        assert report_cache.stats()["entries"] == 0

    def test_status_change_clears(self, db, make_rescue):
        alert = make_rescue(status="Waitlisted", with_form=True)
        self._seed_cache()
        alert.status = "Dispatched"
        db.commit()
        assert report_cache.get(cache.PENDING) is None

    def test_unrelated_table_keeps_snapshot(self, db):
        self._seed_cache()
        db.add(Dispatcher(id="D02", name="Ramon Reyes"))
        db.commit()
        assert report_cache.get(cache.PENDING) == ["snapshot"]

    def test_rollback_keeps_snapshot(self, db):
        self._seed_cache()
        db.add(Alert(id="ALRT0001", terminal_id="T01", alert_type="Critical", sent_through="Sensor",
                     status="Unassigned", created_at=datetime.utcnow()))
        db.flush()
        db.rollback()
        assert report_cache.get(cache.PENDING) == ["snapshot"]

        # The rolled-back flush must not leak into the next, unrelated commit
        db.add(Dispatcher(id="D02", name="Ramon Reyes"))
        db.commit()
        assert report_cache.get(cache.PENDING) == ["snapshot"]

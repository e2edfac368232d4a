# tests/test_api.py
"""End-to-end HTTP tests: one rescue from alert to archived report."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.services.broadcaster import broadcaster
from conftest import ADMIN, DISPATCHER, FOCAL, FULL_ASSESSMENT

API = "/api/v1"
REPORT = {"noOfPersonnelDeployed": 5, "resourcesUsed": ["boat", "life vests"], "actionTaken": "Evacuated family of 4"}


class TestRescueLifecycle:
    def test_full_rescue(self, client):
        # 1. terminal raises an alert, no session needed
        r = client.post(f"{API}/alerts/critical",
                        json={"terminalId": "T01", "location": {"lat": 14.59, "lng": 120.98, "address": "Block 1"}})
        assert r.status_code == 201
        alert = r.json()["alert"]
        alert_id = alert["id"]
        assert alert["status"] == "Unassigned"
        assert alert["alertType"] == "Critical"

        # 2. dispatch is gated on a rescue form
        r = client.patch(f"{API}/alerts/{alert_id}/status", json={"action": "dispatch"}, headers=DISPATCHER)
        assert r.status_code == 400
        assert r.json()["message"] == "Rescue Form must be created before dispatching or waitlisting"

        # 3. admins may not file rescue forms
        r = client.post(f"{API}/forms/{alert_id}", json=FULL_ASSESSMENT, headers=ADMIN)
        assert r.status_code == 403
        assert r.json() == {"status": "fail", "kind": "Forbidden",
                            "message": "Access denied: Only dispatchers can create rescue forms."}

        # 4. dispatcher files the form, rescue goes on the waitlist
        r = client.post(f"{API}/forms/{alert_id}", json=FULL_ASSESSMENT, headers=DISPATCHER)
        assert r.status_code == 201
        assert r.json()["status"] == "Waitlisted"
        assert client.get(f"{API}/alerts/{alert_id}", headers=DISPATCHER).json()["status"] == "Waitlisted"

        r = client.post(f"{API}/forms/{alert_id}", json=FULL_ASSESSMENT, headers=DISPATCHER)
        assert r.status_code == 409
        assert r.json()["kind"] == "Conflict"

        # 5. no report before a team is sent
        r = client.post(f"{API}/post/{alert_id}", json=REPORT, headers=DISPATCHER)
        assert r.status_code == 400
        assert "Dispatched" in r.json()["message"]

        # 6. dispatch, shows up as pending
        r = client.patch(f"{API}/alerts/{alert_id}/status", json={"action": "dispatch"}, headers=DISPATCHER)
        assert r.status_code == 200
        assert r.json()["message"] == "Alert dispatched successfully"
        assert r.json()["alert"]["status"] == "Dispatched"
        pending = client.get(f"{API}/post/pending", headers=DISPATCHER).json()
        assert [p["alertId"] for p in pending] == [alert_id]

        # 7. after-action report completes the rescue
        r = client.post(f"{API}/post/{alert_id}", json=REPORT, headers=DISPATCHER)
        assert r.status_code == 201
        body = r.json()
        assert body["message"] == "Post Rescue Form Created"
        assert body["newForm"]["alertId"] == alert_id
        assert client.get(f"{API}/post/pending", headers=DISPATCHER).json() == []
        completed = client.get(f"{API}/post/completed", headers=DISPATCHER).json()
        assert [c["alertId"] for c in completed] == [alert_id]

        r = client.post(f"{API}/post/{alert_id}", json=REPORT, headers=DISPATCHER)
        assert r.status_code == 400
        assert r.json()["message"] == "Post Rescue Form Already Exists"

        # archive hides it from completed, restore brings it back
        r = client.delete(f"{API}/post/archive/{alert_id}", headers=DISPATCHER)
        assert r.json() == {"message": "Post Rescue Form Archived Successfully"}
        assert client.get(f"{API}/post/completed", headers=DISPATCHER).json() == []
        archived = client.get(f"{API}/post/archived", headers=DISPATCHER).json()
        assert [a["emergencyId"] for a in archived] == [alert_id]

        client.post(f"{API}/post/restore/{alert_id}", headers=DISPATCHER)
        assert len(client.get(f"{API}/post/completed", headers=DISPATCHER).json()) == 1

        doc = client.get(f"{API}/post/report/{alert_id}", headers=DISPATCHER).json()
        assert doc["actionTaken"] == "Evacuated family of 4"
        assert doc["waterLevel"] == "Waist-deep - rising fast"


class TestBoundary:
    def test_unknown_terminal(self, client):
        r = client.post(f"{API}/alerts/user", json={"terminalID": "T99"})
        assert r.status_code == 400
        assert r.json() == {"status": "fail", "kind": "BadRequest", "message": "Terminal Not Found"}

    def test_reads_need_identity(self, client):
        r = client.get(f"{API}/alerts")
        assert r.status_code == 401
        assert r.json()["kind"] == "Unauthorized"

    def test_focal_cannot_read_reports(self, client):
        assert client.get(f"{API}/alerts", headers=FOCAL).status_code == 200
        assert client.get(f"{API}/post/completed", headers=FOCAL).status_code == 403

    def test_missing_alert(self, client):
        r = client.get(f"{API}/alerts/ALRT0404", headers=DISPATCHER)
        assert r.status_code == 404
        assert r.json()["message"] == "Alert Not Found"

    def test_validation_error_shape(self, client, make_rescue):
        make_rescue(status="Dispatched", with_form=True)
        r = client.post(f"{API}/post/ALRT0001", json={**REPORT, "actionTaken": ""}, headers=DISPATCHER)
        assert r.status_code == 400
        assert r.json()["kind"] == "BadRequest"
        assert "actionTaken" in r.json()["message"]

    def test_incomplete_assessment(self, client, make_rescue):
        make_rescue()
        r = client.post(f"{API}/forms/ALRT0001", json={"waterLevel": "Knee-deep"}, headers=DISPATCHER)
        assert r.status_code == 400
        assert r.json()["message"] == "All rescue details are required when focal is reachable."

    def test_maintenance_is_admin_only(self, client, make_rescue):
        make_rescue(status="Dispatched", with_report=True)
        assert client.post(f"{API}/post/fix/rescue-form-status", headers=DISPATCHER).status_code == 403

        r = client.post(f"{API}/post/fix/rescue-form-status", headers=ADMIN)
        assert r.status_code == 200
        assert r.json() == {"message": "Fixed 1 rescue form statuses", "fixed": 1, "alertIds": ["ALRT0001"]}

        r = client.post(f"{API}/post/migrate/alert-types", headers=ADMIN)
        assert r.json()["updatedCount"] == 0

    def test_chart_and_cache_clear(self, client):
        r = client.get(f"{API}/post/chart/alert-types", params={"timeRange": "lastyear"}, headers=DISPATCHER)
        assert len(r.json()) == 4
        r = client.delete(f"{API}/post/cache", headers=DISPATCHER)
        assert r.json() == {"message": "Reports cache cleared successfully"}

    def test_health(self, client):
        body = client.get(f"{API}/health").json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert "entries" in body["reportCache"]


class TestRealtime:
    def test_connect_ping_disconnect(self, client):
        before = broadcaster.count
        with client.websocket_connect("/ws/alerts?terminalId=T01") as ws:
            assert ws.receive_json() == {"type": "connected", "terminalId": "T01"}
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}
            assert broadcaster.count == before + 1
        assert broadcaster.count == before

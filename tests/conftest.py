# tests/conftest.py
"""Shared fixtures: in-memory SQLite store seeded with one live terminal."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_TO_FILE", "false")

import json
import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import create_tables, get_db
from app.models import Alert, Dispatcher, FocalPerson, Neighborhood, PostRescueForm, RescueForm, Terminal
from app.services.report_cache import report_cache

DISPATCHER = {"X-User-Id": "D01", "X-User-Role": "dispatcher"}
ADMIN = {"X-User-Id": "A01", "X-User-Role": "admin"}
FOCAL = {"X-User-Id": "FP01", "X-User-Role": "focal"}

FULL_ASSESSMENT = {
    "waterLevel": "Waist-deep",
    "waterLevelDetails": "rising fast",
    "urgencyOfEvacuation": "Immediate",
    "hazardPresent": "Electrical wires",
    "accessibility": "Boat only",
    "resourceNeeds": "Rescue boat",
}


def seed(session):
    session.add_all([
        Terminal(id="T01", name="Terminal 1", status="Online"),
        Terminal(id="T02", name="Terminal 2", archived=True),
        Terminal(id="T03", name="Terminal 3", status="Online"),
        FocalPerson(id="FP01", first_name="Maria", last_name="Santos", contact_number="09170000001",
                    address=json.dumps({"address": "Block 1, Lot 2", "coordinates": "120.98,14.59"})),
        Neighborhood(id="N01", terminal_id="T01", focal_person_id="FP01"),
        Dispatcher(id="D01", name="Dana Cruz"),
    ])
    session.commit()


def make_session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(autouse=True)
def clean_report_cache():
    report_cache.clear()
    report_cache.hits = report_cache.misses = 0
    yield
    report_cache.clear()


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_tables(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = make_session_factory(engine)()
    seed(session)
    yield session
    session.close()


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from app.main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_rescue(db):
    """
    Insert an alert (and optionally its rescue form / report) directly,
    bypassing the services. Returns the Alert.
    """
    counter = {"n": 0}

    def _make(status="Unassigned", alert_type="Critical", terminal_id="T01", created_at=None,
              with_form=None, with_report=False, archived=False):
        counter["n"] += 1
        n = counter["n"]
        created_at = created_at or datetime.utcnow()
        alert = Alert(id=f"ALRT{n:04d}", terminal_id=terminal_id, alert_type=alert_type,
                      sent_through="Sensor", status=status, created_at=created_at)
        db.add(alert)
        if with_form or with_report:
            db.add(RescueForm(id=f"RF{n:04d}", alert_id=alert.id, dispatcher_id="D01",
                              focal_person_id="FP01", original_alert_type=alert_type,
                              water_level="Knee-deep", urgency_of_evacuation="Moderate",
                              hazard_present="None", accessibility="Road", resource_needs="Food",
                              status=status, created_at=created_at))
        if with_report:
            db.add(PostRescueForm(alert_id=alert.id, no_of_personnel_deployed=4,
                                  resources_used=["boat", "ropes"], action_taken="Evacuated family",
                                  created_at=created_at, completed_at=created_at,
                                  archived_at=datetime.utcnow() if archived else None))
        db.commit()
        return alert

    return _make

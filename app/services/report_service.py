# app/services/report_service.py
"""
Report views served through the Report Cache.

    pending     — dispatched rescues still waiting for an after-action report
    completed   — completed rescues with a visible (unarchived) report
    archived    — reports hidden from the completed view
    aggregated  — full report documents (by alert / by terminal / all)
    table       — completed-table rows (by alert / by terminal / all)
    chart       — alert-type counts over a time range

Each list is cache-first; refresh=True reads the store for that request and
re-seeds the snapshot. Rows use the dashboards' camelCase keys.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.exceptions import BadRequestError, NotFoundError
from app.models.alert import Alert
from app.models.dispatcher import Dispatcher
from app.models.focal_person import FocalPerson
from app.models.neighborhood import Neighborhood
from app.models.post_rescue_form import PostRescueForm
from app.models.rescue_form import RescueForm
from app.models.terminal import Terminal
from app.services import report_cache as cache
from app.services.lifecycle import AlertStatus, AlertType
from app.services.report_cache import report_cache
from app.utils.location import parse_location
from app.utils.logger import get_logger

logger = get_logger(__name__)

NA = "N/A"
TIME_RANGES = ("last3months", "last6months", "lastyear")
DEFAULT_TIME_RANGE = "last3months"


def cache_key(alert_id: Optional[str] = None, terminal_id: Optional[str] = None) -> str:
    if alert_id:
        return f"alert:{alert_id}"
    if terminal_id:
        return f"terminal:{terminal_id}"
    return cache.ALL


@dataclass
class _Context:
    """Everything joined onto an alert for display."""
    terminal: Optional[Terminal]
    neighborhood: Optional[Neighborhood]
    focal: Optional[FocalPerson]
    dispatcher: Optional[Dispatcher]


def _context(db: Session, alert: Alert, form: Optional[RescueForm]) -> _Context:
    neighborhood = db.query(Neighborhood).filter(Neighborhood.terminal_id == alert.terminal_id).first()
    focal_id = (form.focal_person_id if form else None) or (neighborhood.focal_person_id if neighborhood else None)
    focal = db.query(FocalPerson).filter(FocalPerson.id == focal_id).first() if focal_id else None
    dispatcher = db.query(Dispatcher).filter(Dispatcher.id == form.dispatcher_id).first() if form else None
    return _Context(terminal=alert.terminal, neighborhood=neighborhood, focal=focal, dispatcher=dispatcher)


def _alert_type(alert: Alert, form: Optional[RescueForm]) -> Optional[str]:
    return (form.original_alert_type if form else None) or alert.alert_type


def _hhmmss(start: Optional[datetime], end: Optional[datetime]) -> Optional[str]:
    if not start or not end:
        return None
    total = max(0, int((end - start).total_seconds()))
    return f"{total // 3600:02d}:{total % 3600 // 60:02d}:{total % 60:02d}"


# ── Pending ─────────────────────────────────────────────────────────────────
def _load_pending(db: Session) -> list[dict]:
    rows = (
        db.query(Alert, RescueForm)
        .join(RescueForm, RescueForm.alert_id == Alert.id)
        .outerjoin(PostRescueForm, PostRescueForm.alert_id == Alert.id)
        .filter(RescueForm.status == AlertStatus.DISPATCHED.value, PostRescueForm.id.is_(None))
        .order_by(Alert.created_at.asc(), Alert.id.asc())
        .all()
    )
    out = []
    for alert, form in rows:
        ctx = _context(db, alert, form)
        # Map view: prefer the focal person's registered address, fall back to the alert's own
        location = parse_location(ctx.focal.address if ctx.focal and ctx.focal.address else alert.location)
        out.append({
            "alertId": alert.id,
            "terminalName": ctx.terminal.name if ctx.terminal else None,
            "alertType": _alert_type(alert, form),
            "dispatcherName": ctx.dispatcher.name if ctx.dispatcher else None,
            "rescueStatus": form.status,
            "createdAt": alert.created_at,
            "address": location.address or NA,
            "coordinates": location.coordinates or NA,
            "neighborhoodId": ctx.neighborhood.id if ctx.neighborhood else None,
            "focalFirstName": ctx.focal.first_name if ctx.focal else None,
            "focalLastName": ctx.focal.last_name if ctx.focal else None,
            "focalPersonName": (ctx.focal.full_name if ctx.focal else "") or NA,
        })
    return out


def list_pending(db: Session, refresh: bool = False) -> list[dict]:
    return report_cache.get_or_load(cache.PENDING, lambda: _load_pending(db), refresh=refresh)


# ── Completed / archived ────────────────────────────────────────────────────
def _report_rows(db: Session, archived: bool, alert_id: Optional[str] = None):
    q = (
        db.query(Alert, RescueForm, PostRescueForm)
        .join(RescueForm, RescueForm.alert_id == Alert.id)
        .join(PostRescueForm, PostRescueForm.alert_id == Alert.id)
    )
    if archived:
        q = q.filter(PostRescueForm.archived_at.isnot(None))
    else:
        q = q.filter(RescueForm.status == AlertStatus.COMPLETED.value, PostRescueForm.archived_at.is_(None))
    if alert_id:
        q = q.filter(Alert.id == alert_id)
    return q


def _load_completed(db: Session) -> list[dict]:
    out = []
    for alert, form, report in _report_rows(db, archived=False).order_by(Alert.created_at.asc(), Alert.id.asc()):
        ctx = _context(db, alert, form)
        out.append({
            "alertId": alert.id,
            "terminalName": ctx.terminal.name if ctx.terminal else None,
            "alertType": _alert_type(alert, form),
            "dispatcherName": ctx.dispatcher.name if ctx.dispatcher else None,
            "rescueStatus": form.status,
            "createdAt": alert.created_at,
            "completedAt": report.completed_at,
            "address": parse_location(ctx.focal.address).address if ctx.focal else None,
        })
    return out


def list_completed(db: Session, refresh: bool = False) -> list[dict]:
    return report_cache.get_or_load(cache.COMPLETED, lambda: _load_completed(db), refresh=refresh)


def _table_row(db: Session, alert: Alert, form: RescueForm, report: PostRescueForm) -> dict:
    ctx = _context(db, alert, form)
    return {
        "emergencyId": alert.id,
        "terminalName": ctx.terminal.name if ctx.terminal else None,
        "terminalId": alert.terminal_id,
        "focalFirstName": ctx.focal.first_name if ctx.focal else None,
        "focalLastName": ctx.focal.last_name if ctx.focal else None,
        "dateTimeOccurred": alert.created_at,
        "alertType": _alert_type(alert, form),
        "houseAddress": parse_location(ctx.focal.address).address if ctx.focal else None,
        "dispatchedName": ctx.dispatcher.name if ctx.dispatcher else None,
        "completionDate": report.completed_at,
    }


def _load_archived(db: Session, alert_id: Optional[str]) -> list[dict]:
    q = _report_rows(db, archived=True, alert_id=alert_id).order_by(PostRescueForm.completed_at.desc())
    return [_table_row(db, *row) for row in q]


def list_archived(db: Session, alert_id: Optional[str] = None, refresh: bool = False) -> list[dict]:
    return report_cache.get_or_load(cache.ARCHIVED, lambda: _load_archived(db, alert_id),
                                    key=cache_key(alert_id), refresh=refresh)


# ── Aggregated ──────────────────────────────────────────────────────────────
def _load_aggregated(db: Session, alert_id: Optional[str], terminal_id: Optional[str]) -> list[dict]:
    q = (
        db.query(Alert, RescueForm, PostRescueForm)
        .join(RescueForm, RescueForm.alert_id == Alert.id)
        .join(PostRescueForm, PostRescueForm.alert_id == Alert.id)
        .filter(RescueForm.status == AlertStatus.COMPLETED.value)
    )
    if alert_id:
        # A single document is still retrievable once archived
        q = q.filter(Alert.id == alert_id)
    else:
        q = q.filter(PostRescueForm.archived_at.is_(None))
        if terminal_id:
            q = q.filter(Alert.terminal_id == terminal_id)

    out = []
    for alert, form, report in q.order_by(Alert.created_at.desc(), Alert.id.desc()):
        ctx = _context(db, alert, form)
        focal = ctx.focal
        out.append({
            "neighborhoodId": ctx.neighborhood.id if ctx.neighborhood else None,
            "focalFirstName": focal.first_name if focal else None,
            "focalLastName": focal.last_name if focal else None,
            "focalAddress": parse_location(focal.address).address if focal else None,
            "focalContactNumber": focal.contact_number if focal else None,
            "emergencyId": alert.id,
            "alertId": alert.id,
            "terminalId": alert.terminal_id,
            "dateTimeOccurred": alert.created_at,
            "waterLevel": form.water_level,
            "urgencyOfEvacuation": form.urgency_of_evacuation,
            "hazardPresent": form.hazard_present,
            "accessibility": form.accessibility,
            "resourceNeeds": form.resource_needs,
            "otherInformation": form.other_information,
            "timeOfRescue": report.created_at,
            "alertType": _alert_type(alert, form),
            "completionDate": report.completed_at,
            "rescueCompleted": report.completed_at is not None,
            "rescueCompletionTime": _hhmmss(alert.created_at, report.completed_at),
            "noOfPersonnel": report.no_of_personnel_deployed,
            "resourcesUsed": report.resources_used,
            "actionsTaken": report.action_taken,
        })
    return out


def aggregated_reports(db: Session, alert_id: Optional[str] = None, terminal_id: Optional[str] = None,
                       refresh: bool = False) -> list[dict]:
    return report_cache.get_or_load(
        cache.AGGREGATED, lambda: _load_aggregated(db, alert_id, terminal_id),
        key=cache_key(alert_id, terminal_id), refresh=refresh)


def _load_table(db: Session, alert_id: Optional[str], terminal_id: Optional[str]) -> list[dict]:
    q = (
        db.query(Alert, RescueForm, PostRescueForm)
        .join(PostRescueForm, PostRescueForm.alert_id == Alert.id)
        .join(RescueForm, RescueForm.alert_id == Alert.id)
        .filter(PostRescueForm.archived_at.is_(None))
    )
    if alert_id:
        q = q.filter(Alert.id == alert_id)
    if terminal_id:
        q = q.filter(Alert.terminal_id == terminal_id)
    return [_table_row(db, *row) for row in q.order_by(PostRescueForm.completed_at.desc())]


def aggregated_table(db: Session, alert_id: Optional[str] = None, terminal_id: Optional[str] = None,
                     refresh: bool = False) -> list[dict]:
    return report_cache.get_or_load(
        cache.AGGREGATED_TABLE, lambda: _load_table(db, alert_id, terminal_id),
        key=cache_key(alert_id, terminal_id), refresh=refresh)


# ── Chart ───────────────────────────────────────────────────────────────────
def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def chart_buckets(time_range: str, now: datetime) -> list[tuple[str, datetime, datetime]]:
    """(label, start, end) windows, half-open, the last one ending just after `now`."""
    end_of_now = now + timedelta(microseconds=1)
    buckets = []

    if time_range == "last6months":
        for i in range(5, -1, -1):
            y, m = _shift_month(now.year, now.month, -i)
            ny, nm = _shift_month(y, m, 1)
            start = datetime(y, m, 1)
            end = end_of_now if i == 0 else datetime(ny, nm, 1)
            label = start.strftime("%b") + (" (Current)" if i == 0 else "")
            buckets.append((label, start, end))

    elif time_range == "lastyear":
        current_q_month = (now.month - 1) // 3 * 3 + 1
        for i in range(3, -1, -1):
            y, m = _shift_month(now.year, current_q_month, -3 * i)
            ny, nm = _shift_month(y, m, 3)
            start = datetime(y, m, 1)
            end = end_of_now if i == 0 else datetime(ny, nm, 1)
            label = f"Q{(m - 1) // 3 + 1} {y}" + (" (Current)" if i == 0 else "")
            buckets.append((label, start, end))

    else:
        weeks = 13
        first = now - timedelta(weeks=weeks - 1, days=6)
        first = datetime(first.year, first.month, first.day)
        for i in range(weeks):
            start = first + timedelta(weeks=i)
            end = end_of_now if i == weeks - 1 else start + timedelta(weeks=1)
            label = f"Today ({now:%b %d})" if i == weeks - 1 else f"{start:%b %d}"
            buckets.append((label, start, end))

    return buckets


def _load_chart(db: Session, time_range: str, now: datetime) -> list[dict]:
    buckets = chart_buckets(time_range, now)
    window_start, window_end = buckets[0][1], buckets[-1][2]

    rows = (
        db.query(Alert.created_at, RescueForm.original_alert_type, Alert.alert_type)
        .join(RescueForm, RescueForm.alert_id == Alert.id)
        .filter(Alert.created_at >= window_start, Alert.created_at < window_end)
        .all()
    )

    chart = [{"date": label, "userInitiated": 0, "critical": 0} for label, _, _ in buckets]
    for created_at, original_type, current_type in rows:
        kind = (original_type or current_type or "").lower()
        if "user" in kind:
            field = "userInitiated"
        elif AlertType.CRITICAL.value.lower() in kind:
            field = "critical"
        else:
            continue
        for point, (_, start, end) in zip(chart, buckets):
            if start <= created_at < end:
                point[field] += 1
                break
    return chart


def alert_type_chart(db: Session, time_range: Optional[str] = None, refresh: bool = False,
                     now: Optional[datetime] = None) -> list[dict]:
    time_range = time_range if time_range in TIME_RANGES else DEFAULT_TIME_RANGE
    now = now or datetime.utcnow()
    # Bucket labels roll over at midnight, so a snapshot is only good for its day
    return report_cache.get_or_load(cache.CHART, lambda: _load_chart(db, time_range, now),
                                    key=f"{time_range}:{now:%Y-%m-%d}", refresh=refresh)


# ── Detailed report (PDF export) ────────────────────────────────────────────
def _fmt(value: Optional[datetime], pattern: str) -> str:
    return value.strftime(pattern) if value else NA


def detailed_report(db: Session, alert_id: Optional[str]) -> dict:
    if not alert_id or alert_id.strip() in ("", "undefined", "null"):
        raise BadRequestError("Alert ID is required")

    alert = db.query(Alert).filter(Alert.id == alert_id).first()
    if not alert:
        raise NotFoundError(f"Alert not found for ID: {alert_id}")

    form = db.query(RescueForm).filter(RescueForm.alert_id == alert_id).first()
    report = db.query(PostRescueForm).filter(PostRescueForm.alert_id == alert_id).first()
    ctx = _context(db, alert, form)
    focal = ctx.focal

    return {
        "alertId": alert.id,
        "emergencyId": alert.id,
        "neighborhoodId": ctx.neighborhood.id if ctx.neighborhood else NA,
        "terminalName": ctx.terminal.name if ctx.terminal else NA,
        "focalPersonName": (focal.full_name if focal else "") or NA,
        "focalPersonAddress": (parse_location(focal.address).address if focal else None) or NA,
        "focalPersonContactNumber": (focal.contact_number if focal else None) or NA,
        "waterLevel": (form.water_level if form else None) or NA,
        "urgencyOfEvacuation": (form.urgency_of_evacuation if form else None) or NA,
        "hazardPresent": (form.hazard_present if form else None) or NA,
        "accessibility": (form.accessibility if form else None) or NA,
        "resourceNeeds": (form.resource_needs if form else None) or NA,
        "otherInformation": (form.other_information if form else None) or NA,
        "alertType": _alert_type(alert, form) or NA,
        "timeOfRescue": _fmt(report.created_at if report else None, "%H:%M:%S"),
        "dateTimeOccurred": _fmt(alert.created_at, "%Y-%m-%d %H:%M:%S"),
        "dispatcherName": ctx.dispatcher.name if ctx.dispatcher else NA,
        "rescueFormId": form.id if form else NA,
        "postRescueFormId": report.id if report else NA,
        "noOfPersonnelDeployed": report.no_of_personnel_deployed if report else NA,
        "resourcesUsed": (report.resources_used if report else None) or NA,
        "actionTaken": (report.action_taken if report else None) or NA,
        "completedAt": _fmt(report.completed_at if report else None, "%Y-%m-%d %H:%M:%S"),
        "rescueCompletionTime": _hhmmss(alert.created_at, report.completed_at) if report else NA,
    }

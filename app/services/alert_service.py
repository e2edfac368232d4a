# app/services/alert_service.py
"""
Alert ingestion and the generic alert-update path.
Critical alerts come from terminal sensors, User-Initiated ones from the
terminal button. Listing reads are never cached — dispatch decisions need
fresh rows.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import BadRequestError, InternalServerError, NotFoundError
from app.models.alert import Alert
from app.models.focal_person import FocalPerson
from app.models.neighborhood import Neighborhood
from app.models.rescue_form import RescueForm
from app.models.terminal import Terminal
from app.services import broadcaster as events
from app.services.broadcaster import broadcaster
from app.services.lifecycle import AlertStatus, AlertType, ID_ALLOCATION_ATTEMPTS, next_sequential_id, transition
from app.utils.location import encode_location
from app.utils.logger import get_logger

logger = get_logger(__name__)

ALERT_ID_PREFIX = "ALRT"

STATUS_ACTIONS = {
    "waitlist": AlertStatus.WAITLISTED,
    "dispatch": AlertStatus.DISPATCHED,
}


def focal_person_for_terminal(db: Session, terminal_id: str) -> Optional[FocalPerson]:
    neighborhood = db.query(Neighborhood).filter(Neighborhood.terminal_id == terminal_id).first()
    if not neighborhood or not neighborhood.focal_person_id:
        return None
    return db.query(FocalPerson).filter(FocalPerson.id == neighborhood.focal_person_id).first()


def alert_event_payload(db: Session, alert: Alert, rescue_form: Optional[RescueForm] = None) -> dict:
    """What map/table views need to redraw one alert without a refetch."""
    focal = focal_person_for_terminal(db, alert.terminal_id)
    terminal = alert.terminal
    return {
        "alertId": alert.id,
        "alertType": alert.alert_type,
        "alertStatus": alert.status,
        "timeSent": alert.created_at,
        "terminalId": alert.terminal_id,
        "terminalName": terminal.name if terminal else f"Terminal {alert.terminal_id}",
        "terminalStatus": terminal.status if terminal else None,
        "focalPersonId": focal.id if focal else None,
        "focalFirstName": focal.first_name if focal else "N/A",
        "focalLastName": focal.last_name if focal else "",
        "focalContactNumber": (focal.contact_number if focal else None) or "N/A",
        "location": alert.location,
        "rescueFormId": rescue_form.id if rescue_form else None,
        "rescueFormStatus": rescue_form.status if rescue_form else None,
    }


def _active_terminal(db: Session, terminal_id: Optional[str]) -> Terminal:
    if not terminal_id:
        raise BadRequestError("terminalID is required")
    terminal = db.query(Terminal).filter(Terminal.id == terminal_id).first()
    if not terminal:
        raise BadRequestError("Terminal Not Found")
    if terminal.archived:
        raise BadRequestError("Terminal is archived")
    return terminal


async def _ingest(db: Session, alert_type: AlertType, terminal_id: Optional[str],
                  sent_through: str, location=None) -> Alert:
    terminal = _active_terminal(db, terminal_id)

    # Another worker may grab the same sequential id between our read and commit
    for attempt in range(1, ID_ALLOCATION_ATTEMPTS + 1):
        alert = Alert(
            id=next_sequential_id(db, Alert, ALERT_ID_PREFIX),
            terminal_id=terminal.id,
            alert_type=alert_type.value,
            sent_through=sent_through,
            status=AlertStatus.UNASSIGNED.value,
            location=encode_location(location),
            created_at=datetime.utcnow(),
        )
        db.add(alert)
        try:
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            logger.warning(f"[ALERT] id {alert.id} taken, retrying ({attempt}/{ID_ALLOCATION_ATTEMPTS})")
    else:
        raise InternalServerError("Could not allocate an alert ID")
    db.refresh(alert)
    logger.warning(f"[ALERT][{alert_type.value.upper()}] {alert.id} from {terminal.id} via {sent_through}")

    await broadcaster.publish(events.ALERT_CREATED, alert_event_payload(db, alert),
                              terminal_id=alert.terminal_id)
    return alert


async def create_critical_alert(db: Session, terminal_id: Optional[str],
                                sent_through: Optional[str] = None, location=None) -> Alert:
    """Sensor-triggered alert."""
    return await _ingest(db, AlertType.CRITICAL, terminal_id, sent_through or "Sensor", location)


async def create_user_alert(db: Session, terminal_id: Optional[str],
                            sent_through: Optional[str] = None, location=None) -> Alert:
    """Button-press alert; callers need not be authenticated."""
    return await _ingest(db, AlertType.USER_INITIATED, terminal_id, sent_through or "Button", location)


def list_alerts(db: Session, status: Optional[AlertStatus] = None) -> list[Alert]:
    q = db.query(Alert)
    if status is not None:
        q = q.filter(Alert.status == status.value)
    return q.order_by(Alert.created_at.desc(), Alert.id.desc()).all()


def list_unassigned_alerts(db: Session) -> list[Alert]:
    return list_alerts(db, AlertStatus.UNASSIGNED)


def list_waitlisted_alerts(db: Session) -> list[Alert]:
    return list_alerts(db, AlertStatus.WAITLISTED)


def list_dispatched_alerts(db: Session) -> list[Alert]:
    return list_alerts(db, AlertStatus.DISPATCHED)


def get_alert(db: Session, alert_id: str) -> Alert:
    alert = db.query(Alert).filter(Alert.id == alert_id).first()
    if not alert:
        raise NotFoundError("Alert Not Found")
    return alert


async def update_alert_status(db: Session, alert_id: str, action: str) -> Alert:
    """
    Generic alert-update path (waitlist / dispatch).
    A rescue form must exist first; the form follows the alert's new status.
    """
    alert = get_alert(db, alert_id)
    rescue_form = db.query(RescueForm).filter(RescueForm.alert_id == alert_id).first()
    if not rescue_form:
        raise BadRequestError("Rescue Form must be created before dispatching or waitlisting")

    status = STATUS_ACTIONS.get((action or "").lower())
    if status is None:
        raise BadRequestError("Invalid action. Use 'waitlist' or 'dispatch'.")

    transition(alert, rescue_form, status)
    db.commit()
    db.refresh(alert)

    await broadcaster.publish(events.ALERT_STATUS_UPDATE,
                              alert_event_payload(db, alert, rescue_form),
                              terminal_id=alert.terminal_id)
    return alert

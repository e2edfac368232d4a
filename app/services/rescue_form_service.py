# app/services/rescue_form_service.py
"""
Rescue Form gate — the dispatcher's assessment that unlocks dispatch.

Create path:  alert exists → no form yet → field rules → persist + move alert
Status path:  any of Waitlisted | Dispatched | Completed, alert follows

Role checks happen once at the route boundary (app.services.authorization);
nothing in here looks at roles.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import BadRequestError, ConflictError, InternalServerError, NotFoundError
from app.models.alert import Alert
from app.models.dispatcher import Dispatcher
from app.models.focal_person import FocalPerson
from app.models.neighborhood import Neighborhood
from app.models.rescue_form import RescueForm
from app.models.terminal import Terminal
from app.schemas.rescue_form import RescueFormCreate
from app.services import broadcaster as events
from app.services.alert_service import alert_event_payload, focal_person_for_terminal
from app.services.authorization import Identity
from app.services.broadcaster import broadcaster
from app.services.lifecycle import (
    CREATION_STATUSES, ID_ALLOCATION_ATTEMPTS, coerce_status, leaves_waitlist,
    next_sequential_id, transition,
)
from app.utils.locks import KeyedLock
from app.utils.logger import get_logger

logger = get_logger(__name__)

RESCUE_FORM_ID_PREFIX = "RF"

# Mandatory when the focal person could be reached
CORE_ASSESSMENT_FIELDS = (
    "water_level", "urgency_of_evacuation", "hazard_present", "accessibility", "resource_needs",
)

# choice field → free-text companion
DETAIL_FIELDS = {
    "water_level": "water_level_details",
    "urgency_of_evacuation": "urgency_details",
    "hazard_present": "hazard_details",
    "accessibility": "accessibility_details",
    "resource_needs": "resource_details",
}

ALREADY_EXISTS = "Rescue Form Already Exists"

_creation_locks = KeyedLock()


def _combine(choice: Optional[str], details: Optional[str]) -> Optional[str]:
    if choice and details:
        return f"{choice} - {details}"
    return choice or None


def validate_assessment(payload: RescueFormCreate) -> None:
    if payload.focal_unreachable:
        return
    missing = [f for f in CORE_ASSESSMENT_FIELDS if not getattr(payload, f)]
    if missing:
        logger.warning(f"[RescueForm] Missing assessment fields: {missing}")
        raise BadRequestError("All rescue details are required when focal is reachable.")


async def create_rescue_form(db: Session, alert_id: str, payload: RescueFormCreate,
                             identity: Identity) -> RescueForm:
    # Serialize on alert_id; the UNIQUE constraint covers other workers
    async with _creation_locks.hold(alert_id):
        alert = db.query(Alert).filter(Alert.id == alert_id).first()
        if not alert:
            raise NotFoundError("Alert Not Found")

        if db.query(RescueForm.id).filter(RescueForm.alert_id == alert_id).first():
            raise ConflictError(ALREADY_EXISTS)

        validate_assessment(payload)
        status = coerce_status(payload.status, allowed=CREATION_STATUSES)

        neighborhood = db.query(Neighborhood).filter(Neighborhood.terminal_id == alert.terminal_id).first()

        # Ids are allocated per table, not per alert: another worker may take the
        # same RF number. Only a second form for this alert is a conflict.
        for attempt in range(1, ID_ALLOCATION_ATTEMPTS + 1):
            form = RescueForm(
                id=next_sequential_id(db, RescueForm, RESCUE_FORM_ID_PREFIX),
                alert_id=alert.id,
                dispatcher_id=identity.user_id,
                focal_person_id=neighborhood.focal_person_id if neighborhood else None,
                focal_unreachable=payload.focal_unreachable,
                original_alert_type=alert.alert_type,
                other_information=payload.other_information or None,
                created_at=datetime.utcnow(),
            )
            for field, details_field in DETAIL_FIELDS.items():
                setattr(form, field, _combine(getattr(payload, field), getattr(payload, details_field)))

            db.add(form)
            transition(alert, form, status)
            try:
                db.commit()
                break
            except IntegrityError as exc:
                db.rollback()
                if db.query(RescueForm.id).filter(RescueForm.alert_id == alert_id).first():
                    logger.warning(f"[RescueForm] {alert_id} got a form from another worker")
                    raise ConflictError(ALREADY_EXISTS) from exc
                logger.warning(f"[RescueForm] id {form.id} taken, retrying ({attempt}/{ID_ALLOCATION_ATTEMPTS})")
        else:
            raise InternalServerError("Could not allocate a rescue form ID")
        db.refresh(form)
        db.refresh(alert)

    logger.info(f"[RescueForm] {form.id} created for {alert.id} by {identity.user_id} ({status.value})")

    payload_out = alert_event_payload(db, alert, form)
    await broadcaster.publish(events.RESCUE_FORM_CREATED, payload_out, terminal_id=alert.terminal_id)
    if leaves_waitlist(status):
        await broadcaster.publish(events.WAITLIST_FORM_REMOVED,
                                  {"alertId": alert.id, "rescueFormId": form.id,
                                   "action": status.value.lower()},
                                  terminal_id=alert.terminal_id)
    return form


async def update_rescue_form_status(db: Session, alert_id: str, new_status: str) -> RescueForm:
    """
    Dispatcher/admin status edit. No backward guard — a dispatched rescue may
    be put back on the waitlist.
    """
    form = db.query(RescueForm).filter(RescueForm.alert_id == alert_id).first()
    alert = db.query(Alert).filter(Alert.id == alert_id).first()
    if not form or not alert:
        raise NotFoundError("Required Records Not Found")

    status = coerce_status(new_status)

    if not form.original_alert_type and alert.alert_type:
        form.original_alert_type = alert.alert_type
    transition(alert, form, status)
    db.commit()
    db.refresh(form)
    db.refresh(alert)

    await broadcaster.publish(events.ALERT_STATUS_UPDATE, alert_event_payload(db, alert, form),
                              terminal_id=alert.terminal_id)
    if leaves_waitlist(status):
        await broadcaster.publish(events.WAITLIST_FORM_REMOVED,
                                  {"alertId": alert.id, "rescueFormId": form.id,
                                   "action": status.value.lower()},
                                  terminal_id=alert.terminal_id)
    return form


def get_rescue_form(db: Session, form_id: str) -> dict:
    form = db.query(RescueForm).filter(RescueForm.id == form_id).first()
    if not form:
        raise NotFoundError("Rescue Form Not Found")
    terminal = db.query(Terminal).join(Alert, Alert.terminal_id == Terminal.id) \
        .filter(Alert.id == form.alert_id).first()
    return {
        "formId": form.id,
        "alertId": form.alert_id,
        "terminalName": terminal.name if terminal else None,
        "focalUnreachable": form.focal_unreachable,
        "waterLevel": form.water_level,
        "urgencyOfEvacuation": form.urgency_of_evacuation,
        "hazardPresent": form.hazard_present,
        "accessibility": form.accessibility,
        "resourceNeeds": form.resource_needs,
        "otherInformation": form.other_information,
        "status": form.status,
    }


def list_rescue_forms(db: Session) -> list[dict]:
    forms = db.query(RescueForm).order_by(RescueForm.id.desc()).all()
    return [get_rescue_form(db, f.id) for f in forms]


def aggregated_rescue_forms(db: Session, alert_id: Optional[str] = None) -> list[dict]:
    """Rows for the waitlist/pending table."""
    q = (
        db.query(RescueForm, Alert, Dispatcher)
        .join(Alert, Alert.id == RescueForm.alert_id)
        .outerjoin(Dispatcher, Dispatcher.id == RescueForm.dispatcher_id)
    )
    if alert_id:
        q = q.filter(Alert.id == alert_id)

    rows = []
    for form, alert, dispatcher in q.order_by(RescueForm.id.desc()).all():
        focal = db.query(FocalPerson).filter(FocalPerson.id == form.focal_person_id).first() \
            if form.focal_person_id else focal_person_for_terminal(db, alert.terminal_id)
        rows.append({
            "emergencyId": form.alert_id,
            "terminalId": alert.terminal_id,
            "focalFirstName": focal.first_name if focal else None,
            "focalLastName": focal.last_name if focal else None,
            "dateTimeOccurred": alert.created_at,
            "alertType": form.original_alert_type or alert.alert_type,
            "houseAddress": focal.address if focal else None,
            "dispatchedName": dispatcher.name if dispatcher else None,
            "status": form.status,
        })
    return rows

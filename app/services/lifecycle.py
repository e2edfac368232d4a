# app/services/lifecycle.py
"""
Alert ↔ RescueForm state machine.

    Unassigned → Waitlisted → Dispatched → Completed

Alert.status and RescueForm.status share one vocabulary and are only written
through transition(), so the two records can't drift within a commit.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import AppError, BadRequestError
from app.models.alert import Alert
from app.models.rescue_form import RescueForm
from app.utils.logger import get_logger

logger = get_logger(__name__)


class AlertStatus(str, Enum):
    UNASSIGNED = "Unassigned"
    WAITLISTED = "Waitlisted"
    DISPATCHED = "Dispatched"
    COMPLETED = "Completed"


class AlertType(str, Enum):
    CRITICAL = "Critical"
    USER_INITIATED = "User-Initiated"


# Statuses a rescue form may carry
RESCUE_STATUSES = (AlertStatus.WAITLISTED, AlertStatus.DISPATCHED, AlertStatus.COMPLETED)
CREATION_STATUSES = (AlertStatus.WAITLISTED, AlertStatus.DISPATCHED)
# Reached once a team has been sent; gate for the after-action report
DISPATCHED_OR_LATER = (AlertStatus.DISPATCHED, AlertStatus.COMPLETED)

# Older rows used "Waitlist" on the alert side
LEGACY_STATUSES = {"Waitlist": AlertStatus.WAITLISTED}

# Sequential ids can collide across workers; retries before giving up
ID_ALLOCATION_ATTEMPTS = 3


def coerce_status(value, allowed=RESCUE_STATUSES) -> AlertStatus:
    """Parse a status string (or enum) and check it belongs to `allowed`."""
    if isinstance(value, str) and value in LEGACY_STATUSES:
        status = LEGACY_STATUSES[value]
    else:
        try:
            status = AlertStatus(value)
        except ValueError:
            status = None
    if status not in allowed:
        names = "|".join(s.value for s in allowed)
        raise BadRequestError(f"Invalid status '{value}'. Use {names}.")
    return status


def transition(alert: Alert, rescue_form: Optional[RescueForm], status: AlertStatus) -> str:
    """
    The one place alert/rescue-form status is written. Caller commits.
    No backward guard: dispatchers may deliberately re-waitlist a rescue.
    Returns the alert's previous status.
    """
    previous = alert.status
    alert.status = status.value
    if rescue_form is not None:
        rescue_form.status = status.value
    logger.info(f"[Lifecycle] {alert.id}: {previous} → {status.value}"
                + (f" (form {rescue_form.id})" if rescue_form is not None else ""))
    return previous


def is_dispatched_or_later(rescue_form: Optional[RescueForm]) -> bool:
    if rescue_form is None:
        return False
    return rescue_form.status in {s.value for s in DISPATCHED_OR_LATER}


def leaves_waitlist(status: AlertStatus) -> bool:
    return status in DISPATCHED_OR_LATER


def next_sequential_id(db: Session, model, prefix: str) -> str:
    """
    Human-readable sequential id: ALRT0001, RF0001 ...
    Orders by length first so ALRT10000 sorts after ALRT9999.
    """
    last = (
        db.query(model.id)
        .filter(model.id.like(f"{prefix}%"))
        .order_by(func.length(model.id).desc(), model.id.desc())
        .first()
    )
    number = 1
    if last:
        digits = last[0][len(prefix):]
        if digits.isdigit():
            number = int(digits) + 1
    return f"{prefix}{number:0{settings.ID_NUMBER_WIDTH}d}"


def commit_or_raise(db: Session, error: AppError) -> None:
    """Commit; a uniqueness violation rolls back and surfaces as `error`."""
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(f"[Lifecycle] Constraint violation: {error.message} ({exc.orig})")
        raise error from exc

# app/services/post_rescue_service.py
"""
After-action reports (PostRescueForm) and their visibility lifecycle:

    create → completed view → archive → archived view → restore → completed view
                                      ↘ delete permanently (row gone)

Permanent deletion removes the report row only. The alert and its rescue form
stay "Completed" — whether that is intended history or a defect is still an
open product question, so the behaviour is kept as is.
"""

from datetime import datetime

from sqlalchemy.orm import Session

from app.exceptions import BadRequestError, NotFoundError
from app.models.alert import Alert
from app.models.post_rescue_form import PostRescueForm
from app.models.rescue_form import RescueForm
from app.schemas.post_rescue_form import PostRescueFormCreate
from app.services import broadcaster as events
from app.services.broadcaster import broadcaster
from app.services.lifecycle import AlertStatus, commit_or_raise, is_dispatched_or_later, transition
from app.services.report_cache import report_cache
from app.utils.locks import KeyedLock
from app.utils.logger import get_logger

logger = get_logger(__name__)

ALREADY_EXISTS = "Post Rescue Form Already Exists"
NOT_DISPATCHED = "Please Dispatched a Rescue Team First"
NOT_FOUND = "Post Rescue Form Not Found"

_creation_locks = KeyedLock()


def _get_form(db: Session, alert_id: str) -> PostRescueForm:
    form = db.query(PostRescueForm).filter(PostRescueForm.alert_id == alert_id).first()
    if not form:
        raise NotFoundError(NOT_FOUND)
    return form


async def create_post_rescue_form(db: Session, alert_id: str,
                                  payload: PostRescueFormCreate) -> PostRescueForm:
    async with _creation_locks.hold(alert_id):
        alert = db.query(Alert).filter(Alert.id == alert_id).first()
        if not alert:
            raise NotFoundError("Alert Not Found")

        rescue_form = db.query(RescueForm).filter(RescueForm.alert_id == alert_id).first()
        if not is_dispatched_or_later(rescue_form):
            raise BadRequestError(NOT_DISPATCHED)

        if db.query(PostRescueForm.id).filter(PostRescueForm.alert_id == alert_id).first():
            raise BadRequestError(ALREADY_EXISTS)

        now = datetime.utcnow()
        form = PostRescueForm(
            alert_id=alert_id,
            no_of_personnel_deployed=payload.no_of_personnel_deployed,
            resources_used=payload.resources_used,
            action_taken=payload.action_taken,
            created_at=now,
            completed_at=now,
        )
        db.add(form)
        transition(alert, rescue_form, AlertStatus.COMPLETED)
        commit_or_raise(db, BadRequestError(ALREADY_EXISTS))
        db.refresh(form)

    logger.info(f"[PostRescue] Report {form.id} filed for {alert_id}")
    await broadcaster.publish(events.POST_RESCUE_CREATED, {
        "alertId": alert_id,
        "rescueFormId": rescue_form.id,
        "status": AlertStatus.COMPLETED.value,
        "completedAt": form.completed_at,
    }, terminal_id=alert.terminal_id)
    return form


def archive(db: Session, alert_id: str) -> PostRescueForm:
    form = _get_form(db, alert_id)
    if form.archived_at is None:
        form.archived_at = datetime.utcnow()
        db.commit()
    logger.info(f"[PostRescue] {alert_id} archived")
    return form


def restore(db: Session, alert_id: str) -> PostRescueForm:
    form = _get_form(db, alert_id)
    if form.archived_at is not None:
        form.archived_at = None
        db.commit()
    logger.info(f"[PostRescue] {alert_id} restored")
    return form


def delete_permanently(db: Session, alert_id: str) -> None:
    form = _get_form(db, alert_id)
    db.delete(form)
    db.commit()
    logger.warning(f"[PostRescue] {alert_id} report deleted permanently (alert status left as is)")


def clear_cache() -> int:
    dropped = report_cache.clear()
    logger.info(f"[Cache] Cleared {dropped} report snapshot(s) on request")
    return dropped


def fix_rescue_form_status(db: Session) -> dict:
    """
    Repair job: every alert with an after-action report must be Completed on
    both the alert and the rescue form. Commits per record so a failure part
    way keeps the progress made; re-running touches nothing already fixed.
    """
    alert_ids = [row[0] for row in db.query(PostRescueForm.alert_id).order_by(PostRescueForm.alert_id).all()]
    if not alert_ids:
        return {"message": "No PostRescueForm records found", "fixed": 0, "alert_ids": []}

    completed = AlertStatus.COMPLETED.value
    fixed = []
    for alert_id in alert_ids:
        alert = db.query(Alert).filter(Alert.id == alert_id).first()
        form = db.query(RescueForm).filter(RescueForm.alert_id == alert_id).first()
        if alert is None or form is None:
            logger.warning(f"[FixData] {alert_id} has a report but no alert/rescue form — skipped")
            continue
        if alert.status == completed and form.status == completed:
            continue
        transition(alert, form, AlertStatus.COMPLETED)
        db.commit()
        fixed.append(alert_id)

    logger.info(f"[FixData] Fixed {len(fixed)} record(s): {fixed}")
    return {"message": f"Fixed {len(fixed)} rescue form statuses", "fixed": len(fixed), "alert_ids": fixed}


def migrate_alert_types(db: Session) -> dict:
    """Backfill RescueForm.original_alert_type from the alert it belongs to."""
    pending = (
        db.query(RescueForm, Alert)
        .join(Alert, Alert.id == RescueForm.alert_id)
        .filter(RescueForm.original_alert_type.is_(None), Alert.alert_type.isnot(None))
        .all()
    )
    for form, alert in pending:
        form.original_alert_type = alert.alert_type
        db.commit()

    logger.info(f"[Migration] original_alert_type backfilled on {len(pending)} rescue form(s)")
    return {
        "message": f"Migration completed: {len(pending)} rescue forms updated with original alert types",
        "updated_count": len(pending),
    }

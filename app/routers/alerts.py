# app/routers/alerts.py
"""
Alert ingestion (terminals) + alert listing/status for dispatch views.
POST /alerts/critical and /alerts/user are open — terminals carry no session.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.alert import AlertCreate, AlertCreated, AlertOut, AlertStatusAction, AlertStatusChanged
from app.services import alert_service
from app.services.authorization import Identity, require_capability

router = APIRouter()


@router.post("/alerts/critical", response_model=AlertCreated, status_code=201,
             summary="Sensor-triggered alert from a terminal")
async def create_critical_alert(body: AlertCreate, db: Session = Depends(get_db)):
    alert = await alert_service.create_critical_alert(db, body.terminal_id, body.sent_through, body.location)
    return {"message": "Critical alert created", "alert": alert}


@router.post("/alerts/user", response_model=AlertCreated, status_code=201,
             summary="Button-press alert from a terminal")
async def create_user_alert(body: AlertCreate, db: Session = Depends(get_db)):
    alert = await alert_service.create_user_alert(db, body.terminal_id, body.sent_through, body.location)
    return {"message": "User-initiated alert created", "alert": alert}


@router.get("/alerts", response_model=list[AlertOut], summary="All alerts, newest first")
def get_all_alerts(db: Session = Depends(get_db),
                   _: Identity = Depends(require_capability("alerts:read"))):
    return alert_service.list_alerts(db)


@router.get("/alerts/unassigned", response_model=list[AlertOut], summary="Alerts awaiting a rescue form")
def get_unassigned_alerts(db: Session = Depends(get_db),
                          _: Identity = Depends(require_capability("alerts:read"))):
    return alert_service.list_unassigned_alerts(db)


@router.get("/alerts/waitlisted", response_model=list[AlertOut])
def get_waitlisted_alerts(db: Session = Depends(get_db),
                          _: Identity = Depends(require_capability("alerts:read"))):
    return alert_service.list_waitlisted_alerts(db)


@router.get("/alerts/dispatched", response_model=list[AlertOut])
def get_dispatched_alerts(db: Session = Depends(get_db),
                          _: Identity = Depends(require_capability("alerts:read"))):
    return alert_service.list_dispatched_alerts(db)


@router.get("/alerts/{alert_id}", response_model=AlertOut)
def get_alert(alert_id: str, db: Session = Depends(get_db),
              _: Identity = Depends(require_capability("alerts:read"))):
    return alert_service.get_alert(db, alert_id)


@router.patch("/alerts/{alert_id}/status", response_model=AlertStatusChanged,
              summary="Waitlist or dispatch — requires an existing rescue form")
async def update_alert_status(alert_id: str, body: AlertStatusAction, db: Session = Depends(get_db),
                              _: Identity = Depends(require_capability("alerts:update"))):
    alert = await alert_service.update_alert_status(db, alert_id, body.action)
    verb = "added to waitlist" if body.action.lower() == "waitlist" else "dispatched successfully"
    return {"message": f"Alert {verb}", "alert": alert}

# app/routers/rescue_forms.py
"""Rescue form gate — create (dispatchers only), status edits, reads."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.rescue_form import RescueFormCreate, RescueFormOut, RescueFormStatusUpdate
from app.services import rescue_form_service
from app.services.authorization import Identity, require_capability

router = APIRouter()


@router.post("/forms/{alert_id}", response_model=RescueFormOut, status_code=201,
             summary="File the rescue assessment for an alert")
async def create_rescue_form(alert_id: str, body: RescueFormCreate, db: Session = Depends(get_db),
                             identity: Identity = Depends(require_capability("rescue_forms:create"))):
    return await rescue_form_service.create_rescue_form(db, alert_id, body, identity)


@router.get("/forms", summary="All rescue forms")
def list_rescue_forms(db: Session = Depends(get_db),
                      _: Identity = Depends(require_capability("rescue_forms:read"))):
    return rescue_form_service.list_rescue_forms(db)


@router.get("/forms/aggregated", summary="Waitlist table rows")
def aggregated_rescue_forms(alert_id: Optional[str] = Query(default=None, alias="alertID"),
                            db: Session = Depends(get_db),
                            _: Identity = Depends(require_capability("rescue_forms:read"))):
    return rescue_form_service.aggregated_rescue_forms(db, alert_id)


@router.get("/forms/{form_id}", summary="One rescue form")
def get_rescue_form(form_id: str, db: Session = Depends(get_db),
                    _: Identity = Depends(require_capability("rescue_forms:read"))):
    return rescue_form_service.get_rescue_form(db, form_id)


@router.patch("/forms/{alert_id}/status", response_model=RescueFormOut,
              summary="Move a rescue (and its alert) to Waitlisted / Dispatched / Completed")
async def update_rescue_form_status(alert_id: str, body: RescueFormStatusUpdate,
                                    db: Session = Depends(get_db),
                                    _: Identity = Depends(require_capability("rescue_forms:update"))):
    return await rescue_form_service.update_rescue_form_status(db, alert_id, body.status)

# app/schemas/rescue_form.py
from pydantic import Field
from datetime import datetime
from typing import Optional
from app.schemas.base import ApiModel


class RescueFormCreate(ApiModel):
    focal_unreachable: bool = False
    water_level: Optional[str] = None
    water_level_details: Optional[str] = None
    urgency_of_evacuation: Optional[str] = None
    urgency_details: Optional[str] = None
    hazard_present: Optional[str] = None
    hazard_details: Optional[str] = None
    accessibility: Optional[str] = None
    accessibility_details: Optional[str] = None
    resource_needs: Optional[str] = None
    resource_details: Optional[str] = None
    other_information: Optional[str] = None
    status: str = Field(default="Waitlisted")      # Waitlisted | Dispatched


class RescueFormStatusUpdate(ApiModel):
    status: str                                    # Waitlisted | Dispatched | Completed


class RescueFormOut(ApiModel):
    id: str
    alert_id: str
    dispatcher_id: str
    focal_person_id: Optional[str]
    focal_unreachable: bool
    original_alert_type: Optional[str]
    water_level: Optional[str]
    urgency_of_evacuation: Optional[str]
    hazard_present: Optional[str]
    accessibility: Optional[str]
    resource_needs: Optional[str]
    other_information: Optional[str]
    status: str
    created_at: datetime

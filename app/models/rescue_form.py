# app/models/rescue_form.py
"""
Rescue forms — the dispatcher's field assessment, at most one per alert.
The UNIQUE constraint on alert_id backs the in-process creation lock.
"""

from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from app.database import Base


class RescueForm(Base):
    __tablename__ = "rescue_forms"

    id = Column(String(20), primary_key=True)                 # RF0001
    alert_id = Column(String(20), ForeignKey("alerts.id"), unique=True, nullable=False)
    dispatcher_id = Column(String(40), nullable=False)
    focal_person_id = Column(String(40))
    focal_unreachable = Column(Boolean, default=False, nullable=False)
    original_alert_type = Column(String(50))
    water_level = Column(Text)
    urgency_of_evacuation = Column(Text)
    hazard_present = Column(Text)
    accessibility = Column(Text)
    resource_needs = Column(Text)
    other_information = Column(Text)
    status = Column(String(20), default="Waitlisted", nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    alert = relationship("Alert", back_populates="rescue_form")

    def __repr__(self):
        return f"<RescueForm {self.id} alert={self.alert_id} status={self.status}>"

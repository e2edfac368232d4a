# app/models/post_rescue_form.py
"""
Post-rescue (after-action) reports. Archiving sets archived_at; permanent
deletion removes this row only and leaves the alert/rescue form untouched.
"""

from datetime import datetime
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from app.database import Base


class PostRescueForm(Base):
    __tablename__ = "post_rescue_forms"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_id = Column(String(20), ForeignKey("alerts.id"), unique=True, nullable=False)
    no_of_personnel_deployed = Column(Integer, nullable=False)
    resources_used = Column(JSON, nullable=False)
    action_taken = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=False)
    archived_at = Column(DateTime, index=True)

    alert = relationship("Alert", back_populates="post_rescue_form")

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def __repr__(self):
        return f"<PostRescueForm {self.id} alert={self.alert_id} archived={self.is_archived}>"

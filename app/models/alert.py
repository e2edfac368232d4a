# app/models/alert.py
"""
Alerts table — one row per real-world distress event.
Critical alerts come from terminal sensors, User-Initiated from the button.
Status is only ever written through app.services.lifecycle.
"""

from datetime import datetime
from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from app.database import Base


class Alert(Base):
    __tablename__ = "alerts"

    id = Column(String(20), primary_key=True)                 # ALRT0001
    terminal_id = Column(String(40), ForeignKey("terminals.id"), nullable=False, index=True)
    alert_type = Column(String(50))                           # Critical | User-Initiated
    sent_through = Column(String(255), nullable=False)
    status = Column(String(50), default="Unassigned", nullable=False, index=True)
    location = Column(Text)                                   # JSON-encoded
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    terminal = relationship("Terminal", lazy="joined")
    rescue_form = relationship("RescueForm", back_populates="alert", uselist=False)
    post_rescue_form = relationship("PostRescueForm", back_populates="alert", uselist=False)

    def __repr__(self):
        return f"<Alert {self.id} type={self.alert_type} status={self.status}>"

# app/models/terminal.py
"""
Field terminals — the devices that originate alerts.
Provisioning lives outside this service; we only read name/status/archived.
"""

from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, String
from app.database import Base


class Terminal(Base):
    __tablename__ = "terminals"

    id = Column(String(40), primary_key=True)
    name = Column(String(255), nullable=False)
    status = Column(String(20), default="Offline", nullable=False)
    archived = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Terminal {self.id} status={self.status} archived={self.archived}>"

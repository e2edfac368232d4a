# app/models/focal_person.py
"""
Focal persons — community point of contact for a terminal.
`address` is a JSON string, see app/utils/location.py for the accepted shapes.
"""

from sqlalchemy import Column, String, Text
from app.database import Base


class FocalPerson(Base):
    __tablename__ = "focal_persons"

    id = Column(String(40), primary_key=True)
    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False)
    contact_number = Column(String(40))
    address = Column(Text)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def __repr__(self):
        return f"<FocalPerson {self.id} {self.full_name}>"

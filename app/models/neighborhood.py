# app/models/neighborhood.py
from sqlalchemy import Column, ForeignKey, String
from app.database import Base


class Neighborhood(Base):
    __tablename__ = "neighborhoods"

    id = Column(String(40), primary_key=True)
    terminal_id = Column(String(40), ForeignKey("terminals.id"), index=True)
    focal_person_id = Column(String(40), ForeignKey("focal_persons.id"))

    def __repr__(self):
        return f"<Neighborhood {self.id} terminal={self.terminal_id} focal={self.focal_person_id}>"

# app/models/dispatcher.py
from sqlalchemy import Column, String
from app.database import Base


class Dispatcher(Base):
    __tablename__ = "dispatchers"

    id = Column(String(40), primary_key=True)
    name = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<Dispatcher {self.id} {self.name}>"

from sqlalchemy import Column, Integer, String, Text
from sqlalchemy.orm import relationship

from tourney.database import Base


class University(Base):
    __tablename__ = "universities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False, index=True)
    location = Column(String(150))
    founded = Column(Integer)
    description = Column(Text)
    emblem_url = Column(String(500))
    image_url = Column(String(500))

    teams = relationship("Team", back_populates="university")

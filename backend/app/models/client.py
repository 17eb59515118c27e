from sqlalchemy import Column, Integer, Text
from sqlalchemy.orm import relationship
from app.database import Base


class Client(Base):
    __tablename__ = "clients"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    gmail = Column(Text, nullable=False, unique=True)
    starting_point = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    jobs = relationship("Job", back_populates="client")


class Service(Base):
    __tablename__ = "services"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False, unique=True)
    description = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="active")
    usage_count = Column(Integer, nullable=False, default=0)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

from sqlalchemy import JSON, Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from app.database import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Text, primary_key=True)
    client_id = Column(Text, ForeignKey("clients.id"), nullable=False)
    created_by = Column(Text, ForeignKey("users.id"), nullable=False)
    assigned_person = Column(Text, ForeignKey("users.id"), nullable=False)
    service_type = Column(Text, nullable=False)
    job_details = Column(Text, nullable=False)
    special_description = Column(Text)
    client_name = Column(Text, nullable=False)
    gmail = Column(Text, nullable=False)
    starting_point = Column(Text, nullable=False)
    document_passport = Column(Text)
    document_id = Column(Text)
    other_documents = Column(JSON, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    rejection_reason = Column(Text)
    rejection_document = Column(Text)
    cancellation_reason = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    client = relationship("Client", back_populates="jobs")
    assignee = relationship("User", foreign_keys=[assigned_person])
    creator = relationship("User", foreign_keys=[created_by])
    resubmissions = relationship(
        "Resubmission",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="Resubmission.position",
    )
    timeline = relationship(
        "TimelineEntry",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="TimelineEntry.position",
    )
    company_details = relationship(
        "CompanyDetails", back_populates="job", uselist=False, cascade="all, delete-orphan"
    )


class Resubmission(Base):
    __tablename__ = "resubmissions"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    resubmit_notes = Column(Text)
    new_document_passport = Column(Text)
    new_document_id = Column(Text)
    new_other_documents = Column(JSON(none_as_null=True))
    resubmitted_at = Column(Text, nullable=False)

    job = relationship("Job", back_populates="resubmissions")

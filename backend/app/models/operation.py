from sqlalchemy import JSON, Column, ForeignKey, Text
from sqlalchemy.orm import relationship
from app.database import Base


class CompanyDetails(Base):
    __tablename__ = "company_details"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, unique=True)
    company_name = Column(Text, nullable=False)
    qfc_no = Column(Text)
    registered_address = Column(Text)
    incorporation_date = Column(Text)
    service_type = Column(Text)
    engagement_letters = Column(Text)
    main_purpose = Column(Text)
    expiry_date = Column(Text)
    company_computer_card = Column(Text)
    company_computer_card_expiry = Column(Text)
    tax_card = Column(Text)
    tax_card_expiry = Column(Text)
    cr_extract = Column(Text)
    cr_extract_expiry = Column(Text)
    scope_of_license = Column(Text)
    scope_of_license_expiry = Column(Text)
    article_of_associate = Column(Text)
    certificate_of_incorporate = Column(Text)
    kyc_active_status = Column(Text, nullable=False, default="yes")
    updated_by = Column(Text, ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    job = relationship("Job", back_populates="company_details")


class PersonDetails(Base):
    __tablename__ = "person_details"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    person_type = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    nationality = Column(Text)
    visa_copy = Column(Text)
    qid_no = Column(Text)
    qid_doc = Column(Text)
    qid_expiry = Column(Text)
    national_address = Column(Text)
    national_address_doc = Column(Text)
    national_address_expiry = Column(Text)
    passport_no = Column(Text)
    passport_doc = Column(Text)
    passport_expiry = Column(Text)
    mobile_no = Column(Text)
    email = Column(Text)
    cv = Column(Text)
    updated_by = Column(Text, ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)


class KycDocumentSet(Base):
    __tablename__ = "kyc_documents"

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, unique=True)
    active_status = Column(Text, nullable=False, default="yes")
    documents = Column(JSON, nullable=False)
    updated_by = Column(Text, ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

from pydantic import BaseModel, ConfigDict


class CompanyDetailsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_id: str
    company_name: str
    qfc_no: str | None
    registered_address: str | None
    incorporation_date: str | None
    service_type: str | None
    engagement_letters: str | None
    main_purpose: str | None
    expiry_date: str | None
    company_computer_card: str | None
    company_computer_card_expiry: str | None
    tax_card: str | None
    tax_card_expiry: str | None
    cr_extract: str | None
    cr_extract_expiry: str | None
    scope_of_license: str | None
    scope_of_license_expiry: str | None
    article_of_associate: str | None
    certificate_of_incorporate: str | None
    kyc_active_status: str
    updated_by: str | None
    created_at: str
    updated_at: str


class PersonDetailsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_id: str
    person_type: str
    name: str
    nationality: str | None
    visa_copy: str | None
    qid_no: str | None
    qid_doc: str | None
    qid_expiry: str | None
    national_address: str | None
    national_address_doc: str | None
    national_address_expiry: str | None
    passport_no: str | None
    passport_doc: str | None
    passport_expiry: str | None
    mobile_no: str | None
    email: str | None
    cv: str | None
    updated_by: str | None
    created_at: str
    updated_at: str


class KycDocumentEntry(BaseModel):
    file: str
    description: str = ""
    date: str


class KycDocumentsResponse(BaseModel):
    id: str
    job_id: str
    active_status: str
    documents: list[KycDocumentEntry]
    updated_by: str | None
    updated_at: str


class RenewExpiryRequest(BaseModel):
    field: str
    person_id: str | None = None


class RenewExpiryResponse(BaseModel):
    field: str
    expiry: str


class EngagementLetterResponse(BaseModel):
    message: str
    engagement_letter: str

"""Operations-side records attached to a job.

Company details, person details and KYC documents are created lazily on
first read. Multipart updates only overwrite fields that were sent with a
non-empty value; every mutation adds a timeline entry at the job's current
status and tells the compliance team.
"""
import json
import logging
import uuid
from typing import Any, Mapping

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from app.errors import IntakeError, NotFoundError, PermissionDeniedError
from app.models.job import Job
from app.models.operation import CompanyDetails, KycDocumentSet, PersonDetails
from app.models.user import User
from app.schemas.operation import KycDocumentEntry
from app.services import notification_service as notifications
from app.services.job_service import add_timeline_entry
from app.services.permissions import role_allows
from app.services.storage_service import has_file, read_upload, store_bytes
from app.utils.dates import parse_date, renew_one_year, utc_now

logger = logging.getLogger("app.operations")

PERSON_TYPES = ("director", "shareholder", "secretary", "sef")

COMPANY_TEXT_FIELDS = (
    "company_name", "qfc_no", "registered_address", "incorporation_date", "service_type",
    "main_purpose", "expiry_date", "company_computer_card_expiry", "tax_card_expiry",
    "cr_extract_expiry", "scope_of_license_expiry", "kyc_active_status",
)
COMPANY_FILE_FIELDS = (
    "engagement_letters", "company_computer_card", "tax_card", "cr_extract",
    "scope_of_license", "article_of_associate", "certificate_of_incorporate",
)
COMPANY_EXPIRY_FIELDS = (
    "expiry_date", "company_computer_card_expiry", "tax_card_expiry",
    "cr_extract_expiry", "scope_of_license_expiry",
)

PERSON_TEXT_FIELDS = (
    "name", "nationality", "qid_no", "qid_expiry", "national_address",
    "national_address_expiry", "passport_no", "passport_expiry", "mobile_no", "email",
)
PERSON_FILE_FIELDS = ("visa_copy", "qid_doc", "national_address_doc", "passport_doc", "cv")
PERSON_EXPIRY_FIELDS = ("qid_expiry", "national_address_expiry", "passport_expiry")
COMPANY_DATE_FIELDS = ("incorporation_date", *COMPANY_EXPIRY_FIELDS)

_kyc_entries = TypeAdapter(list[KycDocumentEntry])


def _label(person_type: str) -> str:
    return person_type.capitalize()


def check_person_type(person_type: str):
    if person_type not in PERSON_TYPES:
        raise IntakeError("Invalid person type")


def _text(form: Mapping[str, Any], name: str) -> str | None:
    value = form.get(name)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _check_dates(form: Mapping[str, Any], names: tuple[str, ...]):
    for name in names:
        parse_date(_text(form, name))


async def _collect_files(form: Mapping[str, Any], names: tuple[str, ...]) -> dict[str, tuple[str, bytes]]:
    # Read every upload before storing any, so a bad file rejects the whole request.
    files = {}
    for name in names:
        upload = form.get(name)
        if not isinstance(upload, str) and has_file(upload):
            files[name] = (upload.filename, await read_upload(upload))
    return files


def _store_files(folder: str, files: dict[str, tuple[str, bytes]]) -> dict[str, str]:
    return {name: store_bytes(folder, filename, content) for name, (filename, content) in files.items()}


def _notify_compliance(db: Session, job: Job, title: str, description: str):
    notifications.notify(
        db,
        title=title,
        description=description,
        recipients=notifications.ids_with_permission(db, "compliance_management"),
        job_id=job.id,
    )


def _touch(job: Job, description: str, user: User):
    job.updated_at = utc_now()
    add_timeline_entry(job, job.status, description, user.id)


def get_or_create_company_details(db: Session, job: Job, user: User) -> CompanyDetails:
    if job.company_details is None:
        now = utc_now()
        job.company_details = CompanyDetails(
            id=str(uuid.uuid4()),
            company_name=job.client_name,
            kyc_active_status="yes",
            updated_by=user.id,
            created_at=now,
            updated_at=now,
        )
        db.commit()
        db.refresh(job)
    return job.company_details


async def update_company_details(db: Session, job: Job, user: User, form: Mapping[str, Any]) -> CompanyDetails:
    status = _text(form, "kyc_active_status")
    if status is not None and status not in ("yes", "no"):
        raise IntakeError("kyc_active_status must be 'yes' or 'no'")
    _check_dates(form, COMPANY_DATE_FIELDS)
    files = await _collect_files(form, COMPANY_FILE_FIELDS)

    details = get_or_create_company_details(db, job, user)
    for name in COMPANY_TEXT_FIELDS:
        value = _text(form, name)
        if value is not None:
            setattr(details, name, value)
    for name, url in _store_files(f"jobs/{job.id}/company", files).items():
        setattr(details, name, url)
    details.updated_by = user.id
    details.updated_at = utc_now()

    _touch(job, "Company details updated", user)
    _notify_compliance(
        db, job, "Company Details Updated",
        f"Company details updated for {job.client_name}'s {job.service_type} job.",
    )
    db.commit()
    db.refresh(details)
    logger.info("Company details for job %s updated by %s", job.id, user.id)
    return details


async def upload_engagement_letter(db: Session, job: Job, user: User, upload) -> CompanyDetails:
    if not has_file(upload):
        raise IntakeError("Engagement letter file is required")
    content = await read_upload(upload)

    details = get_or_create_company_details(db, job, user)
    details.engagement_letters = store_bytes(f"jobs/{job.id}/documents", upload.filename, content)
    details.updated_by = user.id
    details.updated_at = utc_now()

    _touch(job, "Engagement letter uploaded", user)
    _notify_compliance(
        db, job, "Engagement Letter Uploaded",
        f"Engagement letter uploaded for {job.client_name}'s {job.service_type} job.",
    )
    db.commit()
    db.refresh(details)
    logger.info("Engagement letter stored for job %s", job.id)
    return details


def list_person_details(db: Session, job: Job, person_type: str, user: User) -> list[PersonDetails]:
    check_person_type(person_type)
    people = (
        db.query(PersonDetails)
        .filter(PersonDetails.job_id == job.id, PersonDetails.person_type == person_type)
        .order_by(PersonDetails.created_at)
        .all()
    )
    if not people and person_type == "director":
        # Seed the client as the first director.
        now = utc_now()
        director = PersonDetails(
            id=str(uuid.uuid4()),
            job_id=job.id,
            person_type="director",
            name=job.client_name,
            email=job.gmail,
            updated_by=user.id,
            created_at=now,
            updated_at=now,
        )
        db.add(director)
        db.commit()
        db.refresh(director)
        people = [director]
    return people


def get_person(db: Session, job: Job, person_type: str, person_id: str) -> PersonDetails:
    person = (
        db.query(PersonDetails)
        .filter(
            PersonDetails.id == person_id,
            PersonDetails.job_id == job.id,
            PersonDetails.person_type == person_type,
        )
        .first()
    )
    if person is None:
        raise NotFoundError("Person details not found")
    return person


async def add_person_details(
    db: Session, job: Job, person_type: str, user: User, form: Mapping[str, Any]
) -> PersonDetails:
    check_person_type(person_type)
    name = _text(form, "name")
    if name is None:
        raise IntakeError("Name is required")
    _check_dates(form, PERSON_EXPIRY_FIELDS)
    files = await _collect_files(form, PERSON_FILE_FIELDS)

    now = utc_now()
    person = PersonDetails(
        id=str(uuid.uuid4()),
        job_id=job.id,
        person_type=person_type,
        updated_by=user.id,
        created_at=now,
        updated_at=now,
        **{field: _text(form, field) for field in PERSON_TEXT_FIELDS},
    )
    for field, url in _store_files(f"jobs/{job.id}/people", files).items():
        setattr(person, field, url)
    db.add(person)

    label = _label(person_type)
    _touch(job, f"{label} details added", user)
    _notify_compliance(
        db, job, f"{label} Details Added",
        f"{label} details added for {job.client_name}'s {job.service_type} job.",
    )
    db.commit()
    db.refresh(person)
    return person


async def update_person_details(
    db: Session, job: Job, person_type: str, person_id: str, user: User, form: Mapping[str, Any]
) -> PersonDetails:
    check_person_type(person_type)
    person = get_person(db, job, person_type, person_id)
    _check_dates(form, PERSON_EXPIRY_FIELDS)
    files = await _collect_files(form, PERSON_FILE_FIELDS)

    for field in PERSON_TEXT_FIELDS:
        value = _text(form, field)
        if value is not None:
            setattr(person, field, value)
    for field, url in _store_files(f"jobs/{job.id}/people", files).items():
        setattr(person, field, url)
    person.updated_by = user.id
    person.updated_at = utc_now()

    label = _label(person_type)
    _touch(job, f"{label} details updated", user)
    _notify_compliance(
        db, job, f"{label} Details Updated",
        f"{label} details updated for {job.client_name}'s {job.service_type} job.",
    )
    db.commit()
    db.refresh(person)
    return person


def delete_person_details(db: Session, job: Job, person_type: str, person_id: str, user: User):
    check_person_type(person_type)
    person = get_person(db, job, person_type, person_id)
    db.delete(person)

    label = _label(person_type)
    _touch(job, f"{label} details removed", user)
    _notify_compliance(
        db, job, f"{label} Details Removed",
        f"{label} details removed from {job.client_name}'s {job.service_type} job.",
    )
    db.commit()


def get_or_create_kyc_documents(db: Session, job: Job, user: User) -> KycDocumentSet:
    kyc = db.query(KycDocumentSet).filter(KycDocumentSet.job_id == job.id).first()
    if kyc is None:
        now = utc_now()
        kyc = KycDocumentSet(
            id=str(uuid.uuid4()),
            job_id=job.id,
            active_status="yes",
            documents=[],
            updated_by=user.id,
            created_at=now,
            updated_at=now,
        )
        db.add(kyc)
        db.commit()
        db.refresh(kyc)
    return kyc


async def update_kyc_documents(db: Session, job: Job, user: User, form) -> KycDocumentSet:
    """Update the KYC set from a multipart form.

    Files sent under ``files`` are appended, each described by
    ``description_<i>`` and ``date_<i>``. Without files, a JSON ``documents``
    field replaces the list.
    """
    status = _text(form, "active_status")
    if status is not None and status not in ("yes", "no"):
        raise IntakeError("active_status must be 'yes' or 'no'")

    uploads = [u for u in form.getlist("files") if not isinstance(u, str) and has_file(u)]
    contents = [(u.filename, await read_upload(u)) for u in uploads]
    replacement = None
    raw_documents = _text(form, "documents")
    if not contents and raw_documents is not None:
        try:
            entries = _kyc_entries.validate_python(json.loads(raw_documents))
        except (json.JSONDecodeError, ValidationError):
            raise IntakeError("documents must be a JSON list of {file, description, date} entries")
        replacement = [entry.model_dump() for entry in entries]

    kyc = get_or_create_kyc_documents(db, job, user)
    if status is not None:
        kyc.active_status = status
    if contents:
        today = utc_now()[:10]
        added = [
            {
                "file": store_bytes(f"jobs/{job.id}/kyc", filename, content),
                "description": _text(form, f"description_{i}") or "",
                "date": _text(form, f"date_{i}") or today,
            }
            for i, (filename, content) in enumerate(contents)
        ]
        kyc.documents = [*kyc.documents, *added]
    elif replacement is not None:
        kyc.documents = replacement
    kyc.updated_by = user.id
    kyc.updated_at = utc_now()

    _touch(job, "KYC documents updated", user)
    _notify_compliance(
        db, job, "KYC Documents Updated",
        f"KYC documents updated for {job.client_name}'s {job.service_type} job.",
    )
    db.commit()
    db.refresh(kyc)
    return kyc


def renew_expiry(db: Session, job: Job, user: User, field: str, person_id: str | None = None) -> str:
    """Move one ``*_expiry`` date a year forward and return the new ISO date."""
    if field in COMPANY_EXPIRY_FIELDS:
        record = get_or_create_company_details(db, job, user)
    elif field in PERSON_EXPIRY_FIELDS:
        if not person_id:
            raise IntakeError("person_id is required to renew a person's document")
        record = db.query(PersonDetails).filter(
            PersonDetails.id == person_id, PersonDetails.job_id == job.id
        ).first()
        if record is None:
            raise NotFoundError("Person details not found")
    else:
        raise IntakeError(f"Unknown expiry field: {field}")

    renewed = renew_one_year(parse_date(getattr(record, field))).isoformat()
    setattr(record, field, renewed)
    record.updated_by = user.id
    record.updated_at = utc_now()
    _touch(job, f"Expiry renewed: {field} to {renewed}", user)
    db.commit()
    logger.info("Renewed %s on job %s to %s", field, job.id, renewed)
    return renewed


def ensure_can_complete(user: User, job: Job):
    allowed = (
        role_allows(user.role, "operation_management")
        or job.assigned_person == user.id
    )
    if not allowed:
        raise PermissionDeniedError("You are not authorized to complete this job")

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_admin
from app.models.client import Service
from app.models.user import User
from app.schemas.client import ServiceCreate, ServiceResponse, ServiceUpdate
from app.utils.dates import utc_now

router = APIRouter(prefix="/services", tags=["services"])

VALID_STATUSES = {"active", "inactive"}


def _service_to_response(service: Service) -> ServiceResponse:
    return ServiceResponse(
        id=service.id,
        name=service.name,
        description=service.description,
        status=service.status,
        usage_count=service.usage_count,
        created_at=service.created_at,
        updated_at=service.updated_at,
    )


def _get_service(db: Session, service_id: str) -> Service:
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


def _check_status(status: str):
    if status not in VALID_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {VALID_STATUSES}")


def _check_name_free(db: Session, name: str, service_id: str | None = None):
    clash = db.query(Service).filter(Service.name == name).first()
    if clash is not None and clash.id != service_id:
        raise HTTPException(status_code=409, detail="Service with this name already exists")


@router.get("", response_model=list[ServiceResponse])
async def list_services(
    status: str | None = None,
    _user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Service)
    if status:
        query = query.filter(Service.status == status)
    return [_service_to_response(s) for s in query.order_by(Service.name).all()]


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(service_id: str, _user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _service_to_response(_get_service(db, service_id))


@router.post("", response_model=ServiceResponse, status_code=201)
async def create_service(
    req: ServiceCreate,
    _user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    _check_status(req.status)
    name = req.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Service name is required")
    _check_name_free(db, name)

    now = utc_now()
    service = Service(
        id=str(uuid.uuid4()),
        name=name,
        description=req.description,
        status=req.status,
        usage_count=0,
        created_at=now,
        updated_at=now,
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    return _service_to_response(service)


@router.put("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: str,
    req: ServiceUpdate,
    _user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = _get_service(db, service_id)
    if req.status is not None:
        _check_status(req.status)
        service.status = req.status
    if req.name is not None:
        _check_name_free(db, req.name.strip(), service.id)
        service.name = req.name.strip()
    if req.description is not None:
        service.description = req.description
    service.updated_at = utc_now()

    db.commit()
    db.refresh(service)
    return _service_to_response(service)


@router.delete("/{service_id}")
async def delete_service(service_id: str, _user: User = Depends(require_admin), db: Session = Depends(get_db)):
    service = _get_service(db, service_id)
    db.delete(service)
    db.commit()
    return {"message": "Service deleted"}

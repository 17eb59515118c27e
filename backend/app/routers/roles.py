import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import require_permission
from app.models.user import Role, User
from app.schemas.user import PermissionPatch, RoleCreate, RoleResponse, RoleUpdate
from app.services import notification_service as notifications
from app.services.permissions import is_admin_role, load_permissions, with_permission
from app.utils.dates import utc_now

logger = logging.getLogger("app.roles")

router = APIRouter(prefix="/roles", tags=["roles"])


def _role_to_response(role: Role) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        permissions=load_permissions(role.permissions),
        user_count=len(role.users),
        created_at=role.created_at,
        updated_at=role.updated_at,
    )


def _get_role(db: Session, role_id: str) -> Role:
    role = db.query(Role).filter(Role.id == role_id).first()
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")
    return role


def _check_name_free(db: Session, name: str, role_id: str | None = None):
    # Role names are unique ignoring case.
    clash = db.query(Role).filter(func.lower(Role.name) == name.lower()).first()
    if clash is not None and clash.id != role_id:
        raise HTTPException(status_code=409, detail=f"A role named '{name}' already exists")


@router.get("", response_model=list[RoleResponse])
async def list_roles(
    _user: User = Depends(require_permission("user_management")),
    db: Session = Depends(get_db),
):
    return [_role_to_response(r) for r in db.query(Role).order_by(Role.name).all()]


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    _user: User = Depends(require_permission("user_management")),
    db: Session = Depends(get_db),
):
    return _role_to_response(_get_role(db, role_id))


@router.post("", response_model=RoleResponse, status_code=201)
async def create_role(
    req: RoleCreate,
    user: User = Depends(require_permission("user_management")),
    db: Session = Depends(get_db),
):
    name = req.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Role name is required")
    _check_name_free(db, name)

    now = utc_now()
    role = Role(
        id=str(uuid.uuid4()),
        name=name,
        permissions=req.permissions.model_dump(),
        created_at=now,
        updated_at=now,
    )
    db.add(role)
    notifications.notify(
        db,
        title="Role Created",
        description=f"Role '{name}' was created by {user.name}.",
        recipients=notifications.admin_ids(db),
        type="role",
    )
    db.commit()
    db.refresh(role)
    logger.info("Role %s created by %s", role.name, user.id)
    return _role_to_response(role)


@router.put("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    req: RoleUpdate,
    user: User = Depends(require_permission("user_management")),
    db: Session = Depends(get_db),
):
    role = _get_role(db, role_id)
    if req.name is not None:
        name = req.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Role name is required")
        if is_admin_role(role.name) and not is_admin_role(name):
            raise HTTPException(status_code=403, detail="The Admin role cannot be renamed")
        _check_name_free(db, name, role.id)
        role.name = name
    if req.permissions is not None:
        role.permissions = req.permissions.model_dump()
    role.updated_at = utc_now()

    db.commit()
    db.refresh(role)
    logger.info("Role %s updated by %s", role.name, user.id)
    return _role_to_response(role)


@router.patch("/{role_id}/permissions", response_model=RoleResponse)
async def patch_permissions(
    role_id: str,
    ops: list[PermissionPatch],
    user: User = Depends(require_permission("user_management")),
    db: Session = Depends(get_db),
):
    role = _get_role(db, role_id)
    record = load_permissions(role.permissions)
    # Applied to a copy; nothing is written unless every path is valid.
    for op in ops:
        record = with_permission(record, op.path, op.value)
    role.permissions = record.model_dump()
    role.updated_at = utc_now()

    db.commit()
    db.refresh(role)
    logger.info("Role %s: %d permission(s) changed by %s", role.name, len(ops), user.id)
    return _role_to_response(role)


@router.delete("/{role_id}")
async def delete_role(
    role_id: str,
    user: User = Depends(require_permission("user_management")),
    db: Session = Depends(get_db),
):
    role = _get_role(db, role_id)
    if is_admin_role(role.name):
        raise HTTPException(status_code=403, detail="The Admin role cannot be deleted")
    if role.users:
        raise HTTPException(
            status_code=409,
            detail=f"Role is still assigned to {len(role.users)} user(s)",
        )

    name = role.name
    db.delete(role)
    notifications.notify(
        db,
        title="Role Deleted",
        description=f"Role '{name}' was deleted by {user.name}.",
        recipients=notifications.admin_ids(db),
        type="role",
    )
    db.commit()
    logger.info("Role %s deleted by %s", name, user.id)
    return {"message": "Role deleted"}

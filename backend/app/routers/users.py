import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_permission
from app.models.job import Job
from app.models.user import Role, User
from app.schemas.user import AssignableUser, UserCreate, UserResponse, UserUpdate
from app.services import notification_service as notifications
from app.services.auth_service import auth_service
from app.services.permissions import load_permissions
from app.utils.dates import utc_now
from app.utils.security import hash_password

logger = logging.getLogger("app.users")

router = APIRouter(prefix="/users", tags=["users"])

MIN_PASSWORD_LENGTH = 8


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role_id=user.role_id,
        role_name=user.role.name if user.role else None,
        permissions=load_permissions(user.role.permissions) if user.role else None,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _check_role(db: Session, role_id: str):
    if db.query(Role).filter(Role.id == role_id).first() is None:
        raise HTTPException(status_code=400, detail="Role not found")


def _check_email_free(db: Session, email: str, user_id: str | None = None):
    clash = db.query(User).filter(User.email == email).first()
    if clash is not None and clash.id != user_id:
        raise HTTPException(status_code=409, detail="A user with this email already exists")


@router.get("/assignable", response_model=list[AssignableUser])
async def list_assignable(_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    users = db.query(User).order_by(User.name).all()
    return [
        AssignableUser(id=u.id, name=u.name, role_name=u.role.name if u.role else None)
        for u in users
    ]


@router.get("", response_model=list[UserResponse])
async def list_users(
    _user: User = Depends(require_permission("user_management")),
    db: Session = Depends(get_db),
):
    return [user_to_response(u) for u in db.query(User).order_by(User.name).all()]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    _user: User = Depends(require_permission("user_management")),
    db: Session = Depends(get_db),
):
    return user_to_response(_get_user(db, user_id))


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    req: UserCreate,
    admin: User = Depends(require_permission("user_management")),
    db: Session = Depends(get_db),
):
    if len(req.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="Password must be at least 8 characters")
    _check_role(db, req.role_id)
    _check_email_free(db, req.email)

    now = utc_now()
    user = User(
        id=str(uuid.uuid4()),
        name=req.name,
        email=req.email,
        password_hash=hash_password(req.password),
        role_id=req.role_id,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    db.flush()
    notifications.notify(
        db,
        title="Welcome",
        description=f"Your account was created by {admin.name}.",
        recipients=[user.id],
        type="user",
    )
    db.commit()
    db.refresh(user)
    logger.info("User %s created by %s", user.email, admin.id)
    return user_to_response(user)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    req: UserUpdate,
    admin: User = Depends(require_permission("user_management")),
    db: Session = Depends(get_db),
):
    user = _get_user(db, user_id)
    if req.email is not None:
        _check_email_free(db, req.email, user.id)
        user.email = req.email
    if req.name is not None:
        user.name = req.name
    if req.role_id is not None:
        _check_role(db, req.role_id)
        user.role_id = req.role_id
    if req.password is not None:
        if len(req.password) < MIN_PASSWORD_LENGTH:
            raise HTTPException(status_code=400, detail="Password must be at least 8 characters")
        user.password_hash = hash_password(req.password)
        auth_service.revoke_user(user.id)
    user.updated_at = utc_now()

    db.commit()
    db.refresh(user)
    logger.info("User %s updated by %s", user.email, admin.id)
    return user_to_response(user)


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    admin: User = Depends(require_permission("user_management")),
    db: Session = Depends(get_db),
):
    user = _get_user(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    in_use = db.query(Job.id).filter(
        (Job.assigned_person == user.id) | (Job.created_by == user.id)
    ).first()
    if in_use is not None:
        raise HTTPException(status_code=409, detail="User is referenced by existing jobs")

    db.delete(user)
    db.commit()
    auth_service.revoke_user(user_id)
    logger.info("User %s deleted by %s", user_id, admin.id)
    return {"message": "User deleted"}

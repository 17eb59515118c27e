from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.services.auth_service import auth_service
from app.services.permissions import is_admin_role, role_allows


async def require_token(authorization: str = Header(...)) -> str:
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return authorization[7:]


async def get_current_user(
    request: Request,
    token: str = Depends(require_token),
    db: Session = Depends(get_db),
) -> User:
    user_id = auth_service.resolve_token(token)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Session expired or invalid token")
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        auth_service.logout(token)
        raise HTTPException(status_code=401, detail="User no longer exists")
    # Plain snapshot for the error-logging middleware; the ORM object may be
    # detached by the time an error reaches it.
    request.state.user = {
        "id": user.id,
        "name": user.name,
        "role": user.role.name if user.role else None,
        "permissions": user.role.permissions if user.role else None,
    }
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role is None or not is_admin_role(user.role.name):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def require_permission(path: str):
    async def checker(user: User = Depends(get_current_user)) -> User:
        if not role_allows(user.role, path):
            raise HTTPException(status_code=403, detail=f"Missing permission: {path}")
        return user

    return checker

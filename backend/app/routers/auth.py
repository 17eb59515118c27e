from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_token
from app.models.user import User
from app.routers.users import MIN_PASSWORD_LENGTH, user_to_response
from app.schemas.auth import LoginRequest, LoginResponse, SetupRequest, ThrottleResponse
from app.schemas.user import UserResponse
from app.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/status")
async def auth_status(db: Session = Depends(get_db)):
    return {"initialized": auth_service.is_initialized(db)}


@router.post("/setup", response_model=UserResponse, status_code=201)
async def setup(req: SetupRequest, db: Session = Depends(get_db)):
    if auth_service.is_initialized(db):
        raise HTTPException(status_code=409, detail="Already initialized")
    if len(req.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail="Password must be at least 8 characters")
    user = auth_service.setup(db, req.name, req.email, req.password)
    return user_to_response(user)


@router.post("/login", response_model=LoginResponse | ThrottleResponse)
async def login(req: LoginRequest, request: Request, db: Session = Depends(get_db)):
    client_host = request.client.host if request.client else "unknown"
    result = auth_service.login(db, req.email, req.password, throttle_key=f"login:{client_host}")
    if result is None:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if "error" in result:
        raise HTTPException(status_code=429, detail=result)
    return LoginResponse(
        token=result["token"],
        expires_in_seconds=result["expires_in_seconds"],
        user=user_to_response(result["user"]),
    )


@router.post("/logout")
async def logout(token: str = Depends(require_token), _user: User = Depends(get_current_user)):
    auth_service.logout(token)
    return {"message": "Logged out"}


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return user_to_response(user)

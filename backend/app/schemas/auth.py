from pydantic import BaseModel, EmailStr

from app.schemas.user import UserResponse


class SetupRequest(BaseModel):
    name: str
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    token: str
    expires_in_seconds: int
    user: UserResponse


class ThrottleResponse(BaseModel):
    error: str
    retry_after_seconds: float

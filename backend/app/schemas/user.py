from pydantic import BaseModel, EmailStr

from app.services.permissions import RolePermissions


class RoleCreate(BaseModel):
    name: str
    permissions: RolePermissions = RolePermissions()


class RoleUpdate(BaseModel):
    name: str | None = None
    permissions: RolePermissions | None = None


class PermissionPatch(BaseModel):
    path: str
    value: bool


class RoleResponse(BaseModel):
    id: str
    name: str
    permissions: RolePermissions
    user_count: int = 0
    created_at: str
    updated_at: str


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str
    role_id: str


class UserUpdate(BaseModel):
    name: str | None = None
    email: EmailStr | None = None
    password: str | None = None
    role_id: str | None = None


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    role_id: str | None
    role_name: str | None = None
    permissions: RolePermissions | None = None
    created_at: str
    updated_at: str


class AssignableUser(BaseModel):
    id: str
    name: str
    role_name: str | None = None

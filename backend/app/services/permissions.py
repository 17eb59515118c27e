"""Role permission matrix.

Permissions are stored on a role as the JSON dump of :class:`RolePermissions`.
The record types are frozen; edits go through :func:`with_permission`, which
returns a new record instead of mutating the stored one.
"""
from typing import Any

from pydantic import BaseModel, ConfigDict

from app.errors import IntakeError

ADMIN_ROLE_NAME = "Admin"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class SectionAccess(_Frozen):
    editor: bool = False
    viewer: bool = False


class ClientManagement(_Frozen):
    company_details: SectionAccess = SectionAccess()
    director_details: SectionAccess = SectionAccess()
    secretary_details: SectionAccess = SectionAccess()
    shareholder_details: SectionAccess = SectionAccess()
    sef_details: SectionAccess = SectionAccess()
    signed_kyc: SectionAccess = SectionAccess()
    payment_details: SectionAccess = SectionAccess()
    audited_financial: SectionAccess = SectionAccess()


class ApprovalChain(_Frozen):
    lmro: bool = False
    dlmro: bool = False
    ceo: bool = False


class RolePermissions(_Frozen):
    client_management: ClientManagement = ClientManagement()
    document_management: bool = False
    renewal_management: bool = False
    compliance_management: bool = False
    request_service: bool = False
    user_management: bool = False
    operation_management: bool = False
    account_management: bool = False
    kyc_management: ApprovalChain = ApprovalChain()
    bra_management: ApprovalChain = ApprovalChain()


def full_access() -> RolePermissions:
    section = SectionAccess(editor=True, viewer=True)
    chain = ApprovalChain(lmro=True, dlmro=True, ceo=True)
    flags = {
        name: True
        for name, field in RolePermissions.model_fields.items()
        if field.annotation is bool
    }
    return RolePermissions(
        client_management=ClientManagement(**{name: section for name in ClientManagement.model_fields}),
        kyc_management=chain,
        bra_management=chain,
        **flags,
    )


def is_admin_role(name: str | None) -> bool:
    return bool(name) and name.strip().lower() == ADMIN_ROLE_NAME.lower()


def load_permissions(raw: dict[str, Any] | None) -> RolePermissions:
    return RolePermissions.model_validate(raw or {})


def with_permission(record: BaseModel, path: str, value: bool) -> BaseModel:
    """Return a copy of ``record`` with the boolean at dotted ``path`` set to ``value``."""
    head, _, rest = path.partition(".")
    if head not in type(record).model_fields:
        raise IntakeError(f"Unknown permission path: {path}")
    current = getattr(record, head)
    if rest:
        if not isinstance(current, BaseModel):
            raise IntakeError(f"Unknown permission path: {path}")
        return record.model_copy(update={head: with_permission(current, rest, value)})
    if isinstance(current, BaseModel):
        raise IntakeError(f"Permission path must name a flag, not a section: {path}")
    return record.model_copy(update={head: value})


def lookup(raw: dict[str, Any] | None, path: str) -> Any:
    node: Any = raw or {}
    for key in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def role_allows(role, path: str) -> bool:
    """True when ``role`` grants the flag at ``path``. The Admin role grants everything."""
    if role is None:
        return False
    if is_admin_role(role.name):
        return True
    return lookup(role.permissions, path) is True

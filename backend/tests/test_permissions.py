from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from app.errors import IntakeError
from app.services.permissions import (
    RolePermissions,
    full_access,
    is_admin_role,
    load_permissions,
    role_allows,
    with_permission,
)


class TestPermissionRecord:
    def test_defaults_are_all_false(self):
        record = RolePermissions()
        assert record.compliance_management is False
        assert record.client_management.company_details.editor is False
        assert record.kyc_management.ceo is False

    def test_record_is_frozen(self):
        record = RolePermissions()
        with pytest.raises(ValidationError):
            record.user_management = True

    def test_with_permission_returns_copy(self):
        record = RolePermissions()
        updated = with_permission(record, "client_management.company_details.editor", True)
        assert updated.client_management.company_details.editor is True
        assert record.client_management.company_details.editor is False
        assert updated.client_management.company_details.viewer is False

    def test_with_permission_flat_flag(self):
        updated = with_permission(RolePermissions(), "operation_management", True)
        assert updated.operation_management is True

    def test_with_permission_unknown_path(self):
        with pytest.raises(IntakeError, match="Unknown permission path"):
            with_permission(RolePermissions(), "client_management.nope.editor", True)

    def test_with_permission_rejects_section(self):
        with pytest.raises(IntakeError, match="must name a flag"):
            with_permission(RolePermissions(), "kyc_management", True)

    def test_full_access(self):
        record = full_access()
        assert record.user_management is True
        assert record.client_management.audited_financial.viewer is True
        assert record.bra_management.lmro is True

    def test_load_round_trips_stored_json(self):
        stored = with_permission(RolePermissions(), "kyc_management.lmro", True).model_dump()
        assert load_permissions(stored).kyc_management.lmro is True


class TestRoleAllows:
    def test_admin_name_is_case_insensitive(self):
        assert is_admin_role("Admin")
        assert is_admin_role("ADMIN")
        assert is_admin_role(" admin ")
        assert not is_admin_role("Administrator")
        assert not is_admin_role(None)

    def test_admin_role_grants_everything(self):
        role = SimpleNamespace(name="admin", permissions={})
        assert role_allows(role, "account_management")

    def test_non_admin_uses_stored_flags(self):
        permissions = with_permission(RolePermissions(), "compliance_management", True).model_dump()
        role = SimpleNamespace(name="Compliance", permissions=permissions)
        assert role_allows(role, "compliance_management")
        assert not role_allows(role, "operation_management")

    def test_no_role(self):
        assert not role_allows(None, "compliance_management")

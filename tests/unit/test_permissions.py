"""Unit tests for the role permission matrix and service authorization helpers."""

import uuid

import pytest

from backend.app.api.errors import AuthorizationError
from backend.app.models.common import Role
from backend.app.services.base import BaseEntityService, PermissionContext, role_has_permission


class TestRolePermissionMatrix:
    def test_owner_has_everything(self) -> None:
        for permission in ("read", "delete", "manage_users", "delete_tenant", "transfer_ownership"):
            assert role_has_permission(Role.owner, permission)

    def test_admin_lacks_owner_only_permissions(self) -> None:
        assert role_has_permission(Role.admin, "manage_users")
        assert role_has_permission(Role.admin, "delete")
        assert not role_has_permission(Role.admin, "delete_tenant")
        assert not role_has_permission(Role.admin, "transfer_ownership")

    def test_member_can_read_and_create_only(self) -> None:
        assert role_has_permission(Role.member, "read")
        assert role_has_permission(Role.member, "create")
        assert role_has_permission(Role.member, "update_own")
        assert not role_has_permission(Role.member, "update")
        assert not role_has_permission(Role.member, "delete")
        assert not role_has_permission(Role.member, "invite_users")

    def test_viewer_can_only_read(self) -> None:
        assert role_has_permission(Role.viewer, "read")
        assert not role_has_permission(Role.viewer, "create")

    def test_role_given_as_string(self) -> None:
        assert role_has_permission("admin", "manage_users")

    def test_missing_role_grants_nothing(self) -> None:
        """There is no default role."""
        assert not role_has_permission(None, "read")


def _service(role: Role | None, tenant: bool = True) -> BaseEntityService:
    ctx = PermissionContext(
        user_id=uuid.uuid4(), tenant_id=uuid.uuid4() if tenant else None, role=role
    )
    return BaseEntityService(session=None, permission_context=ctx)  # type: ignore[arg-type]


def test_require_raises_with_custom_message() -> None:
    service = _service(Role.viewer)

    with pytest.raises(AuthorizationError) as exc_info:
        service.require("create", "Insufficient permissions to create a person")

    assert exc_info.value.status_code == 403
    assert exc_info.value.message == "Insufficient permissions to create a person"


def test_require_role() -> None:
    _service(Role.owner).require_role(Role.owner)

    with pytest.raises(AuthorizationError) as exc_info:
        _service(Role.admin).require_role(Role.owner)
    assert exc_info.value.message == "Requires role: owner"


def test_tenant_id_without_tenant_context_is_a_programming_error() -> None:
    with pytest.raises(RuntimeError):
        _ = _service(None, tenant=False).tenant_id

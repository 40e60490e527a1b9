"""Tenant provisioning, security groups and access tokens."""
import uuid
from datetime import timedelta

import pytest

from retailbill.core.exceptions import BusinessError, NotFoundError, ValidationError
from retailbill.core.permissions import Permission
from retailbill.core.security import create_access_token, verify_access_token
from retailbill.schemas.security_group import SecurityGroupCreate
from retailbill.schemas.tenant import TenantProvisionRequest
from retailbill.services.configuration_service import ConfigurationService
from retailbill.services.security_group_service import SecurityGroupService
from retailbill.services.tenant_service import ADMIN_GROUP_NAME, TenantService

from helpers import ADMIN_USER


async def test_provisioning_seeds_admin_and_prefixes(db, tenant):
    groups = SecurityGroupService(db)

    assert [g.name for g in await groups.get_user_groups(tenant.id, ADMIN_USER)] == [ADMIN_GROUP_NAME]
    assert await groups.get_user_permissions(tenant.id, ADMIN_USER) == set(Permission)
    assert await ConfigurationService(db).get_config_value("billing.invoice_prefix", tenant.id) == "INV"


async def test_duplicate_slug_and_bad_gstin(db, tenant):
    service = TenantService(db)
    with pytest.raises(BusinessError) as exc:
        await service.provision_tenant(
            TenantProvisionRequest(name="Again", slug="corner-store", admin_user_id="x")
        )
    assert exc.value.error_code == "TENANT_EXISTS"

    with pytest.raises(ValidationError):
        await service.provision_tenant(
            TenantProvisionRequest(name="Typo", slug="typo-store", admin_user_id="x", gstin="12345")
        )


async def test_permissions_are_union_of_active_groups(db, tenant):
    groups = SecurityGroupService(db)
    cashier = await groups.create_security_group(
        tenant.id,
        SecurityGroupCreate(name="Cashier", permissions=[Permission.INVOICE_VIEW, Permission.INVOICE_CREATE]),
        created_by=ADMIN_USER,
    )
    returns = await groups.create_security_group(
        tenant.id,
        SecurityGroupCreate(name="Returns", permissions=[Permission.PAYMENT_REFUND]),
    )
    dormant = await groups.create_security_group(
        tenant.id,
        SecurityGroupCreate(name="Dormant", permissions=[Permission.SETTINGS_UPDATE], is_active=False),
    )

    await groups.assign_groups_to_user(tenant.id, "cashier-1", [cashier.id, returns.id, dormant.id])

    assert await groups.get_user_permissions(tenant.id, "cashier-1") == {
        Permission.INVOICE_VIEW, Permission.INVOICE_CREATE, Permission.PAYMENT_REFUND,
    }
    assert await groups.has_permission(tenant.id, "cashier-1", Permission.INVOICE_CREATE)
    assert not await groups.has_permission(tenant.id, "cashier-1", Permission.SETTINGS_UPDATE)
    assert await groups.has_any_permission(tenant.id, "cashier-1", [Permission.USER_DELETE, Permission.INVOICE_VIEW])
    assert not await groups.has_all_permissions(tenant.id, "cashier-1", [Permission.USER_DELETE, Permission.INVOICE_VIEW])


async def test_assignment_replaces_previous_groups(db, tenant):
    groups = SecurityGroupService(db)
    first = await groups.create_security_group(tenant.id, SecurityGroupCreate(name="First"))
    second = await groups.create_security_group(tenant.id, SecurityGroupCreate(name="Second"))

    await groups.assign_groups_to_user(tenant.id, "clerk", [first.id])
    await groups.assign_groups_to_user(tenant.id, "clerk", [second.id, second.id])

    assert [g.name for g in await groups.get_user_groups(tenant.id, "clerk")] == ["Second"]

    await groups.remove_user_from_group(tenant.id, "clerk", second.id)
    assert await groups.get_user_groups(tenant.id, "clerk") == []
    with pytest.raises(NotFoundError):
        await groups.remove_user_from_group(tenant.id, "clerk", second.id)


async def test_group_rules(db, tenant):
    groups = SecurityGroupService(db)
    with pytest.raises(BusinessError) as exc:
        await groups.create_security_group(tenant.id, SecurityGroupCreate(name=ADMIN_GROUP_NAME))
    assert exc.value.error_code == "SECURITY_GROUP_EXISTS"

    admin_group = (await groups.get_user_groups(tenant.id, ADMIN_USER))[0]
    with pytest.raises(BusinessError) as exc:
        await groups.delete_security_group(admin_group.id, tenant.id)
    assert exc.value.error_code == "SECURITY_GROUP_IN_USE"

    with pytest.raises(NotFoundError):
        await groups.assign_groups_to_user(tenant.id, "clerk", [uuid.uuid4()])


async def test_groups_of_another_tenant_cannot_be_assigned(db, tenant):
    other, _ = await TenantService(db).provision_tenant(
        TenantProvisionRequest(name="Other", slug="other-store", admin_user_id="boss")
    )
    foreign = (await SecurityGroupService(db).get_user_groups(other.id, "boss"))[0]

    with pytest.raises(BusinessError) as exc:
        await SecurityGroupService(db).assign_groups_to_user(tenant.id, "clerk", [foreign.id])
    assert exc.value.error_code == "TENANT_MISMATCH"


def test_access_token_round_trip():
    tenant_id = uuid.uuid4()
    token = create_access_token("cashier-1", tenant_id)

    claims = verify_access_token(token)
    assert claims == {"user_id": "cashier-1", "tenant_id": str(tenant_id)}

    expired = create_access_token("cashier-1", tenant_id, expires_delta=timedelta(minutes=-1))
    assert verify_access_token(expired) is None

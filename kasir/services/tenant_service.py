"""
Tenant (merchant profile) service.

A tenant row is created by an explicit ``ensure_tenant`` call when a user
signs up; nothing creates it implicitly.
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from kasir.exceptions import NotFoundError, InvalidInputError
from kasir.models import Tenant
from kasir.services.ledger_types import parse_tenant_id, check_keys

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {'full_name', 'business_name'}


def ensure_tenant(session, tenant_id: str, full_name: Optional[str] = None,
                  business_name: Optional[str] = None) -> Tenant:
    """Create the tenant profile if missing; idempotent."""
    tenant_id = parse_tenant_id(tenant_id)
    tenant = session.get(Tenant, tenant_id)
    if tenant is not None:
        return tenant

    tenant = Tenant(id=tenant_id, full_name=full_name, business_name=business_name, active=True)
    session.add(tenant)
    try:
        session.commit()
    except IntegrityError:
        # Created concurrently by another request
        session.rollback()
        tenant = session.get(Tenant, tenant_id)
    else:
        logger.info(f"[TENANT] Profile created for tenant {tenant_id}")
    return tenant


def get_tenant(session, tenant_id: str) -> Tenant:
    tenant = session.get(Tenant, parse_tenant_id(tenant_id))
    if tenant is None or not tenant.active:
        raise NotFoundError(f'Tenant {tenant_id} not found')
    return tenant


def update_profile(session, tenant_id: str, data: dict) -> Tenant:
    check_keys(data, PROFILE_FIELDS, 'profile')
    tenant = get_tenant(session, tenant_id)
    for key in PROFILE_FIELDS & set(data):
        value = data[key]
        if value is not None and not isinstance(value, str):
            raise InvalidInputError(f'{key} must be text')
        setattr(tenant, key, value.strip() if value else None)
    session.commit()
    return tenant

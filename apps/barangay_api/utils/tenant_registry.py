"""
Tenant Registry

Provisioning and configuration of barangays (tenants). Only super admins
manage tenants here; a barangay admin changes its own pricing through
``utils.fee_calculator``. Tenants are never deleted, only deactivated.
"""
import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from apps.barangay_api import db
from apps.barangay_api.models.tenant import Tenant
from apps.barangay_api.utils.audit import log_action
from apps.barangay_api.utils.fee_calculator import validate_pricing
from apps.barangay_api.utils.security import Forbidden, NotFound, PreconditionFailed

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('name', 'address', 'municipality', 'province')
EDITABLE_FIELDS = ('name', 'address', 'municipality', 'province', 'contact_number', 'seal_logo_url')
FIELD_LIMITS = {
    'name': 120,
    'address': 255,
    'municipality': 120,
    'province': 120,
    'contact_number': 30,
    'seal_logo_url': 500,
}


def slugify(name: str) -> str:
    """Convert name to URL-friendly slug."""
    slug = name.lower()
    slug = slug.replace('ñ', 'n')
    # Remove parenthetical content
    slug = re.sub(r'\s*\([^)]*\)', '', slug)
    slug = re.sub(r'[^a-z0-9]+', '-', slug)
    slug = re.sub(r'-+', '-', slug)
    return slug.strip('-')


def _require_super_admin(principal) -> None:
    if not principal or not principal.is_super_admin:
        raise Forbidden('Only super admins can manage barangays')


def _clean_fields(data: Mapping[str, Any], fields) -> Dict[str, Optional[str]]:
    cleaned = {}
    for field in fields:
        if field not in data:
            continue
        value = data.get(field)
        value = ' '.join(str(value).split()) if value is not None else None
        if value and len(value) > FIELD_LIMITS[field]:
            raise PreconditionFailed(f'{field} must be at most {FIELD_LIMITS[field]} characters')
        cleaned[field] = value or None
    return cleaned


def _active_flag(data: Mapping[str, Any], default: bool) -> bool:
    value = data.get('is_active', default)
    if not isinstance(value, bool):
        raise PreconditionFailed('is_active must be true or false')
    return value


def _unique_slug(base: str, exclude_id: Optional[int] = None) -> str:
    slug = base or 'barangay'
    suffix = 2
    while True:
        query = Tenant.query.filter_by(slug=slug)
        if exclude_id is not None:
            query = query.filter(Tenant.id != exclude_id)
        if not query.first():
            return slug
        slug = f"{base}-{suffix}"
        suffix += 1


def provision_tenant(principal, data: Mapping[str, Any]) -> Tenant:
    """
    Create a barangay.

    Required: name, address, municipality, province.
    Optional: contact_number, seal_logo_url, document_pricing, is_active.

    Raises:
        Forbidden: principal is not a super admin
        PreconditionFailed: missing or invalid fields
    """
    _require_super_admin(principal)
    data = data or {}
    fields = _clean_fields(data, EDITABLE_FIELDS)
    missing = [f for f in REQUIRED_FIELDS if not fields.get(f)]
    if missing:
        raise PreconditionFailed(f"Missing required fields: {', '.join(missing)}")

    pricing = None
    if data.get('document_pricing'):
        pricing = validate_pricing(data['document_pricing'])

    slug = _unique_slug(slugify(f"{fields['name']} {fields['municipality']} {fields['province']}"))
    tenant = Tenant(
        slug=slug,
        document_pricing=pricing,
        is_active=_active_flag(data, True),
        **fields,
    )
    db.session.add(tenant)
    db.session.flush()

    log_action(
        user_id=principal.id,
        tenant_id=tenant.id,
        entity_type='tenant',
        entity_id=tenant.id,
        action='provision',
        actor_role='Super Admin',
        new_values=tenant.to_dict(),
    )
    db.session.commit()
    logger.info("Provisioned tenant %s (%s)", tenant.id, tenant.slug)
    return tenant


def get_tenant(tenant_id: int) -> Tenant:
    tenant = db.session.get(Tenant, int(tenant_id)) if tenant_id is not None else None
    if not tenant:
        raise NotFound('Barangay not found')
    return tenant


def list_tenants(include_inactive: bool = True) -> List[Tenant]:
    query = Tenant.query
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Tenant.province, Tenant.municipality, Tenant.name).all()


def update_tenant(tenant_id: int, principal, data: Mapping[str, Any]) -> Tenant:
    """Update display metadata and/or the active flag."""
    _require_super_admin(principal)
    tenant = get_tenant(tenant_id)
    data = data or {}

    fields = _clean_fields(data, EDITABLE_FIELDS)
    for field in REQUIRED_FIELDS:
        if field in fields and not fields[field]:
            raise PreconditionFailed(f'{field} cannot be empty')
    active = _active_flag(data, tenant.is_active)

    previous = tenant.to_dict(include_pricing=False)
    for field, value in fields.items():
        setattr(tenant, field, value)
    tenant.is_active = active

    changed = {
        k: v for k, v in tenant.to_dict(include_pricing=False).items()
        if previous.get(k) != v and k != 'updated_at'
    }
    if not changed:
        return tenant

    log_action(
        user_id=principal.id,
        tenant_id=tenant.id,
        entity_type='tenant',
        entity_id=tenant.id,
        action='update',
        actor_role='Super Admin',
        old_values={k: previous.get(k) for k in changed},
        new_values=changed,
    )
    db.session.commit()
    logger.info("Tenant %s updated: %s", tenant.id, ', '.join(sorted(changed)))
    return tenant


def set_tenant_active(tenant_id: int, principal, active: bool) -> Tenant:
    """Activate or deactivate a barangay. Existing requests are untouched."""
    return update_tenant(tenant_id, principal, {'is_active': bool(active)})

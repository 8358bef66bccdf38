"""Barangay provisioning and configuration by super admins."""
import pytest

from apps.barangay_api.models.audit import AuditLog
from apps.barangay_api.utils.request_engine import create_request
from apps.barangay_api.utils.security import Forbidden, NotFound, PreconditionFailed
from apps.barangay_api.utils.tenant_registry import (
    get_tenant,
    list_tenants,
    provision_tenant,
    set_tenant_active,
    slugify,
    update_tenant,
)


NEW_BARANGAY = {
    'name': 'Santo Niño',
    'address': 'National Highway',
    'municipality': 'San Narciso',
    'province': 'Zambales',
    'contact_number': '047-123-4567',
}


def test_slugify():
    assert slugify('Santo Niño (Poblacion) San Narciso') == 'santo-nino-san-narciso'
    assert slugify('  A -- B  ') == 'a-b'


def test_super_admin_provisions_barangay(world):
    tenant = provision_tenant(world.principal('super'), dict(NEW_BARANGAY, document_pricing={'clearance': 40}))

    assert tenant.slug == 'santo-nino-san-narciso-zambales'
    assert tenant.is_active is True
    assert tenant.document_pricing == {'Barangay Clearance': 40.0}
    assert AuditLog.query.filter_by(entity_type='tenant', action='provision', entity_id=tenant.id).count() == 1


def test_duplicate_names_get_distinct_slugs(world):
    first = provision_tenant(world.principal('super'), NEW_BARANGAY)
    second = provision_tenant(world.principal('super'), NEW_BARANGAY)
    assert first.slug != second.slug
    assert second.slug.endswith('-2')


@pytest.mark.parametrize('key', ['admin', 'captain', 'resident'])
def test_only_super_admin_provisions(world, key):
    with pytest.raises(Forbidden):
        provision_tenant(world.principal(key), NEW_BARANGAY)


def test_missing_fields_are_reported(world):
    with pytest.raises(PreconditionFailed) as exc:
        provision_tenant(world.principal('super'), {'name': 'Only Name'})
    assert 'address' in exc.value.message


def test_update_and_deactivate(world):
    tenant = update_tenant(world.tenant.id, world.principal('super'), {'contact_number': '0999-111-2222'})
    assert tenant.contact_number == '0999-111-2222'

    set_tenant_active(world.tenant.id, world.principal('super'), False)
    assert get_tenant(world.tenant.id).is_active is False
    assert world.tenant not in list_tenants(include_inactive=False)

    with pytest.raises(PreconditionFailed):
        create_request(
            tenant_id=world.tenant.id,
            resident_id=world.users['resident'].id,
            document_type='Barangay Clearance',
            principal=world.principal('resident'),
        )


def test_required_field_cannot_be_blanked(world):
    with pytest.raises(PreconditionFailed):
        update_tenant(world.tenant.id, world.principal('super'), {'name': '  '})


def test_unknown_tenant(world):
    with pytest.raises(NotFound):
        get_tenant(404)


@pytest.mark.parametrize('value', ['false', 0, None, 'no'])
def test_active_flag_must_be_a_boolean(world, value):
    with pytest.raises(PreconditionFailed):
        update_tenant(world.tenant.id, world.principal('super'), {'is_active': value})
    assert get_tenant(world.tenant.id).is_active is True

    with pytest.raises(PreconditionFailed):
        provision_tenant(world.principal('super'), dict(NEW_BARANGAY, is_active=value))

"""Per-barangay document pricing and the fee snapshot taken at creation."""
from decimal import Decimal

import pytest

from apps.barangay_api.models.audit import AuditLog
from apps.barangay_api.utils.document_types import DOCUMENT_TYPES, normalize_document_type
from apps.barangay_api.utils.fee_calculator import (
    get_fee_preview,
    get_pricing_table,
    reset_pricing,
    resolve_fee,
    update_pricing,
    validate_pricing,
)
from apps.barangay_api.utils.request_engine import create_request
from apps.barangay_api.utils.security import (
    Forbidden,
    InvalidDocumentType,
    PreconditionFailed,
    TenantMismatch,
)


def test_defaults_apply_without_configuration(world):
    assert resolve_fee(world.tenant.id, 'Barangay Clearance') == Decimal('50.00')
    assert resolve_fee(world.tenant.id, 'Certificate of Residency') == Decimal('75.00')
    assert resolve_fee(world.tenant.id, 'Certificate of Indigency') == Decimal('0.00')
    assert resolve_fee(None, 'Business Permit') == Decimal('250.00')


def test_pricing_table_lists_every_type(world):
    table = get_pricing_table(world.tenant.id)
    assert list(table) == list(DOCUMENT_TYPES)
    assert table['Solo Parent Certificate']['is_free'] is True
    assert table['Barangay Clearance']['is_custom'] is False


def test_admin_updates_pricing_and_is_audited(world):
    table = update_pricing(world.tenant.id, world.principal('admin'), {'clearance': 60, 'Business Permit': '300.50'})

    assert table['Barangay Clearance']['fee'] == 60.0
    assert table['Barangay Clearance']['is_custom'] is True
    assert table['Business Permit']['fee'] == 300.5
    assert resolve_fee(world.other_tenant.id, 'Barangay Clearance') == Decimal('50.00')

    log = AuditLog.query.filter_by(entity_type='tenant_pricing', action='update_pricing').one()
    assert log.new_values['Barangay Clearance'] == 60.0


def test_price_change_does_not_touch_existing_requests(world):
    req = create_request(
        tenant_id=world.tenant.id,
        resident_id=world.users['resident'].id,
        document_type='Barangay Clearance',
        principal=world.principal('resident'),
    )
    update_pricing(world.tenant.id, world.principal('admin'), {'Barangay Clearance': 120})

    assert req.amount == Decimal('50.00')
    assert get_fee_preview(world.tenant.id, 'clearance')['fee'] == 120.0


def test_indigency_can_be_made_paid_and_clearance_free(world):
    update_pricing(world.tenant.id, world.principal('admin'), {'Certificate of Indigency': 20, 'Barangay Clearance': 0})
    assert resolve_fee(world.tenant.id, 'Certificate of Indigency') == Decimal('20.00')
    assert get_fee_preview(world.tenant.id, 'Barangay Clearance')['requires_payment'] is False


def test_reset_restores_defaults(world):
    update_pricing(world.tenant.id, world.principal('admin'), {'Barangay Clearance': 99})
    table = reset_pricing(world.tenant.id, world.principal('admin'))
    assert table['Barangay Clearance']['fee'] == 50.0
    assert world.tenant.document_pricing is None


@pytest.mark.parametrize('key', ['captain', 'secretary', 'treasurer', 'resident'])
def test_only_admin_manages_pricing(world, key):
    with pytest.raises(Forbidden):
        update_pricing(world.tenant.id, world.principal(key), {'Barangay Clearance': 10})


def test_admin_of_other_barangay_is_tenant_mismatch(world):
    with pytest.raises(TenantMismatch):
        update_pricing(world.tenant.id, world.principal('other_admin'), {'Barangay Clearance': 10})


@pytest.mark.parametrize('prices', [
    {'Barangay Clearance': -1},
    {'Barangay Clearance': 'free'},
    {'Barangay Clearance': 10.555},
    {'Barangay Clearance': True},
    {'Barangay Clearance': 'NaN'},
    {},
])
def test_invalid_prices_are_rejected(prices):
    with pytest.raises(PreconditionFailed):
        validate_pricing(prices)


def test_unknown_type_in_pricing_is_rejected():
    with pytest.raises(InvalidDocumentType):
        validate_pricing({'Cedula': 10})


def test_invalid_stored_price_falls_back_to_default(world):
    from apps.barangay_api import db
    world.tenant.document_pricing = {'Barangay Clearance': 'abc'}
    db.session.commit()
    assert resolve_fee(world.tenant.id, 'Barangay Clearance') == Decimal('50.00')


def test_document_type_normalization():
    assert normalize_document_type('barangay clearance') == 'Barangay Clearance'
    assert normalize_document_type('Solo-Parent') == 'Solo Parent Certificate'
    with pytest.raises(InvalidDocumentType):
        normalize_document_type('')

"""
Fee Calculator for Document Requests

Resolves the fee a resident pays for a document type:
- Tenant-configured price from the barangay's pricing table
- System default price when the tenant has no table or no entry for the type

The resolved amount is copied into the request at creation time, so pricing
updates never change open requests.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Any, Optional, Mapping

from apps.barangay_api import db
from apps.barangay_api.models.tenant import Tenant
from apps.barangay_api.models.user import ROLE_ADMIN
from apps.barangay_api.utils.audit import log_action
from apps.barangay_api.utils.document_types import (
    DEFAULT_PRICING,
    DOCUMENT_TYPES,
    normalize_document_type,
)
from apps.barangay_api.utils.security import (
    Forbidden,
    NotFound,
    PreconditionFailed,
    TenantMismatch,
)

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
MAX_FEE = Decimal('100000.00')


def _to_amount(value: Any) -> Decimal:
    """Convert a stored/submitted price to a 2-decimal Decimal."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def resolve_fee(tenant_id: Optional[int], document_type: str) -> Decimal:
    """
    Return the fee for ``document_type`` in the given tenant.

    Args:
        tenant_id: Owning tenant (None resolves against system defaults only)
        document_type: Document type name or alias

    Returns:
        Fee as a Decimal with two decimal places

    Raises:
        InvalidDocumentType: If the type is outside the catalogue
    """
    doc_type = normalize_document_type(document_type)

    pricing = None
    if tenant_id is not None:
        tenant = db.session.get(Tenant, tenant_id)
        pricing = tenant.document_pricing if tenant else None

    if pricing and pricing.get(doc_type) is not None:
        try:
            fee = _to_amount(pricing[doc_type])
            if fee >= 0:
                return fee
        except (InvalidOperation, TypeError, ValueError):
            pass
        logger.warning(
            "Ignoring invalid configured price %r for %s in tenant %s",
            pricing.get(doc_type), doc_type, tenant_id,
        )

    return DEFAULT_PRICING[doc_type]


def get_pricing_table(tenant_id: Optional[int]) -> Dict[str, Dict[str, Any]]:
    """Return every document type with its effective fee and where it came from."""
    tenant = db.session.get(Tenant, tenant_id) if tenant_id is not None else None
    configured = (tenant.document_pricing or {}) if tenant else {}

    table = {}
    for doc_type in DOCUMENT_TYPES:
        fee = resolve_fee(tenant_id, doc_type)
        table[doc_type] = {
            'fee': float(fee),
            'default_fee': float(DEFAULT_PRICING[doc_type]),
            'is_custom': configured.get(doc_type) is not None,
            'is_free': fee == 0,
        }
    return table


def validate_pricing(prices: Mapping[str, Any]) -> Dict[str, float]:
    """
    Validate a submitted pricing table.

    Keys may be canonical names or aliases; values must be non-negative
    numbers with at most two decimal places.

    Returns:
        The table keyed by canonical document type

    Raises:
        PreconditionFailed: If a value is malformed
        InvalidDocumentType: If a key is not a known document type
    """
    if not isinstance(prices, Mapping) or not prices:
        raise PreconditionFailed('Pricing must be a non-empty mapping of document type to amount')

    cleaned = {}
    for raw_type, raw_value in prices.items():
        doc_type = normalize_document_type(raw_type)
        if isinstance(raw_value, bool):
            raise PreconditionFailed(f'Price for {doc_type} must be a number')
        try:
            value = Decimal(str(raw_value))
        except (InvalidOperation, TypeError, ValueError):
            raise PreconditionFailed(f'Price for {doc_type} must be a number')
        if not value.is_finite():
            raise PreconditionFailed(f'Price for {doc_type} must be a number')
        if value < 0:
            raise PreconditionFailed(f'Price for {doc_type} cannot be negative')
        if value > MAX_FEE:
            raise PreconditionFailed(f'Price for {doc_type} exceeds the maximum of {MAX_FEE}')
        if value != value.quantize(CENTS):
            raise PreconditionFailed(f'Price for {doc_type} can have at most two decimal places')
        cleaned[doc_type] = float(value.quantize(CENTS))
    return cleaned


def _load_tenant_for_pricing(tenant_id: int, principal) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)
    if not tenant:
        raise NotFound('Barangay not found')
    if not principal.can_access_tenant(tenant.id):
        raise TenantMismatch('You can only manage pricing for your own barangay')
    if principal.effective_role != ROLE_ADMIN:
        raise Forbidden('Only barangay admins can change document pricing')
    return tenant


def update_pricing(tenant_id: int, principal, prices: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Merge ``prices`` into the tenant's pricing table and commit."""
    tenant = _load_tenant_for_pricing(tenant_id, principal)
    cleaned = validate_pricing(prices)

    previous = dict(tenant.document_pricing or {})
    merged = dict(previous)
    merged.update(cleaned)
    # Reassign so the JSON column is flagged dirty
    tenant.document_pricing = merged

    log_action(
        user_id=principal.id,
        tenant_id=tenant.id,
        entity_type='tenant_pricing',
        entity_id=tenant.id,
        action='update_pricing',
        actor_role=principal.effective_role,
        old_values=previous,
        new_values=merged,
    )
    db.session.commit()
    logger.info("Pricing updated for tenant %s by user %s: %s", tenant.id, principal.id, cleaned)
    return get_pricing_table(tenant.id)


def reset_pricing(tenant_id: int, principal) -> Dict[str, Dict[str, Any]]:
    """Drop the tenant's custom prices so system defaults apply again."""
    tenant = _load_tenant_for_pricing(tenant_id, principal)
    previous = dict(tenant.document_pricing or {})
    tenant.document_pricing = None

    log_action(
        user_id=principal.id,
        tenant_id=tenant.id,
        entity_type='tenant_pricing',
        entity_id=tenant.id,
        action='reset_pricing',
        actor_role=principal.effective_role,
        old_values=previous,
        new_values=None,
    )
    db.session.commit()
    logger.info("Pricing reset to defaults for tenant %s by user %s", tenant.id, principal.id)
    return get_pricing_table(tenant.id)


def get_fee_preview(tenant_id: int, document_type: str) -> Dict[str, Any]:
    """Fee preview for UI display before submitting a request."""
    doc_type = normalize_document_type(document_type)
    fee = resolve_fee(tenant_id, doc_type)
    return {
        'tenant_id': tenant_id,
        'document_type': doc_type,
        'fee': float(fee),
        'default_fee': float(DEFAULT_PRICING[doc_type]),
        'requires_payment': fee > 0,
    }

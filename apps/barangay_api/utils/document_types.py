"""Catalogue of document types a barangay can issue, with system default fees."""
from __future__ import annotations

from decimal import Decimal
from typing import Dict

from apps.barangay_api.utils.security import InvalidDocumentType


BARANGAY_CLEARANCE = 'Barangay Clearance'
CERTIFICATE_OF_RESIDENCY = 'Certificate of Residency'
CERTIFICATE_OF_INDIGENCY = 'Certificate of Indigency'
BUSINESS_PERMIT = 'Business Permit'
GOOD_MORAL_CERTIFICATE = 'Good Moral Character Certificate'
SOLO_PARENT_CERTIFICATE = 'Solo Parent Certificate'

DOCUMENT_TYPES = (
    BARANGAY_CLEARANCE,
    CERTIFICATE_OF_RESIDENCY,
    CERTIFICATE_OF_INDIGENCY,
    BUSINESS_PERMIT,
    GOOD_MORAL_CERTIFICATE,
    SOLO_PARENT_CERTIFICATE,
)

# Used whenever a tenant has not configured its own price for a type
DEFAULT_PRICING: Dict[str, Decimal] = {
    BARANGAY_CLEARANCE: Decimal('50.00'),
    CERTIFICATE_OF_RESIDENCY: Decimal('75.00'),
    CERTIFICATE_OF_INDIGENCY: Decimal('0.00'),
    BUSINESS_PERMIT: Decimal('250.00'),
    GOOD_MORAL_CERTIFICATE: Decimal('100.00'),
    SOLO_PARENT_CERTIFICATE: Decimal('0.00'),
}

_ALIASES = {
    'clearance': BARANGAY_CLEARANCE,
    'residency': CERTIFICATE_OF_RESIDENCY,
    'residency certificate': CERTIFICATE_OF_RESIDENCY,
    'indigency': CERTIFICATE_OF_INDIGENCY,
    'indigency certificate': CERTIFICATE_OF_INDIGENCY,
    'business permit': BUSINESS_PERMIT,
    'good moral': GOOD_MORAL_CERTIFICATE,
    'good moral certificate': GOOD_MORAL_CERTIFICATE,
    'solo parent': SOLO_PARENT_CERTIFICATE,
}
_CANONICAL = {name.lower(): name for name in DOCUMENT_TYPES}


def normalize_document_type(value) -> str:
    """Return the canonical document type name for ``value``.

    Accepts canonical names case-insensitively plus a few short aliases
    (``clearance``, ``good_moral``...). Raises InvalidDocumentType otherwise.
    """
    key = ' '.join(str(value or '').replace('_', ' ').replace('-', ' ').split()).lower()
    if key in _CANONICAL:
        return _CANONICAL[key]
    if key in _ALIASES:
        return _ALIASES[key]
    raise InvalidDocumentType(
        f"Unknown document type '{value}'. Choose one of: {', '.join(DOCUMENT_TYPES)}"
    )


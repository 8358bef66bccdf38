"""
Official receipt view-model for a paid (or free) document request.

The receipt is composed from the request's stored payment details and the
tenant's display metadata. Rendering and printing happen in the client; this
module only builds the data. Apart from ``generated_at`` the output depends
on nothing but its inputs, so two compositions of the same request compare
equal under ``receipt_fingerprint``.
"""
from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from typing import Any, Dict, Optional

from apps.barangay_api.models.document import RequestStatus
from apps.barangay_api.utils.manual_payment import FREE_METHOD
from apps.barangay_api.utils.security import PreconditionFailed
from apps.barangay_api.utils.time import utc_now, isoformat_or_none

RECEIPT_PREFIX = 'RCP'

RECEIPT_STATUSES = (
    RequestStatus.PAYMENT_VERIFIED,
    RequestStatus.READY_FOR_PICKUP,
    RequestStatus.RELEASED,
)

# Excluded from the equality contract
VOLATILE_FIELDS = ('generated_at',)


def receipt_number(req) -> str:
    """RCP-<request year>-<tracking number segment>."""
    year = req.request_date.year if req.request_date else utc_now().year
    parts = (req.tracking_number or '').split('-')
    segment = parts[1] if len(parts) > 1 and parts[1] else '001'
    return f"{RECEIPT_PREFIX}-{year}-{segment}"


def _format_amount(value) -> str:
    return f"{Decimal(str(value or 0)).quantize(Decimal('0.01'))}"


def _payer(req) -> Dict[str, Any]:
    resident = getattr(req, 'resident', None)
    return {
        'id': req.resident_id,
        'name': resident.full_name if resident is not None else None,
    }


def _tenant_header(tenant) -> Dict[str, Any]:
    return {
        'id': tenant.id,
        'name': tenant.display_name,
        'address': tenant.address,
        'contact_number': tenant.contact_number,
        'seal_logo_url': tenant.seal_logo_url,
    }


def compose_receipt(req, tenant) -> Dict[str, Any]:
    """
    Build the receipt for ``req`` issued by ``tenant``.

    Raises:
        PreconditionFailed: The request has no payment on record (and is not
            free), its payment is not verified yet, or ``tenant`` is not the
            request's tenant
    """
    if tenant is None or tenant.id != req.tenant_id:
        raise PreconditionFailed('Receipt must be issued by the barangay that owns the request')

    is_free = Decimal(str(req.amount or 0)) == 0
    details: Dict[str, Any] = dict(req.payment_details or {})
    if not details and not is_free:
        raise PreconditionFailed('No payment has been recorded for this request')
    if req.status not in RECEIPT_STATUSES:
        raise PreconditionFailed(
            f"A receipt is available once payment is verified (current status: {req.status})"
        )

    payment_date: Optional[str] = details.get('payment_date') or isoformat_or_none(req.approval_date)

    receipt = {
        'receipt_number': receipt_number(req),
        'tracking_number': req.tracking_number,
        'request_id': req.id,
        'tenant': _tenant_header(tenant),
        'payer': _payer(req),
        'document_type': req.document_type,
        'purpose': req.purpose,
        'amount': _format_amount(req.amount),
        'currency': 'PHP',
        'is_free': is_free,
        'payment': {
            'method': details.get('method') or (FREE_METHOD if is_free else None),
            'reference_number': details.get('reference_number'),
            'account_name': details.get('account_name'),
            'payment_date': payment_date,
            'verified_by': details.get('verified_by'),
            'verified_date': details.get('verified_date') or isoformat_or_none(req.payment_verified_date),
            'remarks': details.get('remarks'),
            'proof_url': None if is_free else details.get('proof_url'),
        },
        'status': req.status,
        'request_date': isoformat_or_none(req.request_date),
        'release_date': isoformat_or_none(req.release_date),
        'generated_at': utc_now().isoformat(),
    }
    return receipt


def receipt_fingerprint(receipt: Dict[str, Any]) -> str:
    """SHA-256 over every field except the volatile ones."""
    stable = {k: v for k, v in receipt.items() if k not in VOLATILE_FIELDS}
    encoded = json.dumps(stable, sort_keys=True, default=str).encode('utf-8')
    return hashlib.sha256(encoded).hexdigest()

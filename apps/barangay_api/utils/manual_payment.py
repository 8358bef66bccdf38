"""Manual payment helpers: validated payment-detail records.

Residents pay outside the system (GCash, bank transfer, over the counter)
and submit a proof image plus reference. These helpers turn loosely shaped
payloads into the fixed record stored on ``DocumentRequest.payment_details``
and reject malformed input before it reaches the workflow.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from apps.barangay_api.utils.security import PreconditionFailed
from apps.barangay_api.utils.time import parse_iso_date, utc_today, utc_now


PAYMENT_METHODS = (
    'GCash',
    'PayMaya',
    'Bank Transfer',
    'Over the Counter',
    'Other',
)
FREE_METHOD = 'Free'
DEFAULT_VERIFY_REMARKS = 'Payment verified'
FREE_REMARKS = 'Free document - no payment required'

MAX_REFERENCE_LENGTH = 100
MAX_REMARKS_LENGTH = 1000

_METHOD_LOOKUP = {m.lower().replace(' ', ''): m for m in PAYMENT_METHODS}


def clean_text(value: Any, max_length: int) -> Optional[str]:
    if value is None:
        return None
    text = ' '.join(str(value).split())
    if not text:
        return None
    return text[:max_length]


def normalize_payment_method(value: Any) -> str:
    """Map user input like 'gcash' or 'bank transfer' onto a known method."""
    key = str(value or '').strip().lower().replace(' ', '').replace('_', '')
    method = _METHOD_LOOKUP.get(key)
    if not method:
        raise PreconditionFailed(
            f"Payment method is required and must be one of: {', '.join(PAYMENT_METHODS)}"
        )
    return method


def validate_payment_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Check the resident-entered fields of a payment submission.

    Everything except the proof, so a multipart form can be refused before
    its image is stored.

    Raises:
        PreconditionFailed: If method or reference is missing, or the date is
            malformed or in the future
    """
    payload = payload or {}
    method = normalize_payment_method(payload.get('method') or payload.get('payment_method'))

    reference = clean_text(payload.get('reference_number'), MAX_REFERENCE_LENGTH)
    if not reference:
        raise PreconditionFailed('Payment reference number is required')

    raw_date = payload.get('payment_date')
    if raw_date in (None, ''):
        payment_date = utc_today()
    else:
        try:
            payment_date = parse_iso_date(raw_date)
        except (TypeError, ValueError):
            raise PreconditionFailed('Payment date must be a valid YYYY-MM-DD date')
    if payment_date > utc_today():
        raise PreconditionFailed('Payment date cannot be in the future')

    return {
        'method': method,
        'reference_number': reference,
        'account_name': clean_text(payload.get('account_name'), 150),
        'payment_date': payment_date.isoformat(),
    }


def build_submission(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate a resident's payment submission.

    Required: ``method``, ``reference_number``, ``proof_url``.
    Optional: ``payment_date`` (ISO date, defaults to today UTC), ``account_name``.

    Unknown keys are dropped.

    Raises:
        PreconditionFailed: If a required field is missing or malformed
    """
    payload = payload or {}
    fields = validate_payment_fields(payload)

    proof_url = clean_text(payload.get('proof_url'), 1000)
    if not proof_url:
        raise PreconditionFailed('Payment proof must be uploaded before submitting payment')

    return {
        'method': fields['method'],
        'reference_number': fields['reference_number'],
        'account_name': fields['account_name'],
        'payment_date': fields['payment_date'],
        'proof_url': proof_url,
        'verified_by': None,
        'verified_date': None,
        'remarks': None,
    }


def free_payment_details(now=None) -> Dict[str, Any]:
    """Synthetic payment record for a zero-fee document approved directly."""
    now = now or utc_now()
    return {
        'method': FREE_METHOD,
        'reference_number': None,
        'account_name': None,
        'payment_date': now.date().isoformat(),
        'proof_url': None,
        'verified_by': None,
        'verified_date': None,
        'remarks': FREE_REMARKS,
    }


def review_remarks(payload: Mapping[str, Any], required: bool) -> Optional[str]:
    """Return cleaned reviewer remarks; raise when required and blank."""
    payload = payload or {}
    remarks = clean_text(payload.get('remarks'), MAX_REMARKS_LENGTH)
    if required and not remarks:
        raise PreconditionFailed('Remarks are required when rejecting a payment')
    return remarks


def stamp_review(details: Optional[Mapping[str, Any]], verifier_id: int, remarks: str, now=None) -> Dict[str, Any]:
    """Copy ``details`` with the reviewer identity, time and remarks applied."""
    now = now or utc_now()
    stamped = dict(details or {})
    stamped['verified_by'] = verifier_id
    stamped['verified_date'] = now.isoformat()
    stamped['remarks'] = remarks
    return stamped

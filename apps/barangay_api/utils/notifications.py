"""Resident-facing notifications derived from document request state.

Nothing is stored or sent: notifications are recomputed from the resident's
current requests every time they are asked for.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Dict, Any, Iterable, List, Optional

from apps.barangay_api.models.document import RequestStatus


READY_FOR_PICKUP = 'ready_for_pickup'
BEING_PREPARED = 'being_prepared'
PAYMENT_REQUIRED = 'payment_required'
REJECTED = 'rejected'

# Highest priority first
NOTIFICATION_KINDS = (READY_FOR_PICKUP, BEING_PREPARED, PAYMENT_REQUIRED, REJECTED)

# Kinds that count toward the badge; "being prepared" needs no action
BADGE_KINDS = (READY_FOR_PICKUP, PAYMENT_REQUIRED, REJECTED)

ACTION_PAY_NOW = 'pay_now'

OFFICE_HOURS = 'Monday-Friday, 8:00 AM - 5:00 PM'


def _amount(req) -> Decimal:
    value = getattr(req, 'amount', None)
    return Decimal(str(value)) if value is not None else Decimal('0')


def _kind_for(req) -> Optional[str]:
    status = getattr(req, 'status', None)
    if status == RequestStatus.READY_FOR_PICKUP:
        return READY_FOR_PICKUP
    if status == RequestStatus.PAYMENT_VERIFIED:
        return BEING_PREPARED
    if status == RequestStatus.APPROVED and _amount(req) > 0:
        return PAYMENT_REQUIRED
    if status == RequestStatus.REJECTED:
        return REJECTED
    return None


def _templates(kind: str, req) -> Dict[str, Any]:
    """Return title/message (and action) for one notification."""
    doc_name = req.document_type
    if kind == READY_FOR_PICKUP:
        return {
            'title': f"{doc_name} is ready for pickup",
            'message': (
                "Visit the barangay office during office hours to claim your document. "
                f"Office Hours: {OFFICE_HOURS}"
            ),
            'action': None,
        }
    if kind == BEING_PREPARED:
        return {
            'title': f"{doc_name} is being prepared",
            'message': (
                "Your payment has been verified. The document is being prepared "
                "and will be ready soon."
            ),
            'action': None,
        }
    if kind == PAYMENT_REQUIRED:
        return {
            'title': 'Action required: upload payment proof',
            'message': (
                f"Your request for {doc_name} has been approved. Please upload your "
                f"payment proof of PHP {_amount(req):,.2f} to continue processing."
            ),
            'action': {'type': ACTION_PAY_NOW, 'request_id': req.id},
        }
    lines = [f"Your request for {doc_name} was rejected."]
    if getattr(req, 'rejection_reason', None):
        lines.append(f"Reason: {req.rejection_reason}")
    lines.append("Please contact the barangay office for more information.")
    return {
        'title': f"{doc_name} request rejected",
        'message': "\n".join(lines),
        'action': None,
    }


def project_notifications(requests: Iterable) -> List[Dict[str, Any]]:
    """
    Build the resident's notifications from their requests.

    Ordered by kind priority (ready for pickup, being prepared, payment
    required, rejected), then newest request first within a kind. Released,
    Pending, Payment Submitted and free Approved requests produce nothing.
    """
    grouped = {kind: [] for kind in NOTIFICATION_KINDS}
    for req in requests or []:
        kind = _kind_for(req)
        if kind:
            grouped[kind].append(req)

    notifications = []
    for priority, kind in enumerate(NOTIFICATION_KINDS, start=1):
        bucket = sorted(
            grouped[kind],
            key=lambda r: (getattr(r, 'request_date', None) is not None, getattr(r, 'request_date', None), r.id or 0),
            reverse=True,
        )
        for req in bucket:
            item = {
                'kind': kind,
                'priority': priority,
                'request_id': req.id,
                'tracking_number': req.tracking_number,
                'document_type': req.document_type,
                'status': req.status,
            }
            item.update(_templates(kind, req))
            if kind == PAYMENT_REQUIRED:
                item['amount'] = float(_amount(req))
            if kind == REJECTED:
                item['rejection_reason'] = getattr(req, 'rejection_reason', None)
            notifications.append(item)
    return notifications


def count_notifications(requests: Iterable) -> int:
    """Badge count: requests that need the resident's attention."""
    return sum(1 for req in requests or [] if _kind_for(req) in BADGE_KINDS)


def summarize_notifications(requests: Iterable) -> Dict[str, Any]:
    """Notifications plus per-kind and badge counts, as served to the UI."""
    requests = list(requests or [])
    items = project_notifications(requests)
    by_kind = {kind: 0 for kind in NOTIFICATION_KINDS}
    for item in items:
        by_kind[item['kind']] += 1
    return {
        'notifications': items,
        'counts': by_kind,
        'badge_count': count_notifications(requests),
    }

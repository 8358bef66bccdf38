"""Document request lifecycle engine.

Every mutation of a ``DocumentRequest`` goes through this module:

    Pending -> Approved -> Payment Submitted -> Payment Verified
            -> Ready for Pickup -> Released

``Rejected`` is reachable from Pending, Approved and Payment Submitted.
Rejecting a *payment* sends the request back to Approved so the resident can
resubmit. Approving a zero-fee request lands directly on Payment Verified.

Each transition runs the same pipeline: load the record, check tenant scope,
find the edge for (status, event), check the acting role, validate the
payload, then write the new state with a single conditional UPDATE keyed on
the observed status and version. Failures raise one of the typed errors in
``utils.security``; nothing is silently turned into a no-op.
"""
from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, List, Mapping, Optional

from flask import current_app, has_app_context
from sqlalchemy import update, delete
from sqlalchemy.exc import IntegrityError

from apps.barangay_api import db
from apps.barangay_api.models.document import DocumentRequest, RequestStatus
from apps.barangay_api.models.tenant import Tenant
from apps.barangay_api.models.user import (
    User,
    ROLE_ADMIN,
    ROLE_CAPTAIN,
    ROLE_SECRETARY,
    ROLE_TREASURER,
    ROLE_RESIDENT,
)
from apps.barangay_api.utils.audit import log_action
from apps.barangay_api.utils.document_types import normalize_document_type
from apps.barangay_api.utils.fee_calculator import resolve_fee
from apps.barangay_api.utils import manual_payment
from apps.barangay_api.utils.security import (
    ConcurrentModification,
    Forbidden,
    InvalidTransition,
    NotFound,
    PreconditionFailed,
    TenantMismatch,
)
from apps.barangay_api.utils.time import utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Transition table
# =============================================================================

class Event:
    """Named transitions accepted by ``transition``."""

    APPROVE = 'approve'
    REJECT = 'reject'
    SUBMIT_PAYMENT = 'submit_payment'
    VERIFY_PAYMENT = 'verify_payment'
    REJECT_PAYMENT = 'reject_payment'
    MARK_READY = 'mark_ready'
    RELEASE = 'release'

    ALL = (
        APPROVE,
        REJECT,
        SUBMIT_PAYMENT,
        VERIFY_PAYMENT,
        REJECT_PAYMENT,
        MARK_READY,
        RELEASE,
    )


APPROVER_ROLES = (ROLE_ADMIN, ROLE_CAPTAIN, ROLE_SECRETARY)
REJECTER_ROLES = (ROLE_ADMIN, ROLE_CAPTAIN)
TREASURY_ROLES = (ROLE_ADMIN, ROLE_TREASURER)
RELEASE_ROLES = (ROLE_ADMIN, ROLE_SECRETARY)
DELETE_ROLES = (ROLE_ADMIN, ROLE_CAPTAIN)

# (from_status, event) -> (to_status, allowed roles)
TRANSITIONS = {
    (RequestStatus.PENDING, Event.APPROVE): (RequestStatus.APPROVED, APPROVER_ROLES),
    (RequestStatus.PENDING, Event.REJECT): (RequestStatus.REJECTED, REJECTER_ROLES),
    (RequestStatus.APPROVED, Event.REJECT): (RequestStatus.REJECTED, REJECTER_ROLES),
    # Payment under review: rejected by treasury, not by the approvers
    (RequestStatus.PAYMENT_SUBMITTED, Event.REJECT): (RequestStatus.REJECTED, TREASURY_ROLES),
    (RequestStatus.APPROVED, Event.SUBMIT_PAYMENT): (RequestStatus.PAYMENT_SUBMITTED, (ROLE_RESIDENT,)),
    (RequestStatus.PAYMENT_SUBMITTED, Event.VERIFY_PAYMENT): (RequestStatus.PAYMENT_VERIFIED, TREASURY_ROLES),
    (RequestStatus.PAYMENT_SUBMITTED, Event.REJECT_PAYMENT): (RequestStatus.APPROVED, TREASURY_ROLES),
    (RequestStatus.PAYMENT_VERIFIED, Event.MARK_READY): (RequestStatus.READY_FOR_PICKUP, RELEASE_ROLES),
    (RequestStatus.READY_FOR_PICKUP, Event.RELEASE): (RequestStatus.RELEASED, RELEASE_ROLES),
}

EVENT_LABELS = {
    Event.APPROVE: 'approve',
    Event.REJECT: 'reject',
    Event.SUBMIT_PAYMENT: 'submit payment for',
    Event.VERIFY_PAYMENT: 'verify payment for',
    Event.REJECT_PAYMENT: 'reject payment for',
    Event.MARK_READY: 'mark ready',
    Event.RELEASE: 'release',
}


def allowed_events(status: str) -> List[str]:
    """Events with an outgoing edge from ``status``."""
    return [event for (from_status, event) in TRANSITIONS if from_status == status]


def available_actions(req: DocumentRequest, principal) -> List[str]:
    """Events the principal could fire on ``req`` right now."""
    if not principal.can_access_tenant(req.tenant_id):
        return []
    actions = []
    for event in allowed_events(req.status):
        _, roles = TRANSITIONS[(req.status, event)]
        if principal.effective_role not in roles:
            continue
        if event == Event.SUBMIT_PAYMENT and (req.resident_id != principal.id or req.is_free):
            continue
        actions.append(event)
    return actions


# =============================================================================
# Helpers
# =============================================================================

def _config(key: str, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def _random_token() -> str:
    return secrets.token_hex(4).upper()


def _generate_tracking_number(tenant_id: int) -> str:
    """Generate a tracking number unique within the tenant."""
    prefix = _config('TRACKING_NUMBER_PREFIX', 'DR')
    attempts = int(_config('TRACKING_NUMBER_ATTEMPTS', 5))
    for _ in range(attempts):
        candidate = f"{prefix}-{_random_token()}"
        exists = (
            DocumentRequest.query
            .filter_by(tenant_id=tenant_id, tracking_number=candidate)
            .first()
        )
        if not exists:
            return candidate
        logger.info("Tracking number collision on %s in tenant %s; retrying", candidate, tenant_id)
    raise RuntimeError("Unable to generate unique tracking number")


def _load_request(request_id) -> DocumentRequest:
    try:
        key = int(request_id)
    except (TypeError, ValueError):
        raise NotFound('Request not found')
    req = db.session.get(DocumentRequest, key)
    if not req:
        raise NotFound('Request not found')
    return req


def _check_tenant(req: DocumentRequest, principal) -> None:
    if not principal.can_access_tenant(req.tenant_id):
        raise TenantMismatch('This request belongs to another barangay')


def _check_expected_version(req: DocumentRequest, expected_version) -> Optional[int]:
    if expected_version in (None, ''):
        return None
    try:
        expected = int(expected_version)
    except (TypeError, ValueError):
        raise PreconditionFailed('expected_version must be an integer')
    if expected != req.version:
        raise ConcurrentModification(
            'This request was updated by someone else. Reload it and try again.'
        )
    return expected


# =============================================================================
# Transition effects
# =============================================================================
# Each effect returns (to_status, column values) for the conditional update.

def _effect_approve(req, principal, payload, now, to_status):
    values = {'approval_date': now}
    if req.is_free:
        # Nothing to pay: skip the payment sub-flow entirely.
        to_status = RequestStatus.PAYMENT_VERIFIED
        values['payment_details'] = manual_payment.free_payment_details(now)
        values['payment_verified_date'] = now
    return to_status, values


def _effect_reject(req, principal, payload, now, to_status):
    reason = manual_payment.clean_text((payload or {}).get('reason') or (payload or {}).get('remarks'), 1000)
    if not reason:
        raise PreconditionFailed('A rejection reason is required')
    return to_status, {'rejection_reason': reason}


def _effect_submit_payment(req, principal, payload, now, to_status):
    if req.is_free:
        raise PreconditionFailed('This document is free; no payment is required')
    details = manual_payment.build_submission(payload)
    return to_status, {
        'payment_details': details,
        'payment_submitted_date': now,
    }


def _effect_verify_payment(req, principal, payload, now, to_status):
    if not req.payment_details or not req.payment_details.get('proof_url'):
        raise PreconditionFailed('No payment proof has been submitted for this request')
    remarks = manual_payment.review_remarks(payload, required=False) or manual_payment.DEFAULT_VERIFY_REMARKS
    return to_status, {
        'payment_details': manual_payment.stamp_review(req.payment_details, principal.id, remarks, now),
        'payment_verified_date': now,
    }


def _effect_reject_payment(req, principal, payload, now, to_status):
    remarks = manual_payment.review_remarks(payload, required=True)
    entry = f"Payment rejected: {remarks}"
    reason = f"{req.rejection_reason}\n{entry}" if req.rejection_reason else entry
    return to_status, {
        'payment_details': manual_payment.stamp_review(req.payment_details, principal.id, remarks, now),
        'rejection_reason': reason,
    }


def _effect_mark_ready(req, principal, payload, now, to_status):
    return to_status, {}


def _effect_release(req, principal, payload, now, to_status):
    return to_status, {'release_date': now}


EFFECTS = {
    Event.APPROVE: _effect_approve,
    Event.REJECT: _effect_reject,
    Event.SUBMIT_PAYMENT: _effect_submit_payment,
    Event.VERIFY_PAYMENT: _effect_verify_payment,
    Event.REJECT_PAYMENT: _effect_reject_payment,
    Event.MARK_READY: _effect_mark_ready,
    Event.RELEASE: _effect_release,
}


# =============================================================================
# Public operations
# =============================================================================

def create_request(
    tenant_id: int,
    resident_id: int,
    document_type: str,
    principal,
    purpose: Optional[str] = None,
) -> DocumentRequest:
    """
    File a new document request in ``Pending``.

    The fee is resolved now and copied onto the request; later price changes
    do not affect it.

    Raises:
        InvalidDocumentType: unknown document type
        NotFound: tenant or resident does not exist
        TenantMismatch: principal or resident belongs to another tenant
        Forbidden: a resident filing for someone else
        PreconditionFailed: tenant is inactive
    """
    doc_type = normalize_document_type(document_type)

    tenant = db.session.get(Tenant, int(tenant_id)) if tenant_id is not None else None
    if not tenant:
        raise NotFound('Barangay not found')
    if not principal.can_access_tenant(tenant.id):
        raise TenantMismatch('You can only request documents from your own barangay')
    if not tenant.is_active:
        raise PreconditionFailed(f'{tenant.display_name} is not accepting requests right now')

    if principal.is_resident and int(resident_id) != int(principal.id):
        raise Forbidden('Residents can only file requests for themselves')
    if not principal.is_resident and not principal.is_staff:
        raise Forbidden('Your role cannot file document requests')

    resident = db.session.get(User, int(resident_id))
    if not resident:
        raise NotFound('Resident not found')
    if resident.tenant_id != tenant.id:
        raise TenantMismatch('Resident is not registered in this barangay')

    amount = resolve_fee(tenant.id, doc_type)
    now = utc_now()
    cleaned_purpose = manual_payment.clean_text(purpose, 255)

    for attempt in range(2):
        req = DocumentRequest(
            tenant_id=tenant.id,
            resident_id=resident.id,
            tracking_number=_generate_tracking_number(tenant.id),
            document_type=doc_type,
            purpose=cleaned_purpose,
            amount=amount,
            status=RequestStatus.INITIAL,
            version=1,
            request_date=now,
        )
        try:
            with db.session.begin_nested():
                db.session.add(req)
        except IntegrityError:
            # Another request took the same tracking number between check and insert
            if attempt:
                raise
            logger.warning("Tracking number %s taken concurrently; regenerating", req.tracking_number)
            continue
        break

    log_action(
        user_id=principal.id,
        tenant_id=tenant.id,
        entity_type='document_request',
        entity_id=req.id,
        action='create',
        actor_role=principal.effective_role,
        new_values={'status': req.status, 'document_type': doc_type, 'amount': float(amount)},
    )
    db.session.commit()
    logger.info(
        "Document request %s created in tenant %s (%s, fee %s)",
        req.tracking_number, tenant.id, doc_type, amount,
    )
    return req


def normalize_event(event: str) -> str:
    """Accept 'verify-payment' as well as 'verify_payment'."""
    key = (event or '').strip().lower().replace('-', '_')
    if key not in Event.ALL:
        raise InvalidTransition(f"Unknown action '{event}'")
    return key


def _authorize(req: DocumentRequest, event: str, principal) -> str:
    """Check the edge and the acting role; return the target status."""
    edge = TRANSITIONS.get((req.status, event))
    if not edge:
        logger.warning(
            "Rejected %s on request %s: not allowed from %s",
            event, req.id, req.status,
        )
        raise InvalidTransition(
            f"Cannot {EVENT_LABELS[event]} a request that is {req.status}"
        )
    to_status, roles = edge

    if principal.effective_role not in roles:
        logger.warning(
            "Rejected %s on request %s: role %s not permitted",
            event, req.id, principal.role,
        )
        raise Forbidden(
            f"Your role ({principal.role}) cannot {EVENT_LABELS[event]} requests"
        )
    if event == Event.SUBMIT_PAYMENT and req.resident_id != principal.id:
        raise Forbidden('Only the resident who filed this request can submit its payment')
    return to_status


def check_transition(request_id: int, event: str, principal) -> DocumentRequest:
    """
    Run the tenant, edge and role checks for ``event`` without writing.

    Used before side effects that should only happen when the transition
    can go ahead (uploading a payment proof). The transition itself still
    re-checks everything.
    """
    event = normalize_event(event)
    req = _load_request(request_id)
    _check_tenant(req, principal)
    _authorize(req, event, principal)
    return req


def transition(
    request_id: int,
    event: str,
    principal,
    payload: Optional[Mapping[str, Any]] = None,
) -> DocumentRequest:
    """
    Apply ``event`` to a request on behalf of ``principal``.

    ``payload`` carries event data (``reason``, ``remarks``, payment fields)
    and optionally ``expected_version`` from the caller's last read.

    Returns:
        The updated DocumentRequest

    Raises:
        NotFound, TenantMismatch, InvalidTransition, Forbidden,
        PreconditionFailed, ConcurrentModification
    """
    payload = payload or {}
    event = normalize_event(event)

    req = _load_request(request_id)
    _check_tenant(req, principal)
    expected = _check_expected_version(req, payload.get('expected_version'))

    observed_status = req.status
    observed_version = expected if expected is not None else req.version

    to_status = _authorize(req, event, principal)

    now = utc_now()
    to_status, values = EFFECTS[event](req, principal, payload, now, to_status)

    old_values = {'status': observed_status, 'version': observed_version}
    stmt = (
        update(DocumentRequest)
        .where(
            DocumentRequest.id == req.id,
            DocumentRequest.status == observed_status,
            DocumentRequest.version == observed_version,
        )
        .values(status=to_status, version=observed_version + 1, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        db.session.rollback()
        logger.warning(
            "Concurrent modification on request %s during %s (expected %s v%s)",
            req.id, event, observed_status, observed_version,
        )
        raise ConcurrentModification(
            'This request was updated by someone else. Reload it and try again.'
        )

    log_action(
        user_id=principal.id,
        tenant_id=req.tenant_id,
        entity_type='document_request',
        entity_id=req.id,
        action=event,
        actor_role=principal.effective_role,
        old_values=old_values,
        new_values={'status': to_status, 'version': observed_version + 1},
        notes=payload.get('remarks') or payload.get('reason'),
    )
    db.session.commit()

    # commit() expired the instance; this reloads the row we just wrote
    db.session.refresh(req)
    logger.info(
        "Request %s: %s -> %s by user %s (%s)",
        req.tracking_number, observed_status, req.status, principal.id, event,
    )
    return req


def delete_request(request_id: int, principal) -> None:
    """
    Permanently delete a request. Admin and Barangay Captain only.

    Deletion ignores the request's state.

    Raises:
        NotFound, TenantMismatch, Forbidden
    """
    req = _load_request(request_id)
    _check_tenant(req, principal)
    if principal.effective_role not in DELETE_ROLES:
        raise Forbidden(f"Your role ({principal.role}) cannot delete requests")

    snapshot = {
        'tracking_number': req.tracking_number,
        'status': req.status,
        'document_type': req.document_type,
        'amount': float(req.amount or 0),
        'resident_id': req.resident_id,
    }
    tenant_id = req.tenant_id
    db.session.execute(
        delete(DocumentRequest)
        .where(DocumentRequest.id == req.id)
        .execution_options(synchronize_session=False)
    )
    db.session.expunge(req)
    log_action(
        user_id=principal.id,
        tenant_id=tenant_id,
        entity_type='document_request',
        entity_id=int(request_id),
        action='delete',
        actor_role=principal.effective_role,
        old_values=snapshot,
    )
    db.session.commit()
    logger.info("Request %s deleted by user %s", snapshot['tracking_number'], principal.id)


def get_request(request_id: int, principal) -> DocumentRequest:
    """Load one request the principal may see."""
    req = _load_request(request_id)
    _check_tenant(req, principal)
    if principal.is_resident and req.resident_id != principal.id:
        raise Forbidden('You can only view your own requests')
    return req


def list_for_resident(resident_id: int, principal=None) -> List[DocumentRequest]:
    """Requests filed by one resident, newest first."""
    query = DocumentRequest.query.filter_by(resident_id=int(resident_id))
    if principal is not None:
        if principal.is_resident and int(resident_id) != int(principal.id):
            raise Forbidden('You can only view your own requests')
        if not principal.is_super_admin:
            query = query.filter(DocumentRequest.tenant_id == principal.tenant_id)
    return query.order_by(DocumentRequest.request_date.desc(), DocumentRequest.id.desc()).all()


def list_for_tenant(tenant_id: int, status: Optional[str] = None, principal=None) -> List[DocumentRequest]:
    """Requests in one tenant, optionally filtered by status, newest first."""
    if principal is not None:
        if not principal.can_access_tenant(tenant_id):
            raise TenantMismatch('You can only view requests from your own barangay')
        if principal.is_resident:
            raise Forbidden('Staff access required')
    query = DocumentRequest.query.filter_by(tenant_id=int(tenant_id))
    if status:
        if status not in RequestStatus.ALL:
            raise PreconditionFailed(
                f"Unknown status '{status}'. Use one of: {', '.join(RequestStatus.ALL)}"
            )
        query = query.filter(DocumentRequest.status == status)
    return query.order_by(DocumentRequest.request_date.desc(), DocumentRequest.id.desc()).all()


def status_counts(tenant_id: int) -> Dict[str, int]:
    """Number of requests per status in a tenant (every status present)."""
    rows = (
        db.session.query(DocumentRequest.status, db.func.count(DocumentRequest.id))
        .filter(DocumentRequest.tenant_id == int(tenant_id))
        .group_by(DocumentRequest.status)
        .all()
    )
    counts = {status: 0 for status in RequestStatus.ALL}
    for status, count in rows:
        counts[status] = int(count)
    return counts


def repair_free_approved(tenant_id: Optional[int] = None, dry_run: bool = False) -> List[DocumentRequest]:
    """
    Promote zero-fee requests stuck in ``Approved`` to ``Payment Verified``.

    Requests approved before the free-document rule existed never reached
    Payment Verified. Each row is moved with the same conditional update a
    normal transition uses, so a concurrent staff action wins cleanly.

    Returns:
        The requests that were (or, with ``dry_run``, would be) promoted
    """
    query = DocumentRequest.query.filter(
        DocumentRequest.status == RequestStatus.APPROVED,
        DocumentRequest.amount == 0,
    )
    if tenant_id is not None:
        query = query.filter(DocumentRequest.tenant_id == int(tenant_id))
    candidates = query.order_by(DocumentRequest.id).all()
    if dry_run:
        return candidates

    promoted = []
    for req in candidates:
        now = utc_now()
        result = db.session.execute(
            update(DocumentRequest)
            .where(
                DocumentRequest.id == req.id,
                DocumentRequest.status == RequestStatus.APPROVED,
                DocumentRequest.version == req.version,
            )
            .values(
                status=RequestStatus.PAYMENT_VERIFIED,
                version=req.version + 1,
                payment_details=manual_payment.free_payment_details(now),
                payment_verified_date=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("Skipped free-status repair for %s: changed concurrently", req.tracking_number)
            continue
        log_action(
            user_id=None,
            tenant_id=req.tenant_id,
            entity_type='document_request',
            entity_id=req.id,
            action='repair_free_status',
            old_values={'status': RequestStatus.APPROVED, 'version': req.version},
            new_values={'status': RequestStatus.PAYMENT_VERIFIED, 'version': req.version + 1},
        )
        promoted.append(req)

    db.session.commit()
    for req in promoted:
        db.session.refresh(req)
    logger.info("Promoted %d free request(s) from Approved to Payment Verified", len(promoted))
    return promoted

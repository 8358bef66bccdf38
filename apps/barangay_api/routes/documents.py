"""Document catalogue and resident request routes."""
import os
from pathlib import Path

from flask import Blueprint, jsonify, request, current_app, send_from_directory, redirect
from flask_jwt_extended import jwt_required

from apps.barangay_api import db, limiter
from apps.barangay_api.models.tenant import Tenant
from apps.barangay_api.utils.auth import principal_required, requested_version
from apps.barangay_api.utils.document_types import DOCUMENT_TYPES
from apps.barangay_api.utils.fee_calculator import get_pricing_table, get_fee_preview
from apps.barangay_api.utils.manual_payment import validate_payment_fields
from apps.barangay_api.utils.notifications import summarize_notifications
from apps.barangay_api.utils.proof_storage import store_proof, ProofStorageError, PROOF_CATEGORY
from apps.barangay_api.utils.receipt import compose_receipt
from apps.barangay_api.utils.request_engine import (
    Event,
    available_actions,
    check_transition,
    create_request,
    get_request,
    list_for_resident,
    transition,
)
from apps.barangay_api.utils.security import (
    NotFound,
    PreconditionFailed,
    WorkflowError,
    error_400,
    error_500,
)


documents_bp = Blueprint('documents', __name__, url_prefix='/api/documents')

PAYMENT_FORM_FIELDS = ('method', 'payment_method', 'reference_number', 'payment_date', 'account_name')


def _limit(limit_string: str):
    """Apply rate limit if limiter is available."""
    def decorator(f):
        if limiter:
            return limiter.limit(limit_string)(f)
        return f
    return decorator


def _request_payload(req, principal):
    data = req.to_dict()
    data['available_actions'] = available_actions(req, principal)
    return data


@documents_bp.route('/types', methods=['GET'])
@jwt_required(optional=True)
def list_document_types():
    """Document catalogue with the fee each type costs in a barangay.

    Query params:
        tenant_id: barangay whose pricing applies (system defaults otherwise)
        document_type: only return the preview for this type
    """
    try:
        tenant_id = request.args.get('tenant_id', type=int)
        if tenant_id is not None and not db.session.get(Tenant, tenant_id):
            raise NotFound('Barangay not found')

        doc_type = request.args.get('document_type')
        if doc_type:
            return jsonify({'fee': get_fee_preview(tenant_id, doc_type)}), 200

        table = get_pricing_table(tenant_id)
        types = [dict(name=name, **table[name]) for name in DOCUMENT_TYPES]
        return jsonify({'tenant_id': tenant_id, 'count': len(types), 'types': types}), 200
    except WorkflowError:
        raise
    except Exception as e:
        return error_500('Failed to get document types', e)


@documents_bp.route('/requests', methods=['POST'])
@jwt_required()
@_limit("20 per hour")
@principal_required
def create_document_request(principal):
    """File a document request.

    Residents file for themselves in their own barangay. Staff may file on
    behalf of a resident of their barangay by passing ``resident_id``.
    """
    try:
        data = request.get_json(silent=True) or {}
        if not data.get('document_type'):
            return error_400('document_type is required')

        tenant_id = data.get('tenant_id') or principal.tenant_id
        resident_id = data.get('resident_id') or principal.id
        try:
            tenant_id = int(tenant_id) if tenant_id is not None else None
            resident_id = int(resident_id)
        except (TypeError, ValueError):
            return error_400('tenant_id and resident_id must be integers')

        req = create_request(
            tenant_id=tenant_id,
            resident_id=resident_id,
            document_type=data.get('document_type'),
            principal=principal,
            purpose=data.get('purpose'),
        )
        return jsonify({
            'message': 'Document request submitted',
            'request': _request_payload(req, principal),
        }), 201
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        return error_500('Failed to create document request', e)


@documents_bp.route('/my-requests', methods=['GET'])
@jwt_required()
@principal_required
def get_my_requests(principal):
    """Current user's document requests, newest first."""
    try:
        requests_q = list_for_resident(principal.id, principal)
        return jsonify({
            'count': len(requests_q),
            'requests': [_request_payload(r, principal) for r in requests_q],
        }), 200
    except WorkflowError:
        raise
    except Exception as e:
        return error_500('Failed to get document requests', e)


@documents_bp.route('/requests/<int:request_id>', methods=['GET'])
@jwt_required()
@principal_required
def get_request_detail(request_id: int, principal):
    req = get_request(request_id, principal)
    response = jsonify({'request': _request_payload(req, principal)})
    response.headers['ETag'] = f'"{req.version}"'
    return response, 200


@documents_bp.route('/requests/<int:request_id>/payment-proof', methods=['POST'])
@jwt_required()
@_limit("10 per hour")
@principal_required
def upload_payment_proof(request_id: int, principal):
    """Upload a proof image only; returns ``proof_url`` for a later submit."""
    check_transition(request_id, Event.SUBMIT_PAYMENT, principal)
    proof_url, error = _store_uploaded_proof(request_id, principal)
    if error:
        return error
    return jsonify({'proof_url': proof_url}), 201


@documents_bp.route('/requests/<int:request_id>/payment', methods=['POST'])
@jwt_required()
@_limit("10 per hour")
@principal_required
def submit_payment(request_id: int, principal):
    """Submit payment for an approved request.

    Multipart: a ``proof`` image plus method, reference_number, payment_date
    and account_name form fields. JSON: the same fields with a ``proof_url``
    from a previous proof upload.
    """
    try:
        if request.files:
            req = check_transition(request_id, Event.SUBMIT_PAYMENT, principal)
            payload = {k: request.form.get(k) for k in PAYMENT_FORM_FIELDS if request.form.get(k)}
            # Refuse a bad form before its image reaches storage
            validate_payment_fields(payload)
            proof_url, error = _store_uploaded_proof(req.id, principal, tenant_id=req.tenant_id)
            if error:
                return error
            payload['proof_url'] = proof_url
            payload['expected_version'] = request.form.get('expected_version') or requested_version()
        else:
            payload = dict(request.get_json(silent=True) or {})
            payload['expected_version'] = requested_version(payload)

        req = transition(request_id, Event.SUBMIT_PAYMENT, principal, payload)
        return jsonify({
            'message': 'Payment submitted for verification',
            'request': _request_payload(req, principal),
        }), 200
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        return error_500('Failed to submit payment', e)


def _store_uploaded_proof(request_id, principal, tenant_id=None):
    """Validate the multipart ``proof`` part and store it. Returns (url, error)."""
    file = request.files.get('proof') or request.files.get('file')
    if not file or not file.filename:
        return None, error_400('Payment proof image is required')

    data = file.read()
    max_mb = int(current_app.config.get('MAX_PROOF_SIZE_MB', 5))
    if len(data) > max_mb * 1024 * 1024:
        return None, error_400(f'File size exceeds {max_mb}MB limit')

    try:
        url = store_proof(
            data,
            file.mimetype or file.content_type,
            tenant_id=tenant_id if tenant_id is not None else principal.tenant_id,
            request_id=request_id,
        )
    except ProofStorageError as e:
        current_app.logger.error("Payment proof upload failed for request %s: %s", request_id, e)
        return None, error_500('Failed to store payment proof', e)
    return url, None


@documents_bp.route('/requests/<int:request_id>/payment-proof', methods=['GET'])
@jwt_required()
@principal_required
def view_payment_proof(request_id: int, principal):
    """Proof image for the owner or staff of the request's barangay."""
    req = get_request(request_id, principal)
    proof_url = (req.payment_details or {}).get('proof_url')
    if not proof_url:
        raise NotFound('No payment proof on file')
    if proof_url.startswith('http://') or proof_url.startswith('https://'):
        return redirect(proof_url)

    normalized = proof_url.replace('\\', '/').lstrip('/')
    if not normalized.startswith(f'{PROOF_CATEGORY}/') or '..' in normalized.split('/'):
        return error_400('Invalid proof path')
    upload_dir = Path(current_app.config.get('UPLOAD_FOLDER', 'uploads'))
    if not os.path.exists(upload_dir / normalized):
        raise NotFound('Payment proof file is missing')
    return send_from_directory(str(upload_dir), normalized)


@documents_bp.route('/requests/<int:request_id>/receipt', methods=['GET'])
@jwt_required()
@principal_required
def get_receipt(request_id: int, principal):
    """Official receipt view-model for a verified (or free) request."""
    req = get_request(request_id, principal)
    tenant = db.session.get(Tenant, req.tenant_id)
    if not tenant:
        raise PreconditionFailed('Barangay record is missing for this request')
    return jsonify({'receipt': compose_receipt(req, tenant)}), 200


@documents_bp.route('/notifications', methods=['GET'])
@jwt_required()
@principal_required
def get_notifications(principal):
    """Alerts derived from the current user's requests."""
    try:
        requests_q = list_for_resident(principal.id, principal)
        return jsonify(summarize_notifications(requests_q)), 200
    except WorkflowError:
        raise
    except Exception as e:
        return error_500('Failed to get notifications', e)

"""
Barangay Document Requests - Admin Routes
Staff operations scoped to the staff member's own barangay
"""
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required

from apps.barangay_api import db
from apps.barangay_api.utils.audit import get_entity_history
from apps.barangay_api.utils.auth import staff_required, requested_version
from apps.barangay_api.utils.fee_calculator import get_pricing_table, update_pricing, reset_pricing
from apps.barangay_api.utils.request_engine import (
    Event,
    available_actions,
    delete_request,
    get_request,
    list_for_tenant,
    status_counts,
    transition,
)
from apps.barangay_api.utils.security import WorkflowError, error_400, error_500

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')

# URL segment -> engine event. Submitting payment is a resident action.
ADMIN_EVENTS = {
    'approve': Event.APPROVE,
    'reject': Event.REJECT,
    'verify-payment': Event.VERIFY_PAYMENT,
    'reject-payment': Event.REJECT_PAYMENT,
    'mark-ready': Event.MARK_READY,
    'release': Event.RELEASE,
}


def _staff_tenant_id(principal):
    """Tenant an admin route acts on; super admins must name one."""
    if principal.is_super_admin:
        return request.args.get('tenant_id', type=int)
    return principal.tenant_id


def _request_payload(req, principal):
    data = req.to_dict(include_resident=True)
    data['available_actions'] = available_actions(req, principal)
    return data


@admin_bp.route('/documents/requests', methods=['GET'])
@jwt_required()
@staff_required
def admin_list_document_requests(principal):
    """
    Document requests in the staff member's barangay.

    Query parameters:
        - status: Filter by status display name (optional)
        - tenant_id: Barangay (super admins only)
    """
    try:
        tenant_id = _staff_tenant_id(principal)
        if tenant_id is None:
            return error_400('tenant_id is required')

        status = (request.args.get('status') or '').strip() or None
        items = list_for_tenant(tenant_id, status=status, principal=principal)
        return jsonify({
            'tenant_id': tenant_id,
            'status': status,
            'count': len(items),
            'counts': status_counts(tenant_id),
            'requests': [_request_payload(r, principal) for r in items],
        }), 200
    except WorkflowError:
        raise
    except Exception as e:
        current_app.logger.error("Admin list document requests error: %s", e)
        return error_500('Failed to get document requests', e)


@admin_bp.route('/documents/requests/<int:request_id>', methods=['GET'])
@jwt_required()
@staff_required
def admin_get_document_request(request_id: int, principal):
    req = get_request(request_id, principal)
    data = _request_payload(req, principal)
    data['history'] = [
        entry.to_dict() for entry in get_entity_history('document_request', req.id)
    ]
    response = jsonify({'request': data})
    response.headers['ETag'] = f'"{req.version}"'
    return response, 200


@admin_bp.route('/documents/requests/<int:request_id>/<string:action>', methods=['POST'])
@jwt_required()
@staff_required
def admin_transition_document_request(request_id: int, action: str, principal):
    """
    Apply a staff action to a request.

    Body (JSON, all optional depending on the action):
        - reason: rejection reason (reject)
        - remarks: reviewer remarks (verify-payment, required for reject-payment)
        - expected_version: version last seen by the caller (or If-Match header)
    """
    event = ADMIN_EVENTS.get(action)
    if not event:
        return jsonify({'error': f"Unknown action '{action}'", 'code': 'UNKNOWN_ACTION'}), 404

    try:
        payload = dict(request.get_json(silent=True) or {})
        payload['expected_version'] = requested_version(payload)

        req = transition(request_id, event, principal, payload)
        return jsonify({
            'message': f'Request is now {req.status}',
            'request': _request_payload(req, principal),
        }), 200
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Admin %s on request %s failed: %s", action, request_id, e)
        return error_500('Failed to update document request', e)


@admin_bp.route('/documents/requests/<int:request_id>', methods=['DELETE'])
@jwt_required()
@staff_required
def admin_delete_document_request(request_id: int, principal):
    """Permanently delete a request (Admin and Barangay Captain)."""
    try:
        delete_request(request_id, principal)
        return jsonify({'message': 'Request deleted'}), 200
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        return error_500('Failed to delete document request', e)


@admin_bp.route('/pricing', methods=['GET'])
@jwt_required()
@staff_required
def admin_get_pricing(principal):
    tenant_id = _staff_tenant_id(principal)
    if tenant_id is None:
        return error_400('tenant_id is required')
    return jsonify({'tenant_id': tenant_id, 'pricing': get_pricing_table(tenant_id)}), 200


@admin_bp.route('/pricing', methods=['PUT'])
@jwt_required()
@staff_required
def admin_update_pricing(principal):
    """
    Update document prices for the barangay.

    Body: {"pricing": {"Barangay Clearance": 60, ...}} or the mapping itself.
    Types not listed keep their current price.
    """
    try:
        tenant_id = _staff_tenant_id(principal)
        if tenant_id is None:
            return error_400('tenant_id is required')
        data = request.get_json(silent=True) or {}
        prices = data.get('pricing', data) if isinstance(data, dict) else data
        table = update_pricing(tenant_id, principal, prices)
        return jsonify({'message': 'Pricing updated', 'tenant_id': tenant_id, 'pricing': table}), 200
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        return error_500('Failed to update pricing', e)


@admin_bp.route('/pricing', methods=['DELETE'])
@jwt_required()
@staff_required
def admin_reset_pricing(principal):
    """Reset the barangay's prices to the system defaults."""
    try:
        tenant_id = _staff_tenant_id(principal)
        if tenant_id is None:
            return error_400('tenant_id is required')
        table = reset_pricing(tenant_id, principal)
        return jsonify({'message': 'Pricing reset to defaults', 'tenant_id': tenant_id, 'pricing': table}), 200
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        return error_500('Failed to reset pricing', e)

"""
Barangay Document Requests - SuperAdmin Routes
Tenant provisioning and cross-barangay read access
"""
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from sqlalchemy import desc

from apps.barangay_api import db
from apps.barangay_api.models.audit import AuditLog
from apps.barangay_api.models.document import DocumentRequest, RequestStatus
from apps.barangay_api.utils.auth import super_admin_required
from apps.barangay_api.utils.request_engine import list_for_tenant
from apps.barangay_api.utils.security import WorkflowError, error_400, error_500
from apps.barangay_api.utils.tenant_registry import (
    get_tenant,
    list_tenants,
    provision_tenant,
    update_tenant,
)

superadmin_bp = Blueprint('superadmin', __name__, url_prefix='/api/superadmin')


@superadmin_bp.before_request
def handle_preflight():
    """Handle CORS preflight requests explicitly."""
    if request.method == 'OPTIONS':
        response = current_app.make_default_options_response()
        return response


@superadmin_bp.route('/tenants', methods=['POST'])
@jwt_required()
@super_admin_required
def create_tenant(principal):
    """Provision a barangay."""
    try:
        tenant = provision_tenant(principal, request.get_json(silent=True) or {})
        return jsonify({'message': 'Barangay created', 'tenant': tenant.to_dict()}), 201
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        return error_500('Failed to create barangay', e)


@superadmin_bp.route('/tenants', methods=['GET'])
@jwt_required()
@super_admin_required
def get_tenants(principal):
    """
    List barangays.

    Query parameters:
        - include_inactive: 'false' hides deactivated barangays (default: true)
    """
    include_inactive = (request.args.get('include_inactive', 'true').lower() != 'false')
    tenants = list_tenants(include_inactive=include_inactive)
    return jsonify({
        'count': len(tenants),
        'tenants': [t.to_dict() for t in tenants],
    }), 200


@superadmin_bp.route('/tenants/<int:tenant_id>', methods=['GET'])
@jwt_required()
@super_admin_required
def get_tenant_detail(tenant_id: int, principal):
    return jsonify({'tenant': get_tenant(tenant_id).to_dict()}), 200


@superadmin_bp.route('/tenants/<int:tenant_id>', methods=['PATCH'])
@jwt_required()
@super_admin_required
def patch_tenant(tenant_id: int, principal):
    """Update barangay metadata or flip ``is_active`` (deactivate, never delete)."""
    try:
        tenant = update_tenant(tenant_id, principal, request.get_json(silent=True) or {})
        return jsonify({'message': 'Barangay updated', 'tenant': tenant.to_dict()}), 200
    except WorkflowError:
        raise
    except Exception as e:
        db.session.rollback()
        return error_500('Failed to update barangay', e)


@superadmin_bp.route('/documents/requests', methods=['GET'])
@jwt_required()
@super_admin_required
def get_all_document_requests(principal):
    """
    Document requests across barangays (read-only).

    Query parameters:
        - tenant_id: Limit to one barangay (optional)
        - status: Filter by status (optional)
    """
    try:
        tenant_id = request.args.get('tenant_id', type=int)
        status = (request.args.get('status') or '').strip() or None

        if tenant_id is not None:
            items = list_for_tenant(tenant_id, status=status, principal=principal)
        else:
            if status and status not in RequestStatus.ALL:
                return error_400(f"Unknown status '{status}'")
            query = DocumentRequest.query
            if status:
                query = query.filter(DocumentRequest.status == status)
            items = query.order_by(desc(DocumentRequest.request_date), desc(DocumentRequest.id)).all()

        return jsonify({
            'count': len(items),
            'requests': [r.to_dict(include_resident=True) for r in items],
        }), 200
    except WorkflowError:
        raise
    except Exception as e:
        current_app.logger.error("Super admin request listing failed: %s", e)
        return error_500('Failed to get document requests', e)


@superadmin_bp.route('/audit-log', methods=['GET'])
@jwt_required()
@super_admin_required
def get_audit_log(principal):
    """
    Audit log entries, most recent first.

    Query parameters:
        - page: Page number (default: 1)
        - per_page: Items per page (default: 50, max: 100)
        - tenant_id: Filter by barangay (optional)
        - entity_type: Filter by entity type (optional)
        - action: Filter by action (optional)
    """
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 50, type=int), 100)

    query = AuditLog.query
    tenant_id = request.args.get('tenant_id', type=int)
    if tenant_id is not None:
        query = query.filter(AuditLog.tenant_id == tenant_id)
    entity_type = (request.args.get('entity_type') or '').strip()
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    action = (request.args.get('action') or '').strip()
    if action:
        query = query.filter(AuditLog.action == action)

    pagination = query.order_by(desc(AuditLog.created_at), desc(AuditLog.id)).paginate(
        page=page, per_page=per_page, error_out=False
    )
    return jsonify({
        'audit_logs': [log.to_dict() for log in pagination.items],
        'pagination': {
            'page': pagination.page,
            'per_page': pagination.per_page,
            'total': pagination.total,
            'pages': pagination.pages,
            'has_next': pagination.has_next,
            'has_prev': pagination.has_prev,
        },
    }), 200

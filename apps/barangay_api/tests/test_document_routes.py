"""
HTTP surface tests: resident, admin and super admin blueprints.

Workflow errors must come back as JSON with a stable ``code`` and the
matching status, and staff routes must stay inside their own barangay.
"""
import io
from pathlib import Path

from apps.barangay_api import db
from apps.barangay_api.models.document import DocumentRequest, RequestStatus

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 64


def _file_request(client, world, document_type='Barangay Clearance'):
    resp = client.post(
        '/api/documents/requests',
        json={'document_type': document_type, 'purpose': 'Employment'},
        headers=world.headers('resident'),
    )
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()['request']


def _admin(client, world, key, request_id, action, **kwargs):
    return client.post(
        f'/api/admin/documents/requests/{request_id}/{action}',
        headers=dict(world.headers(key), **kwargs.pop('headers', {})),
        json=kwargs.pop('json', {}),
    )


def test_health(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'ok'


def test_document_types_with_tenant_pricing(client, world):
    resp = client.get(f'/api/documents/types?tenant_id={world.tenant.id}')
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['count'] == 6
    fees = {t['name']: t['fee'] for t in data['types']}
    assert fees['Barangay Clearance'] == 50.0
    assert fees['Certificate of Indigency'] == 0.0

    preview = client.get(f'/api/documents/types?tenant_id={world.tenant.id}&document_type=residency').get_json()
    assert preview['fee']['document_type'] == 'Certificate of Residency'

    assert client.get('/api/documents/types?tenant_id=999').status_code == 404


def test_requires_authentication(client, world):
    assert client.get('/api/documents/my-requests').status_code == 401


def test_resident_creates_request(client, world):
    data = _file_request(client, world)
    assert data['status'] == RequestStatus.PENDING
    assert data['resident_id'] == world.users['resident'].id
    assert data['tenant_id'] == world.tenant.id
    assert data['amount'] == 50.0
    assert data['available_actions'] == []


def test_create_validation_errors(client, world):
    resp = client.post('/api/documents/requests', json={}, headers=world.headers('resident'))
    assert resp.status_code == 400

    resp = client.post('/api/documents/requests', json={'document_type': 'Passport'}, headers=world.headers('resident'))
    assert resp.status_code == 400
    assert resp.get_json()['code'] == 'INVALID_DOCUMENT_TYPE'

    resp = client.post(
        '/api/documents/requests',
        json={'document_type': 'Barangay Clearance', 'resident_id': world.users['neighbor'].id},
        headers=world.headers('resident'),
    )
    assert resp.status_code == 403
    assert resp.get_json()['code'] == 'FORBIDDEN'


def test_paid_flow_over_http(client, world):
    created = _file_request(client, world)
    request_id = created['id']

    resp = _admin(client, world, 'secretary', request_id, 'approve', headers={'If-Match': '"1"'})
    assert resp.status_code == 200
    assert resp.get_json()['request']['status'] == RequestStatus.APPROVED

    detail = client.get(f'/api/documents/requests/{request_id}', headers=world.headers('resident'))
    assert detail.headers['ETag'] == '"2"'
    assert detail.get_json()['request']['available_actions'] == ['submit_payment']

    resp = client.post(
        f'/api/documents/requests/{request_id}/payment',
        headers=world.headers('resident'),
        data={
            'proof': (io.BytesIO(PNG_BYTES), 'gcash.png', 'image/png'),
            'method': 'gcash',
            'reference_number': 'GC-555',
        },
        content_type='multipart/form-data',
    )
    assert resp.status_code == 200, resp.get_json()
    submitted = resp.get_json()['request']
    assert submitted['status'] == RequestStatus.PAYMENT_SUBMITTED
    assert submitted['payment_details']['proof_url'].startswith('payment-proofs/')

    proof = client.get(f'/api/documents/requests/{request_id}/payment-proof', headers=world.headers('treasurer'))
    assert proof.status_code == 200
    assert proof.data == PNG_BYTES

    resp = _admin(client, world, 'treasurer', request_id, 'verify-payment', json={'remarks': 'OK'})
    assert resp.status_code == 200
    assert resp.get_json()['request']['status'] == RequestStatus.PAYMENT_VERIFIED

    receipt = client.get(f'/api/documents/requests/{request_id}/receipt', headers=world.headers('resident'))
    assert receipt.status_code == 200
    assert receipt.get_json()['receipt']['payment']['reference_number'] == 'GC-555'

    assert _admin(client, world, 'secretary', request_id, 'mark-ready').status_code == 200

    notes = client.get('/api/documents/notifications', headers=world.headers('resident')).get_json()
    assert notes['badge_count'] == 1
    assert notes['notifications'][0]['kind'] == 'ready_for_pickup'

    resp = _admin(client, world, 'admin', request_id, 'release')
    assert resp.get_json()['request']['status'] == RequestStatus.RELEASED

    history = client.get(f'/api/admin/documents/requests/{request_id}', headers=world.headers('admin')).get_json()
    assert [h['action'] for h in history['request']['history']] == [
        'create', 'approve', 'submit_payment', 'verify_payment', 'mark_ready', 'release',
    ]


def test_payment_with_non_image_proof_is_rejected(client, world):
    request_id = _file_request(client, world)['id']
    _admin(client, world, 'admin', request_id, 'approve')

    resp = client.post(
        f'/api/documents/requests/{request_id}/payment',
        headers=world.headers('resident'),
        data={
            'proof': (io.BytesIO(b'%PDF-1.4'), 'receipt.pdf', 'application/pdf'),
            'method': 'GCash',
            'reference_number': 'GC-1',
        },
        content_type='multipart/form-data',
    )
    assert resp.status_code == 422
    assert resp.get_json()['code'] == 'PRECONDITION_FAILED'


def test_refused_payment_form_stores_no_proof(app, client, world):
    request_id = _file_request(client, world)['id']
    _admin(client, world, 'admin', request_id, 'approve')

    resp = client.post(
        f'/api/documents/requests/{request_id}/payment',
        headers=world.headers('resident'),
        data={
            'proof': (io.BytesIO(PNG_BYTES), 'gcash.png', 'image/png'),
            'method': 'GCash',
        },
        content_type='multipart/form-data',
    )
    assert resp.status_code == 422
    assert resp.get_json()['code'] == 'PRECONDITION_FAILED'

    proof_dir = Path(app.config['UPLOAD_FOLDER']) / 'payment-proofs'
    assert [p for p in proof_dir.rglob('*') if p.is_file()] == []
    assert db.session.get(DocumentRequest, request_id).status == RequestStatus.APPROVED


def test_proof_upload_refused_before_approval(client, world):
    request_id = _file_request(client, world)['id']
    resp = client.post(
        f'/api/documents/requests/{request_id}/payment-proof',
        headers=world.headers('resident'),
        data={'proof': (io.BytesIO(PNG_BYTES), 'gcash.png', 'image/png')},
        content_type='multipart/form-data',
    )
    assert resp.status_code == 409
    assert resp.get_json()['code'] == 'INVALID_TRANSITION'


def test_workflow_errors_map_to_status_codes(client, world):
    request_id = _file_request(client, world)['id']

    resp = _admin(client, world, 'other_admin', request_id, 'approve')
    assert resp.status_code == 403
    assert resp.get_json()['code'] == 'TENANT_MISMATCH'

    resp = _admin(client, world, 'treasurer', request_id, 'approve')
    assert resp.status_code == 403
    assert resp.get_json()['code'] == 'FORBIDDEN'

    resp = _admin(client, world, 'admin', request_id, 'release')
    assert resp.status_code == 409
    assert resp.get_json()['code'] == 'INVALID_TRANSITION'

    resp = _admin(client, world, 'admin', request_id, 'reject')
    assert resp.status_code == 422

    resp = _admin(client, world, 'admin', request_id, 'archive')
    assert resp.status_code == 404
    assert resp.get_json()['code'] == 'UNKNOWN_ACTION'

    resp = _admin(client, world, 'admin', 9999, 'approve')
    assert resp.status_code == 404
    assert resp.get_json()['code'] == 'NOT_FOUND'


def test_stale_if_match_is_retryable_conflict(client, world):
    request_id = _file_request(client, world)['id']
    assert _admin(client, world, 'admin', request_id, 'approve').status_code == 200

    resp = _admin(client, world, 'captain', request_id, 'reject', headers={'If-Match': 'W/"1"'}, json={'reason': 'x'})
    assert resp.status_code == 409
    body = resp.get_json()
    assert body['code'] == 'CONCURRENT_MODIFICATION'
    assert body['retryable'] is True


def test_resident_cannot_use_admin_routes(client, world):
    request_id = _file_request(client, world)['id']
    assert _admin(client, world, 'resident', request_id, 'approve').status_code == 403
    assert client.get('/api/admin/documents/requests', headers=world.headers('resident')).status_code == 403


def test_admin_list_is_scoped_to_own_barangay(client, world):
    _file_request(client, world)

    mine = client.get('/api/admin/documents/requests', headers=world.headers('secretary')).get_json()
    assert mine['count'] == 1
    assert mine['counts'][RequestStatus.PENDING] == 1
    assert mine['requests'][0]['resident']['email'] == 'resident@example.com'

    theirs = client.get('/api/admin/documents/requests', headers=world.headers('other_admin')).get_json()
    assert theirs['count'] == 0

    resp = client.get('/api/admin/documents/requests?status=Bogus', headers=world.headers('admin'))
    assert resp.status_code == 422


def test_delete_route(client, world):
    request_id = _file_request(client, world)['id']
    resp = client.delete(f'/api/admin/documents/requests/{request_id}', headers=world.headers('secretary'))
    assert resp.status_code == 403

    resp = client.delete(f'/api/admin/documents/requests/{request_id}', headers=world.headers('captain'))
    assert resp.status_code == 200
    assert DocumentRequest.query.count() == 0


def test_pricing_routes(client, world):
    resp = client.put('/api/admin/pricing', json={'pricing': {'Barangay Clearance': 65}}, headers=world.headers('admin'))
    assert resp.status_code == 200
    assert resp.get_json()['pricing']['Barangay Clearance']['fee'] == 65.0

    resp = client.put('/api/admin/pricing', json={'Barangay Clearance': 1}, headers=world.headers('treasurer'))
    assert resp.status_code == 403

    created = _file_request(client, world)
    assert created['amount'] == 65.0

    resp = client.delete('/api/admin/pricing', headers=world.headers('admin'))
    assert resp.get_json()['pricing']['Barangay Clearance']['fee'] == 50.0


def test_free_request_over_http(client, world):
    request_id = _file_request(client, world, document_type='Certificate of Indigency')['id']
    resp = _admin(client, world, 'captain', request_id, 'approve')
    assert resp.get_json()['request']['status'] == RequestStatus.PAYMENT_VERIFIED

    resp = client.post(
        f'/api/documents/requests/{request_id}/payment',
        json={'method': 'GCash', 'reference_number': 'x', 'proof_url': 'payment-proofs/x.png'},
        headers=world.headers('resident'),
    )
    assert resp.status_code == 409


def test_superadmin_routes(client, world):
    resp = client.post(
        '/api/superadmin/tenants',
        json={'name': 'Bangantalinga', 'address': 'Zone 1', 'municipality': 'Iba', 'province': 'Zambales'},
        headers=world.headers('super'),
    )
    assert resp.status_code == 201
    tenant_id = resp.get_json()['tenant']['id']

    resp = client.patch(f'/api/superadmin/tenants/{tenant_id}', json={'is_active': False}, headers=world.headers('super'))
    assert resp.get_json()['tenant']['is_active'] is False

    assert client.get('/api/superadmin/tenants', headers=world.headers('admin')).status_code == 403

    listing = client.get('/api/superadmin/tenants?include_inactive=false', headers=world.headers('super')).get_json()
    assert tenant_id not in [t['id'] for t in listing['tenants']]

    _file_request(client, world)
    across = client.get('/api/superadmin/documents/requests', headers=world.headers('super')).get_json()
    assert across['count'] == 1

    audit = client.get('/api/superadmin/audit-log?entity_type=tenant', headers=world.headers('super')).get_json()
    assert audit['pagination']['total'] == 2


def test_super_admin_must_name_a_barangay_for_admin_listing(client, world):
    resp = client.get('/api/admin/documents/requests', headers=world.headers('super'))
    assert resp.status_code == 400

    resp = client.get(f'/api/admin/documents/requests?tenant_id={world.tenant.id}', headers=world.headers('super'))
    assert resp.status_code == 200

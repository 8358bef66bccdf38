"""Payment proof storage backends."""
from pathlib import Path

import pytest
import requests

from apps.barangay_api.utils import proof_storage
from apps.barangay_api.utils.proof_storage import ProofStorageError, build_proof_path, store_proof
from apps.barangay_api.utils.security import PreconditionFailed

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 32


class _FakeResponse:
    def __init__(self, status_code, text=''):
        self.status_code = status_code
        self.text = text


def test_build_proof_path():
    assert build_proof_path('p.jpg', 3, 12) == 'tenant_3/request_12/p.jpg'
    assert build_proof_path('p.jpg') == 'unscoped/p.jpg'


def test_local_fallback_writes_under_upload_folder(app):
    ref = store_proof(PNG_BYTES, 'image/png', tenant_id=1, request_id=2)

    assert ref.startswith('payment-proofs/tenant_1/request_2/proof_')
    assert ref.endswith('.png')
    assert (Path(app.config['UPLOAD_FOLDER']) / ref).read_bytes() == PNG_BYTES


@pytest.mark.parametrize('data,content_type', [
    (b'', 'image/png'),
    (b'%PDF-1.7', 'application/pdf'),
    (b'MZ', None),
])
def test_rejects_empty_or_non_image(app, data, content_type):
    with pytest.raises(PreconditionFailed):
        store_proof(data, content_type)


def test_supabase_upload_returns_public_url(app, monkeypatch):
    app.config['SUPABASE_URL'] = 'https://example.supabase.co/'
    app.config['SUPABASE_SERVICE_KEY'] = 'service-key'
    calls = []

    def fake_post(url, headers=None, data=None, timeout=None):
        calls.append((url, headers, timeout))
        return _FakeResponse(200)

    monkeypatch.setattr(proof_storage.requests, 'post', fake_post)

    url = store_proof(PNG_BYTES, 'image/png; charset=binary', tenant_id=1, request_id=5)

    assert url.startswith('https://example.supabase.co/storage/v1/object/public/payment-proofs/tenant_1/request_5/')
    upload_url, headers, timeout = calls[0]
    assert upload_url.startswith('https://example.supabase.co/storage/v1/object/payment-proofs/')
    assert headers['Content-Type'] == 'image/png'
    assert headers['Authorization'] == 'Bearer service-key'
    assert timeout == proof_storage.UPLOAD_TIMEOUT_SECONDS


def test_supabase_failure_raises(app, monkeypatch):
    app.config['SUPABASE_URL'] = 'https://example.supabase.co'
    app.config['SUPABASE_SERVICE_KEY'] = 'service-key'
    monkeypatch.setattr(proof_storage.requests, 'post', lambda *a, **kw: _FakeResponse(500, 'boom'))

    with pytest.raises(ProofStorageError):
        store_proof(PNG_BYTES, 'image/jpeg')


def test_supabase_network_error_raises(app, monkeypatch):
    app.config['SUPABASE_URL'] = 'https://example.supabase.co'
    app.config['SUPABASE_SERVICE_KEY'] = 'service-key'

    def broken(*args, **kwargs):
        raise requests.ConnectionError('unreachable')

    monkeypatch.setattr(proof_storage.requests, 'post', broken)

    with pytest.raises(ProofStorageError):
        store_proof(PNG_BYTES, 'image/jpeg')

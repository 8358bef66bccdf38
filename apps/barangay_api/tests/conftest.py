"""Test setup helpers."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path for apps.barangay_api imports.
PROJECT_ROOT = Path(__file__).resolve().parents[3]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from flask_jwt_extended import create_access_token  # noqa: E402

from apps.barangay_api import db  # noqa: E402
from apps.barangay_api.app import create_app  # noqa: E402
from apps.barangay_api.config import TestingConfig  # noqa: E402
from apps.barangay_api.models.tenant import Tenant  # noqa: E402
from apps.barangay_api.models.user import (  # noqa: E402
    User,
    ROLE_ADMIN,
    ROLE_CAPTAIN,
    ROLE_SECRETARY,
    ROLE_TREASURER,
    ROLE_RESIDENT,
)
from apps.barangay_api.utils.auth import Principal  # noqa: E402


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.delenv('SUPABASE_URL', raising=False)
    monkeypatch.delenv('SUPABASE_SERVICE_KEY', raising=False)

    class _Config(TestingConfig):
        UPLOAD_FOLDER = tmp_path / 'uploads'
        SUPABASE_URL = ''
        SUPABASE_SERVICE_KEY = ''

    app = create_app(_Config)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class World:
    """Two barangays with staff of every role plus residents."""

    def __init__(self):
        self.tenant = Tenant(
            name='San Isidro', slug='san-isidro-iba-zambales', address='Purok 1, San Isidro',
            municipality='Iba', province='Zambales', contact_number='0917-000-0000',
        )
        self.other_tenant = Tenant(
            name='Poblacion', slug='poblacion-botolan-zambales', address='Rizal St.',
            municipality='Botolan', province='Zambales',
        )
        db.session.add_all([self.tenant, self.other_tenant])
        db.session.flush()

        self.users = {}
        self._user('admin', ROLE_ADMIN)
        self._user('captain', ROLE_CAPTAIN)
        self._user('secretary', ROLE_SECRETARY)
        self._user('treasurer', ROLE_TREASURER)
        self._user('resident', ROLE_RESIDENT, first_name='Juan', last_name='Dela Cruz')
        self._user('neighbor', ROLE_RESIDENT, first_name='Maria', last_name='Santos')
        self._user('other_admin', ROLE_ADMIN, tenant=self.other_tenant)
        self._user('other_resident', ROLE_RESIDENT, tenant=self.other_tenant)
        self._user('super', ROLE_ADMIN, tenant=None, is_super_admin=True)
        db.session.commit()

    def _user(self, key, role, tenant=False, is_super_admin=False, first_name=None, last_name=None):
        tenant = self.tenant if tenant is False else tenant
        user = User(
            email=f'{key}@example.com',
            first_name=first_name or key.title(),
            last_name=last_name or 'Tester',
            role=role,
            tenant_id=tenant.id if tenant is not None else None,
            is_super_admin=is_super_admin,
        )
        db.session.add(user)
        db.session.flush()
        self.users[key] = user

    def principal(self, key) -> Principal:
        return Principal.from_user(self.users[key])

    def headers(self, key):
        token = create_access_token(identity=str(self.users[key].id))
        return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def world(app):
    return World()

"""Principal resolution for JWT-authenticated requests.

The request engine never reads the logged-in user from ambient state; routes
resolve a Principal here and pass it explicitly into every engine call.
"""
from __future__ import annotations

from functools import wraps
from typing import Optional

from flask import jsonify, request
from flask_jwt_extended import get_jwt_identity

from apps.barangay_api import db
from apps.barangay_api.models.user import User, STAFF_ROLES, ROLE_ADMIN, ROLE_RESIDENT


class Principal:
    """The acting user of a workflow operation."""

    __slots__ = ('id', 'tenant_id', 'role', 'is_super_admin')

    def __init__(self, id: int, tenant_id: Optional[int], role: str, is_super_admin: bool = False):
        self.id = id
        self.tenant_id = tenant_id
        self.role = role
        self.is_super_admin = bool(is_super_admin)

    def __repr__(self):
        flag = ' super' if self.is_super_admin else ''
        return f'<Principal {self.id} {self.role}@{self.tenant_id}{flag}>'

    def __eq__(self, other):
        if not isinstance(other, Principal):
            return NotImplemented
        return (self.id, self.tenant_id, self.role, self.is_super_admin) == (
            other.id, other.tenant_id, other.role, other.is_super_admin
        )

    def __hash__(self):
        return hash((self.id, self.tenant_id, self.role, self.is_super_admin))

    @classmethod
    def from_user(cls, user: User) -> 'Principal':
        return cls(
            id=user.id,
            tenant_id=user.tenant_id,
            role=user.role,
            is_super_admin=bool(user.is_super_admin),
        )

    @property
    def is_staff(self) -> bool:
        return self.is_super_admin or self.role in STAFF_ROLES

    @property
    def is_resident(self) -> bool:
        return not self.is_super_admin and self.role == ROLE_RESIDENT

    @property
    def effective_role(self) -> str:
        """Role used for transition gating; super admins act as Admin."""
        return ROLE_ADMIN if self.is_super_admin else self.role

    def can_access_tenant(self, tenant_id: int) -> bool:
        return self.is_super_admin or (
            self.tenant_id is not None and int(self.tenant_id) == int(tenant_id)
        )

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'role': self.role,
            'is_super_admin': self.is_super_admin,
        }


def get_current_user() -> Optional[User]:
    """Load the active User behind the current JWT identity."""
    try:
        user_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        return None
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        return None
    return user


def get_current_principal() -> Optional[Principal]:
    """Return the Principal for the current JWT, or None when unknown."""
    user = get_current_user()
    return Principal.from_user(user) if user else None


def principal_required(f):
    """Resolve the principal and pass it as the ``principal`` keyword."""
    @wraps(f)
    def decorated(*args, **kwargs):
        principal = get_current_principal()
        if not principal:
            return jsonify({'error': 'User not found'}), 404
        return f(*args, principal=principal, **kwargs)
    return decorated


def staff_required(f):
    """Like principal_required, but only barangay staff or super admins pass."""
    @wraps(f)
    def decorated(*args, **kwargs):
        principal = get_current_principal()
        if not principal or not principal.is_staff:
            return jsonify({'error': 'Staff access required'}), 403
        return f(*args, principal=principal, **kwargs)
    return decorated


def super_admin_required(f):
    """Only super admins pass."""
    @wraps(f)
    def decorated(*args, **kwargs):
        principal = get_current_principal()
        if not principal or not principal.is_super_admin:
            return jsonify({'error': 'Super admin access required'}), 403
        return f(*args, principal=principal, **kwargs)
    return decorated


def requested_version(payload=None):
    """Version the caller last saw: ``expected_version`` in the body, else If-Match."""
    if payload and payload.get('expected_version') not in (None, ''):
        return payload.get('expected_version')
    header = (request.headers.get('If-Match') or '').strip()
    if header.startswith('W/'):
        header = header[2:]
    return header.strip('"') or None

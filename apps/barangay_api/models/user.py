"""User accounts as seen by the request service.

Registration and password login live in the authentication service; this
table only maps JWT identities to a tenant and a role.
"""
from apps.barangay_api.utils.time import utc_now
from apps.barangay_api import db
from sqlalchemy import Index


# Roles recognised by the document workflow
ROLE_ADMIN = 'Admin'
ROLE_CAPTAIN = 'Barangay Captain'
ROLE_SECRETARY = 'Secretary'
ROLE_TREASURER = 'Treasurer'
ROLE_RESIDENT = 'Resident'

STAFF_ROLES = (ROLE_ADMIN, ROLE_CAPTAIN, ROLE_SECRETARY, ROLE_TREASURER)
ALL_ROLES = STAFF_ROLES + (ROLE_RESIDENT,)


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=True)

    email = db.Column(db.String(255), unique=True, nullable=False)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)

    role = db.Column(db.String(30), nullable=False, default=ROLE_RESIDENT)
    is_super_admin = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    tenant = db.relationship('Tenant', backref=db.backref('users', lazy='dynamic'))

    __table_args__ = (
        Index('idx_user_tenant', 'tenant_id'),
        Index('idx_user_role', 'role'),
    )

    def __repr__(self):
        return f'<User {self.email}>'

    @property
    def full_name(self) -> str:
        parts = [self.first_name or '', self.last_name or '']
        return ' '.join(p for p in parts if p).strip() or self.email

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'role': self.role,
            'is_super_admin': bool(self.is_super_admin),
            'is_active': bool(self.is_active),
        }

"""Audit log model.

One row per staff or resident action on a document request (transitions,
deletes, pricing changes). Written in the same transaction as the change.
"""
from apps.barangay_api.utils.time import utc_now
from apps.barangay_api import db
from sqlalchemy import Index


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False)

    # e.g., 'document_request', 'tenant_pricing'
    entity_type = db.Column(db.String(50), nullable=False)
    # Not a foreign key: deleted requests keep their audit trail
    entity_id = db.Column(db.Integer, nullable=True)

    action = db.Column(db.String(50), nullable=False)  # e.g., 'approve', 'verify_payment', 'delete'
    actor_role = db.Column(db.String(30), nullable=True)

    old_values = db.Column(db.JSON, nullable=True)
    new_values = db.Column(db.JSON, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=utc_now)

    __table_args__ = (
        Index('idx_audit_tenant', 'tenant_id'),
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
        Index('idx_audit_created_at', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'tenant_id': self.tenant_id,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'action': self.action,
            'actor_role': self.actor_role,
            'old_values': self.old_values,
            'new_values': self.new_values,
            'notes': self.notes,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

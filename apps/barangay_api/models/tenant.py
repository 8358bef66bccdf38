"""Tenant (barangay) model: display metadata, active flag and pricing table."""
from apps.barangay_api.utils.time import utc_now
from apps.barangay_api import db
from sqlalchemy import Index


class Tenant(db.Model):
    __tablename__ = 'tenants'

    # Primary Key
    id = db.Column(db.Integer, primary_key=True)

    # Display metadata
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(140), unique=True, nullable=False)
    address = db.Column(db.String(255), nullable=False)
    municipality = db.Column(db.String(120), nullable=False)
    province = db.Column(db.String(120), nullable=False)
    contact_number = db.Column(db.String(30), nullable=True)
    seal_logo_url = db.Column(db.String(500), nullable=True)

    # Soft deactivation only; tenants are never deleted while requests exist
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Pricing (JSON): {"Barangay Clearance": 50.0, ...}; missing keys use system defaults
    document_pricing = db.Column(db.JSON, nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index('idx_tenant_active', 'is_active'),
    )

    def __repr__(self):
        return f'<Tenant {self.slug}>'

    @property
    def display_name(self) -> str:
        return f"Barangay {self.name}, {self.municipality}, {self.province}"

    def to_dict(self, include_pricing=True):
        """Convert tenant to dictionary."""
        data = {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'display_name': self.display_name,
            'address': self.address,
            'municipality': self.municipality,
            'province': self.province,
            'contact_number': self.contact_number,
            'seal_logo_url': self.seal_logo_url,
            'is_active': bool(self.is_active),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_pricing:
            data['document_pricing'] = dict(self.document_pricing or {})
        return data

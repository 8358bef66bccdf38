"""Document request model."""
from apps.barangay_api.utils.time import utc_now, isoformat_or_none
from apps.barangay_api import db
from sqlalchemy import CheckConstraint, Index, UniqueConstraint


class RequestStatus:
    """Lifecycle states of a document request (display strings are stored)."""

    PENDING = 'Pending'
    APPROVED = 'Approved'
    PAYMENT_SUBMITTED = 'Payment Submitted'
    PAYMENT_VERIFIED = 'Payment Verified'
    READY_FOR_PICKUP = 'Ready for Pickup'
    RELEASED = 'Released'
    REJECTED = 'Rejected'

    ALL = (
        PENDING,
        APPROVED,
        PAYMENT_SUBMITTED,
        PAYMENT_VERIFIED,
        READY_FOR_PICKUP,
        RELEASED,
        REJECTED,
    )
    TERMINAL = (RELEASED, REJECTED)
    INITIAL = PENDING


class DocumentRequest(db.Model):
    __tablename__ = 'document_requests'

    # Primary Key
    id = db.Column(db.Integer, primary_key=True)

    # Ownership (immutable after creation)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenants.id'), nullable=False)
    resident_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    # Tracking number (unique within tenant)
    tracking_number = db.Column(db.String(50), nullable=False)

    # Document Information
    document_type = db.Column(db.String(100), nullable=False)
    purpose = db.Column(db.String(255), nullable=True)

    # Fee snapshot taken at creation time
    amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    # Status
    status = db.Column(db.String(30), nullable=False, default=RequestStatus.INITIAL)

    # Optimistic concurrency token, bumped by every transition
    version = db.Column(db.Integer, nullable=False, default=1)

    # Payment: {"method", "reference_number", "account_name", "payment_date",
    #           "proof_url", "verified_by", "verified_date", "remarks"}
    payment_details = db.Column(db.JSON, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    # Lifecycle timestamps (each set once by its transition)
    request_date = db.Column(db.DateTime, default=utc_now, nullable=False)
    approval_date = db.Column(db.DateTime, nullable=True)
    payment_submitted_date = db.Column(db.DateTime, nullable=True)
    payment_verified_date = db.Column(db.DateTime, nullable=True)
    release_date = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    tenant = db.relationship('Tenant', backref=db.backref('document_requests', lazy='dynamic'))
    resident = db.relationship('User', backref=db.backref('document_requests', lazy='dynamic'))

    # Indexes
    __table_args__ = (
        UniqueConstraint('tenant_id', 'tracking_number', name='uq_doc_request_tenant_tracking'),
        CheckConstraint('amount >= 0', name='ck_doc_request_amount_non_negative'),
        Index('idx_doc_request_resident', 'resident_id'),
        Index('idx_doc_request_tenant_status', 'tenant_id', 'status'),
        Index('idx_doc_request_date', 'request_date'),
    )

    def __repr__(self):
        return f'<DocumentRequest {self.tracking_number}>'

    @property
    def is_free(self) -> bool:
        return float(self.amount or 0) == 0

    @property
    def is_terminal(self) -> bool:
        return self.status in RequestStatus.TERMINAL

    def to_dict(self, include_resident=False):
        """Convert document request to dictionary."""
        data = {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'resident_id': self.resident_id,
            'tracking_number': self.tracking_number,
            'document_type': self.document_type,
            'purpose': self.purpose,
            'amount': float(self.amount) if self.amount is not None else 0.0,
            'status': self.status,
            'version': self.version,
            'payment_details': dict(self.payment_details) if self.payment_details else None,
            'rejection_reason': self.rejection_reason,
            'request_date': isoformat_or_none(self.request_date),
            'approval_date': isoformat_or_none(self.approval_date),
            'payment_submitted_date': isoformat_or_none(self.payment_submitted_date),
            'payment_verified_date': isoformat_or_none(self.payment_verified_date),
            'release_date': isoformat_or_none(self.release_date),
            'updated_at': isoformat_or_none(self.updated_at),
        }

        if include_resident and self.resident:
            data['resident'] = self.resident.to_dict()

        return data

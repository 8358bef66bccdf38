"""
Barangay Document Requests - Database Models
Import all models here for Flask-Migrate to detect them
"""
from apps.barangay_api import db

# Base model will be imported by other models
Base = db.Model

# Import all models to register them with SQLAlchemy
from .tenant import Tenant
from .user import User
from .document import DocumentRequest, RequestStatus
from .audit import AuditLog

__all__ = [
    'Tenant',
    'User',
    'DocumentRequest',
    'RequestStatus',
    'AuditLog',
]

"""API Routes - Import all blueprints here."""

from .documents import documents_bp
from .admin import admin_bp
from .superadmin import superadmin_bp

__all__ = [
    'documents_bp',
    'admin_bp',
    'superadmin_bp',
]

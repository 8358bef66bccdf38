"""Audit trail helper.

Adds an AuditLog row to the current session; the caller commits it together
with the change it describes.
"""
from typing import Any, Dict, Optional

from apps.barangay_api import db
from apps.barangay_api.models.audit import AuditLog


def log_action(
    user_id: Optional[int],
    tenant_id: int,
    entity_type: str,
    entity_id: Optional[int],
    action: str,
    actor_role: Optional[str] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    notes: Optional[str] = None,
) -> AuditLog:
    """Stage an audit entry on the session and return it."""
    if not action:
        raise ValueError("action is required")

    entry = AuditLog(
        user_id=user_id,
        tenant_id=tenant_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_role=actor_role,
        old_values=old_values,
        new_values=new_values,
        notes=notes,
    )
    db.session.add(entry)
    return entry


def get_entity_history(entity_type: str, entity_id: int):
    """Return audit entries for one entity, oldest first."""
    return (
        AuditLog.query
        .filter_by(entity_type=entity_type, entity_id=entity_id)
        .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
        .all()
    )

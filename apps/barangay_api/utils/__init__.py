"""Utility functions for the API.

Only model-free helpers are re-exported here; models import ``utils.time``
through this package, so anything touching models is imported from its own
module.
"""

from .time import (
    utc_now,
    utc_today,
    isoformat_or_none,
    parse_iso_date,
)

from .security import (
    APIError,
    WorkflowError,
    NotFound,
    TenantMismatch,
    Forbidden,
    InvalidTransition,
    PreconditionFailed,
    ConcurrentModification,
    InvalidDocumentType,
    safe_error_response,
    workflow_error_response,
    error_400,
    error_500,
    is_allowed_image,
)

from .document_types import (
    DOCUMENT_TYPES,
    DEFAULT_PRICING,
    normalize_document_type,
)


__all__ = [
    # Time
    'utc_now',
    'utc_today',
    'isoformat_or_none',
    'parse_iso_date',
    # Errors
    'APIError',
    'WorkflowError',
    'NotFound',
    'TenantMismatch',
    'Forbidden',
    'InvalidTransition',
    'PreconditionFailed',
    'ConcurrentModification',
    'InvalidDocumentType',
    'safe_error_response',
    'workflow_error_response',
    'error_400',
    'error_500',
    'is_allowed_image',
    # Document catalogue
    'DOCUMENT_TYPES',
    'DEFAULT_PRICING',
    'normalize_document_type',
]

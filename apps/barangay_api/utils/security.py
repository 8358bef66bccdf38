"""Security and error utilities for the document request API.

This module provides:
- The typed workflow error taxonomy raised by the request engine
- Standardized error responses (safe for production)
- Content-type validation for payment proof uploads
"""
import logging
from typing import Optional, Set
from flask import jsonify, current_app, has_app_context


# =============================================================================
# Standardized Error Responses
# =============================================================================

class APIError(Exception):
    """Base exception for API errors with safe error messages."""

    def __init__(self, message: str, code: str = None, status_code: int = 500, details: str = None):
        super().__init__(message)
        self.message = message
        self.code = code or 'ERROR'
        self.status_code = status_code
        self.details = details  # Only shown in debug mode


# =============================================================================
# Workflow Errors
# =============================================================================

class WorkflowError(APIError):
    """A rejected request-lifecycle operation.

    Every subclass maps to one business reason so callers can explain the
    failure precisely. Only ConcurrentModification is retryable without
    changing the input.
    """

    code = 'WORKFLOW_ERROR'
    status_code = 400
    retryable = False

    def __init__(self, message: str, details: str = None):
        super().__init__(message, code=type(self).code, status_code=type(self).status_code, details=details)

    def to_dict(self):
        return {
            'error': self.message,
            'code': self.code,
            'retryable': self.retryable,
        }


class NotFound(WorkflowError):
    code = 'NOT_FOUND'
    status_code = 404


class TenantMismatch(WorkflowError):
    code = 'TENANT_MISMATCH'
    status_code = 403


class Forbidden(WorkflowError):
    code = 'FORBIDDEN'
    status_code = 403


class InvalidTransition(WorkflowError):
    code = 'INVALID_TRANSITION'
    status_code = 409


class PreconditionFailed(WorkflowError):
    code = 'PRECONDITION_FAILED'
    status_code = 422


class ConcurrentModification(WorkflowError):
    code = 'CONCURRENT_MODIFICATION'
    status_code = 409
    retryable = True


class InvalidDocumentType(WorkflowError):
    code = 'INVALID_DOCUMENT_TYPE'
    status_code = 400


def safe_error_response(
    message: str,
    exception: Optional[Exception] = None,
    status_code: int = 500,
    code: str = None,
    log_level: str = 'error'
) -> tuple:
    """
    Create a standardized, safe error response.

    In production only the safe message is returned and the full error is
    logged server-side. In debug mode exception details are included.

    Args:
        message: Safe error message for clients
        exception: The caught exception (optional)
        status_code: HTTP status code
        code: Optional error code for client parsing
        log_level: Logging level ('error', 'warning', 'info')

    Returns:
        Tuple of (response, status_code)
    """
    response = {'error': message}

    if code:
        response['code'] = code

    logger = current_app.logger if has_app_context() else logging.getLogger(__name__)
    log_message = f"{message}"
    if exception:
        log_message += f": {type(exception).__name__}: {exception}"

    log_func = getattr(logger, log_level, logger.error)
    log_func(log_message)

    # Only include details in debug mode
    if has_app_context() and current_app.config.get('DEBUG') and exception:
        response['details'] = str(exception)
        response['exception_type'] = type(exception).__name__

    return jsonify(response), status_code


def workflow_error_response(error: WorkflowError) -> tuple:
    """Render a WorkflowError as its JSON body and HTTP status."""
    logger = current_app.logger if has_app_context() else logging.getLogger(__name__)
    logger.info("Workflow operation rejected (%s): %s", error.code, error.message)
    return jsonify(error.to_dict()), error.status_code


def error_400(message: str = "Bad request", exception: Exception = None, code: str = None):
    """Bad request error."""
    return safe_error_response(message, exception, 400, code, 'warning')


def error_500(message: str = "Internal server error", exception: Exception = None, code: str = None):
    """Internal server error."""
    return safe_error_response(message, exception, 500, code, 'error')


# =============================================================================
# Payment Proof Content Types
# =============================================================================

ALLOWED_IMAGE_MIMES: Set[str] = {
    'image/jpeg',
    'image/jpg',
    'image/pjpeg',
    'image/png',
    'image/x-png',
    'image/gif',
    'image/webp',
    'image/heic',
    'image/heif',
}

IMAGE_EXTENSIONS = {
    'image/jpeg': 'jpg',
    'image/jpg': 'jpg',
    'image/pjpeg': 'jpg',
    'image/png': 'png',
    'image/x-png': 'png',
    'image/gif': 'gif',
    'image/webp': 'webp',
    'image/heic': 'heic',
    'image/heif': 'heif',
}


def normalize_content_type(content_type: Optional[str]) -> str:
    """Lowercase a content type and drop parameters (``; charset=...``)."""
    return (content_type or '').split(';', 1)[0].strip().lower()


def is_allowed_image(content_type: Optional[str]) -> bool:
    return normalize_content_type(content_type) in ALLOWED_IMAGE_MIMES

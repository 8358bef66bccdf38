"""
Payment proof storage.

Stores the image a resident uploads as proof of payment and returns a durable
reference that ``submit_payment`` records on the request.

- Supabase Storage (REST API via ``requests``) when SUPABASE_URL and
  SUPABASE_SERVICE_KEY are configured
- Local filesystem under UPLOAD_FOLDER otherwise (development, tests)

Only image content types are accepted. The size limit (MAX_PROOF_SIZE_MB) is
enforced by the upload route before calling ``store_proof``.
"""
from __future__ import annotations

import os
import uuid
import logging
from pathlib import Path
from typing import Optional, Tuple

import requests
from flask import current_app

from apps.barangay_api.utils.security import (
    IMAGE_EXTENSIONS,
    PreconditionFailed,
    is_allowed_image,
    normalize_content_type,
)
from apps.barangay_api.utils.time import utc_now

logger = logging.getLogger(__name__)

PROOF_CATEGORY = 'payment-proofs'
UPLOAD_TIMEOUT_SECONDS = 20


class ProofStorageError(Exception):
    """Raised when the storage backend fails to persist a proof."""
    pass


def _get_supabase_config() -> Optional[Tuple[str, str]]:
    """Return (url, service key) or None when Supabase is not configured."""
    supabase_url = current_app.config.get('SUPABASE_URL') or os.getenv('SUPABASE_URL')
    service_key = current_app.config.get('SUPABASE_SERVICE_KEY') or os.getenv('SUPABASE_SERVICE_KEY')
    if not supabase_url or not service_key:
        return None
    return supabase_url.rstrip('/'), service_key


def _get_bucket() -> str:
    return current_app.config.get('SUPABASE_PROOF_BUCKET') or PROOF_CATEGORY


def generate_proof_filename(content_type: str) -> str:
    """Unique filename with a timestamp and the extension for ``content_type``."""
    ext = IMAGE_EXTENSIONS.get(normalize_content_type(content_type), 'img')
    timestamp = utc_now().strftime('%Y%m%d_%H%M%S')
    unique_id = uuid.uuid4().hex[:8]
    return f"proof_{timestamp}_{unique_id}.{ext}"


def build_proof_path(filename: str, tenant_id: Optional[int] = None, request_id: Optional[int] = None) -> str:
    """
    Structured storage path.

    Structure: tenant_{id}/request_{id}/{filename}
    """
    parts = [f"tenant_{tenant_id}" if tenant_id is not None else 'unscoped']
    if request_id is not None:
        parts.append(f"request_{request_id}")
    parts.append(filename)
    return '/'.join(parts)


def _upload_to_supabase(data: bytes, storage_path: str, content_type: str, config: Tuple[str, str]) -> str:
    supabase_url, service_key = config
    bucket = _get_bucket()
    upload_url = f"{supabase_url}/storage/v1/object/{bucket}/{storage_path}"
    headers = {
        'Authorization': f'Bearer {service_key}',
        'apikey': service_key,
        'Content-Type': content_type,
    }

    try:
        response = requests.post(upload_url, headers=headers, data=data, timeout=UPLOAD_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        logger.error("Supabase proof upload failed for %s: %s", storage_path, e)
        raise ProofStorageError(f"Upload failed: {e}")

    if response.status_code not in (200, 201):
        logger.error(
            "Supabase proof upload rejected for %s: %s %s",
            storage_path, response.status_code, response.text[:200],
        )
        raise ProofStorageError(f"Upload failed: {response.status_code}")

    public_url = f"{supabase_url}/storage/v1/object/public/{bucket}/{storage_path}"
    logger.info("Payment proof uploaded to Supabase Storage: %s", storage_path)
    return public_url


def _save_to_filesystem(data: bytes, storage_path: str) -> str:
    upload_base_dir = Path(current_app.config.get('UPLOAD_FOLDER', 'uploads'))
    file_path = upload_base_dir / PROOF_CATEGORY / storage_path
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, 'wb') as f:
            f.write(data)
    except OSError as e:
        logger.error("Could not write payment proof %s: %s", file_path, e)
        raise ProofStorageError(f"Could not save file: {e}")

    relative_path = f"{PROOF_CATEGORY}/{storage_path}"
    logger.info("Payment proof saved to filesystem: %s", relative_path)
    return relative_path


def store_proof(
    data: bytes,
    content_type: str,
    tenant_id: Optional[int] = None,
    request_id: Optional[int] = None,
) -> str:
    """
    Persist a payment proof image and return its reference.

    Args:
        data: Raw image bytes
        content_type: MIME type reported by the client
        tenant_id: Owning tenant, used to scope the path
        request_id: Request the proof belongs to

    Returns:
        Public URL (Supabase) or path relative to UPLOAD_FOLDER (local)

    Raises:
        PreconditionFailed: Empty upload or non-image content type
        ProofStorageError: Backend failure
    """
    if not data:
        raise PreconditionFailed('Payment proof file is empty')
    if not is_allowed_image(content_type):
        raise PreconditionFailed('Payment proof must be an image (JPEG, PNG, GIF, WEBP or HEIC)')

    content_type = normalize_content_type(content_type)
    storage_path = build_proof_path(generate_proof_filename(content_type), tenant_id, request_id)

    config = _get_supabase_config()
    if config:
        return _upload_to_supabase(data, storage_path, content_type, config)

    if os.getenv('FLASK_ENV', 'development') == 'production':
        logger.warning("Supabase Storage not configured in production; saving proof locally")
    else:
        logger.debug("Supabase Storage not configured; saving proof locally")
    return _save_to_filesystem(data, storage_path)

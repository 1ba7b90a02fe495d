from __future__ import annotations

import logging
from pathlib import Path

import httpx

from gradebook.config import settings
from gradebook.core.errors import StorageError


logger = logging.getLogger(__name__)


_TIMEOUT_SECONDS = 60.0


def _clean_key(key: str) -> str:
    clean = (key or '').strip().lstrip('/')
    if not clean or '..' in Path(clean).parts:
        raise StorageError('Invalid storage key')
    return clean


def _public_url(key: str) -> str:
    return f"{settings.storage_public_base_url.rstrip('/')}/{key}"


def _put_local(key: str, data: bytes) -> None:
    target = Path(settings.storage_local_dir) / key
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    except OSError as exc:
        raise StorageError(f'Failed to write file: {exc}') from exc


def _put_http(key: str, data: bytes, mime_type: str) -> str:
    if not settings.storage_http_endpoint:
        raise StorageError('Object storage endpoint is not configured')
    headers = {'Content-Type': mime_type or 'application/octet-stream'}
    if settings.storage_http_token:
        headers['Authorization'] = f'Bearer {settings.storage_http_token}'
    url = f"{settings.storage_http_endpoint.rstrip('/')}/{key}"
    try:
        with httpx.Client(timeout=_TIMEOUT_SECONDS) as client:
            response = client.put(url, headers=headers, content=data)
    except httpx.HTTPError as exc:
        raise StorageError(f'Object storage upload failed: {exc}') from exc
    if response.status_code >= 300:
        raise StorageError(f'Object storage upload failed: {response.text[:300]}')
    try:
        body = response.json()
    except ValueError:
        body = {}
    return str(body.get('url') or _public_url(key)) if isinstance(body, dict) else _public_url(key)


def put(key: str, data: bytes, mime_type: str) -> dict:
    clean_key = _clean_key(key)
    if not data:
        raise StorageError('Cannot upload empty file')
    if settings.storage_backend == 'http':
        url = _put_http(clean_key, data, mime_type)
    else:
        _put_local(clean_key, data)
        url = _public_url(clean_key)
    logger.info('storage_put key=%s bytes=%s backend=%s', clean_key, len(data), settings.storage_backend)
    return {'key': clean_key, 'url': url}


def delete(key: str | None) -> None:
    """Removes a stored object. Failures are logged, never raised."""
    if not key:
        return
    try:
        clean_key = _clean_key(key)
    except StorageError:
        return
    if settings.storage_backend == 'http':
        if not settings.storage_http_endpoint:
            return
        headers = {}
        if settings.storage_http_token:
            headers['Authorization'] = f'Bearer {settings.storage_http_token}'
        try:
            with httpx.Client(timeout=_TIMEOUT_SECONDS) as client:
                response = client.delete(f"{settings.storage_http_endpoint.rstrip('/')}/{clean_key}", headers=headers)
            if response.status_code >= 300 and response.status_code != 404:
                logger.warning('storage_delete_failed key=%s status=%s', clean_key, response.status_code)
        except httpx.HTTPError as exc:
            logger.warning('storage_delete_failed key=%s error=%s', clean_key, exc)
        return
    target = Path(settings.storage_local_dir) / clean_key
    try:
        target.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning('storage_delete_failed key=%s error=%s', clean_key, exc)

from __future__ import annotations

import logging

import httpx

from gradebook.config import settings
from gradebook.core.errors import NarrativeUnavailableError


logger = logging.getLogger(__name__)


def is_configured() -> bool:
    return bool(settings.narrative_enabled and settings.narrative_api_key and settings.narrative_api_base)


def generate(prompt: str) -> str:
    """Sends one prompt to an OpenAI-compatible chat completions endpoint.

    Returns an empty string when generation is switched off. Any transport failure,
    timeout or unusable response raises NarrativeUnavailableError.
    """
    if not is_configured():
        return ''

    url = f"{settings.narrative_api_base.rstrip('/')}/chat/completions"
    payload = {
        'model': settings.narrative_model,
        'messages': [{'role': 'user', 'content': prompt}],
    }
    headers = {'Authorization': f'Bearer {settings.narrative_api_key}'}
    try:
        response = httpx.post(url, json=payload, headers=headers, timeout=settings.narrative_timeout_seconds)
    except httpx.TimeoutException as exc:
        raise NarrativeUnavailableError('Narrative generator timed out') from exc
    except httpx.HTTPError as exc:
        raise NarrativeUnavailableError(f'Narrative generator unreachable: {exc}') from exc

    if response.status_code >= 300:
        logger.warning('narrative_http_error status=%s', response.status_code)
        raise NarrativeUnavailableError(f'Narrative generator returned HTTP {response.status_code}')
    try:
        content = response.json()['choices'][0]['message']['content']
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise NarrativeUnavailableError('Narrative generator returned an unexpected response') from exc
    if isinstance(content, list):
        content = ''.join(str(part.get('text') or '') for part in content if isinstance(part, dict))
    return str(content or '').strip()

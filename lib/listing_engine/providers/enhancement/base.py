"""
Base Enhancement Provider
=========================
Abstract base class for the backends that apply an enhancement tool to an
image.

Every backend (Replicate FLUX, AutoEnhance, local Pillow) implements one
call: invoke(tool, image_ref, params) -> image_ref. Provider-specific
request and response shapes stay inside the adapter; the engine only sees
refs and the typed errors from errors.py.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

import requests

from ...errors import InvalidInput, ProviderTimeout, ProviderUnavailable, RateLimited
from ...models.enums import ProviderId, ToolId

logger = logging.getLogger(__name__)


class EnhancementStatus(Enum):
    """Standard job status values across all remote providers."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"


# HTTP status codes that mean the input itself was rejected
INVALID_INPUT_STATUSES = frozenset([400, 404, 413, 415, 422])


class BaseEnhancementProvider(ABC):
    """
    Abstract base class for enhancement backends.

    Typical use by the executor:
        provider = registry[route.provider]
        output_ref = provider.invoke(ToolId.SKY_REPLACEMENT, input_ref, {
            'preset': 'soft-blue',
            'pass': 'main',
            'strength': 1.0,
        })

    Common params keys:
        preset: Locked preset value for the tool's family
        pass: Pipeline step name ('main', 'base', 'window-glow', ...)
        strength: 0-1 transformation strength of the step
        timeout: Wall-clock budget for the call, in seconds
    """

    provider_id: ProviderId

    # Remote providers share the outbound rate limiter
    is_remote: bool = True

    @abstractmethod
    def invoke(self, tool: ToolId, image_ref: str, params: Dict[str, Any]) -> str:
        """
        Apply a tool to an image.

        Args:
            tool: Tool to apply
            image_ref: Opaque ref of the input image
            params: Step parameters (see class docstring)

        Returns:
            Ref of the output image

        Raises:
            RateLimited: Backend asked us to slow down
            ProviderUnavailable: Backend could not serve the call
            ProviderTimeout: Call exceeded its wall-clock budget
            InvalidInput: Backend rejected the image or parameters
        """
        pass

    @abstractmethod
    def get_provider_type(self) -> str:
        """
        Get provider type identifier.

        Returns:
            Provider type string (e.g., 'replicate', 'autoenhance')
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """
        Get human-readable provider name.

        Returns:
            Provider name (e.g., 'Replicate FLUX', 'AutoEnhance')
        """
        pass

    def supports(self, tool: ToolId) -> bool:
        """Whether this backend can run a tool. All tools by default."""
        return True

    def normalize_status(self, raw_status: str) -> EnhancementStatus:
        """
        Normalize provider-specific status to standard enum.

        Args:
            raw_status: Raw status from provider API

        Returns:
            Normalized EnhancementStatus
        """
        status_lower = (raw_status or "").lower()

        if status_lower in ('completed', 'done', 'success', 'succeeded', 'finished'):
            return EnhancementStatus.COMPLETED
        elif status_lower in ('failed', 'error', 'cancelled', 'canceled'):
            return EnhancementStatus.FAILED
        elif status_lower in ('in_progress', 'processing', 'running'):
            return EnhancementStatus.IN_PROGRESS
        elif status_lower in ('pending', 'queued', 'waiting', 'starting'):
            return EnhancementStatus.PENDING
        else:
            return EnhancementStatus.UNKNOWN


def http_request(
    session: requests.Session,
    method: str,
    url: str,
    provider: str,
    **kwargs,
) -> requests.Response:
    """
    Issue an HTTP request and translate failures into provider errors.

    Args:
        session: Session to send the request with
        method: HTTP method
        url: Target URL
        provider: Provider type, recorded on raised errors
        **kwargs: Passed through to session.request (timeout required)

    Returns:
        Successful response (status < 400)

    Raises:
        RateLimited, InvalidInput, ProviderUnavailable, ProviderTimeout
    """
    try:
        response = session.request(method, url, **kwargs)
    except requests.exceptions.Timeout as e:
        raise ProviderTimeout(f"{provider} request timed out: {e}", provider) from e
    except requests.exceptions.RequestException as e:
        raise ProviderUnavailable(f"{provider} request failed: {e}", provider) from e

    raise_for_provider_status(response, provider)
    return response


def http_json(
    session: requests.Session,
    method: str,
    url: str,
    provider: str,
    **kwargs,
) -> Dict[str, Any]:
    """
    http_request for endpoints answering with a JSON object.

    Raises:
        ProviderUnavailable: When the body is not a JSON object, plus
            everything http_request raises
    """
    response = http_request(session, method, url, provider, **kwargs)
    try:
        body = response.json()
    except ValueError as e:
        raise ProviderUnavailable(f"{provider} returned a non-JSON body: {e}", provider) from e
    if not isinstance(body, dict):
        raise ProviderUnavailable(
            f"{provider} returned a JSON {type(body).__name__}, expected an object", provider,
        )
    return body


def raise_for_provider_status(response: requests.Response, provider: str) -> None:
    """Map an HTTP error status onto the engine's error taxonomy."""
    status_code = response.status_code
    if status_code < 400:
        return

    detail = _error_detail(response)
    message = f"{provider} HTTP {status_code}: {detail}"

    if status_code == 429:
        raise RateLimited(message, provider, retry_after=_retry_after(response))
    if status_code in INVALID_INPUT_STATUSES:
        raise InvalidInput(message, provider)
    raise ProviderUnavailable(message, provider)


def _retry_after(response: requests.Response) -> Optional[float]:
    raw = response.headers.get('Retry-After')
    if not raw:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return (response.text or "")[:200]
    if isinstance(body, dict):
        for key in ('detail', 'error', 'message', 'title'):
            if body.get(key):
                return str(body[key])[:200]
    return str(body)[:200]

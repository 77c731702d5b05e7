"""
Image provider protocol and the HTTP plumbing shared by providers.

Providers turn an assembled generation request into a list of image
references (remote URLs or data URLs). Failures raise APIError for error
responses and NetworkError / RequestTimeoutError when no response arrived.
"""

import json
from collections.abc import Mapping
from typing import Any, Protocol

import requests

from huiben.core.models import ImageGenerationParams, ProviderEndpoint
from huiben.logging_config import get_logger
from huiben.utils.exceptions import APIError, NetworkError, RequestTimeoutError, ValidationError

logger = get_logger(__name__)

_DEBUG_TRUNCATE_THRESHOLD = 200
_DEBUG_NEVER_TRUNCATE_KEYS = frozenset({"text", "prompt", "message"})


class ImageProvider(Protocol):
    """Protocol for image generation providers."""

    name: str

    def generate(
        self,
        prompt: str,
        params: ImageGenerationParams,
        endpoint: ProviderEndpoint,
        images: list[str],
        timeout: float,
        *,
        debug: bool = False,
    ) -> list[str]:
        """Generate images; images are reference data URLs.

        May raise ValidationError, APIError, NetworkError or RequestTimeoutError.
        """
        ...

    def test_connection(self, endpoint: ProviderEndpoint, timeout: float) -> bool:
        """Return True when the endpoint answers; raise otherwise."""
        ...


def truncate_image_data_for_log(obj: Any, parent_key: str | None = None) -> Any:
    """Recursively replace long base64/data URL strings with placeholders for safe logging."""
    if isinstance(obj, dict):
        return {k: truncate_image_data_for_log(v, k) for k, v in obj.items()}
    if isinstance(obj, list):
        return [truncate_image_data_for_log(v, None) for v in obj]
    if isinstance(obj, str) and len(obj) >= _DEBUG_TRUNCATE_THRESHOLD:
        if parent_key in _DEBUG_NEVER_TRUNCATE_KEYS:
            return obj
        if obj.startswith("data:"):
            return f"<data URL, {len(obj)} chars>"
        return f"<string, {len(obj)} chars>"
    return obj


def require_endpoint(endpoint: ProviderEndpoint, provider: str) -> None:
    if not endpoint.base_url:
        raise ValidationError(f"No base URL configured for {provider}", field="base_url")
    if not endpoint.api_key:
        raise ValidationError(f"No API key configured for {provider}", field="api_key")


def raise_for_status(response: requests.Response, provider: str, model: str) -> None:
    """Map a non-200 response onto APIError."""
    status = response.status_code
    if status == 200:
        return
    if status == 401:
        raise APIError(
            f"Authentication failed. Please check your {provider} API key.",
            status_code=401,
            response=response.text,
        )
    if status == 404:
        raise APIError(
            f"Model not found or endpoint unavailable: {model}",
            status_code=404,
            response=response.text,
        )
    if status == 429:
        raise APIError(
            "Rate limit exceeded. Please wait before making more requests.",
            status_code=429,
            response=response.text,
        )
    if status >= 500:
        raise APIError(
            f"{provider} service error: {status}", status_code=status, response=response.text
        )
    raise APIError(
        f"API request failed with status {status}: {response.text}",
        status_code=status,
        response=response.text,
    )


def post_json(
    url: str,
    payload: dict[str, Any],
    *,
    provider: str,
    model: str,
    timeout: float,
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, str] | None = None,
    debug: bool = False,
) -> Any:
    """POST payload and return the decoded JSON body of a 200 response."""
    logger.debug("API request provider=%s url=%s timeout=%s", provider, url, timeout)
    if debug:
        logger.info(
            "API request payload (image data truncated): %s",
            json.dumps(truncate_image_data_for_log(payload), indent=2, ensure_ascii=False),
        )
    try:
        response = requests.post(
            url,
            headers={"Content-Type": "application/json", **(headers or {})},
            params=dict(params or {}),
            json=payload,
            timeout=timeout,
        )
    except requests.exceptions.Timeout as e:
        raise RequestTimeoutError(
            f"Request to {provider} timed out after {timeout} seconds. "
            "The generation may be taking longer than expected.",
            original_error=e,
        ) from e
    except requests.exceptions.ConnectionError as e:
        raise NetworkError(
            f"Failed to connect to {provider}. Please check the base URL and your connection.",
            original_error=e,
        ) from e
    except requests.exceptions.RequestException as e:
        raise NetworkError(f"Network error during API request: {e}", original_error=e) from e

    logger.debug("API response provider=%s status=%s", provider, response.status_code)
    raise_for_status(response, provider, model)
    try:
        result = response.json()
    except ValueError as e:
        raise APIError(
            f"Failed to parse API response as JSON: {e}", response=response.text
        ) from e
    if debug:
        logger.info(
            "API response (image data truncated): %s",
            json.dumps(truncate_image_data_for_log(result), indent=2, ensure_ascii=False),
        )
    return result


def check_models_endpoint(endpoint: ProviderEndpoint, provider: str, timeout: float) -> bool:
    """
    GET <base>/v1/models with the bearer key.

    A 200 or a 401 both prove the endpoint is there; anything else raises.
    """
    require_endpoint(endpoint, provider)
    url = f"{endpoint.base_url.rstrip('/')}/v1/models"
    try:
        response = requests.get(
            url, headers={"Authorization": f"Bearer {endpoint.api_key}"}, timeout=timeout
        )
    except requests.exceptions.Timeout as e:
        raise RequestTimeoutError(
            f"Connection test for {provider} timed out after {timeout} seconds",
            original_error=e,
        ) from e
    except requests.exceptions.RequestException as e:
        raise NetworkError(f"Failed to connect to {provider}: {e}", original_error=e) from e
    if response.ok or response.status_code == 401:
        return True
    raise APIError(
        f"{provider} answered {response.status_code}",
        status_code=response.status_code,
        response=response.text,
    )

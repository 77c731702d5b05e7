"""
HTTP transport.

Talks JSON to the networked server: GET when there is no body, POST with a
JSON body otherwise. Error responses and requests that never got a response
are mapped onto TransportError and NetworkError.
"""

import json
from collections.abc import Mapping
from typing import Any

import requests

from huiben.logging_config import get_logger
from huiben.utils.exceptions import NetworkError, RequestTimeoutError, TransportError

logger = get_logger(__name__)

_ERROR_BODY_LOG_MAX = 2000


def _error_body(response: requests.Response) -> str:
    """Return the error body as compact JSON when it parses, else as raw text."""
    try:
        return json.dumps(response.json(), ensure_ascii=False)
    except ValueError:
        return response.text


class HttpTransport:
    """Transport for the networked server."""

    def __init__(self, base_url: str, timeout: float = 30) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def available(self) -> bool:
        return bool(self.base_url)

    def url_for(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def call(
        self,
        operation: str,
        native_args: Mapping[str, Any],
        http_endpoint: str,
        http_body: Any | None,
        timeout: float | None,
    ) -> Any:
        """Issue the request for operation and return the decoded JSON body."""
        url = self.url_for(http_endpoint)
        timeout = timeout if timeout is not None else self.timeout
        method = "GET" if http_body is None else "POST"
        logger.debug("HTTP %s %s operation=%s timeout=%s", method, url, operation, timeout)
        try:
            if http_body is None:
                response = requests.get(
                    url, headers={"Accept": "application/json"}, timeout=timeout
                )
            else:
                response = requests.post(
                    url,
                    headers={"Accept": "application/json", "Content-Type": "application/json"},
                    json=http_body,
                    timeout=timeout,
                )
        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(
                f"API error: Network error - {operation} timed out after {timeout} seconds",
                original_error=e,
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(f"API error: Network error - {e}", original_error=e) from e

        logger.debug("HTTP %s %s status=%s", method, url, response.status_code)
        if response.status_code >= 400:
            body = _error_body(response)
            logger.debug("HTTP error body: %s", body[:_ERROR_BODY_LOG_MAX])
            raise TransportError(
                f"API error: {response.status_code} - {body}",
                status_code=response.status_code,
                response=response.text,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                f"API error: invalid JSON in response to {operation}: {e}",
                status_code=response.status_code,
                response=response.text,
            ) from e

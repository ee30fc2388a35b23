"""
HTTP transport shared by the REST gateways.

Idempotent GETs are retried with exponential backoff on connection errors
and 5xx responses; writes are sent once. Every ``requests`` failure is
re-raised as ``TransportFailure`` with credentials redacted.
"""

import logging
from typing import Any, Dict, Optional

import requests

from ..constants import DEFAULT_HTTP_TIMEOUT_SECONDS
from ..exceptions import (
    AlreadyExistsError,
    NotFoundError,
    RejectedError,
    TransportFailure,
)
from ..retry import HTTP_RETRY, RETRYABLE_STATUS, RetryConfig, RetryableError
from ..security import sanitize_error

logger = logging.getLogger(__name__)

REJECTED_STATUS = {400, 401, 403, 405, 409, 422}


def error_message(response: requests.Response) -> str:
    """Extract a short error message from a JSON or text response body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:300]

    if isinstance(body, dict):
        parts = []
        if body.get("message"):
            parts.append(str(body["message"]))
        errors = body.get("errors")
        if isinstance(errors, list):
            for item in errors:
                if isinstance(item, dict) and item.get("message"):
                    parts.append(str(item["message"]))
                elif isinstance(item, str):
                    parts.append(item)
        # Jira: {"errorMessages": [...], "errors": {"field": "msg"}}
        elif isinstance(errors, dict):
            parts.extend(f"{k}: {v}" for k, v in errors.items())
        for item in body.get("errorMessages") or []:
            parts.append(str(item))
        if parts:
            return "; ".join(parts)
    return str(body)[:300]


def raise_for_status(response: requests.Response, action: str) -> None:
    """
    Raise the ``GatewayError`` matching a non-2xx response.

    Raises:
        NotFoundError: 404
        AlreadyExistsError: 422/409 whose message says the resource exists
        RejectedError: other client errors
        TransportFailure: anything else
    """
    status = response.status_code
    if 200 <= status < 300:
        return

    message = sanitize_error(error_message(response))
    detail = f"{action} returned HTTP {status}: {message}"

    if status == 404:
        raise NotFoundError(detail)
    if status in (409, 422) and "already exists" in message.lower():
        raise AlreadyExistsError(detail)
    if status in REJECTED_STATUS:
        raise RejectedError(detail)
    raise TransportFailure(detail)


class HttpTransport:
    """
    Thin wrapper around ``requests.Session`` bound to one base URL.

    Args:
        base_url: API root, e.g. ``https://api.github.com``
        headers: Default headers for every request
        auth: Optional ``requests`` auth object or (user, password) tuple
        timeout: Per-request timeout in seconds
        retry: Retry policy for GET requests
        session: Pre-built session (tests)
    """

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        auth: Any = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        retry: RetryConfig = HTTP_RETRY,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if headers:
            self.session.headers.update(headers)
        if auth is not None:
            self.session.auth = auth

        self._get_with_retry = retry.wrap(self._send_get)

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _send_get(self, url: str, params: Optional[Dict[str, Any]]) -> requests.Response:
        response = self.session.get(url, params=params, timeout=self.timeout)
        if response.status_code in RETRYABLE_STATUS:
            raise RetryableError(f"GET {url} returned HTTP {response.status_code}")
        return response

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """GET with retry. Raises TransportFailure when all attempts fail."""
        try:
            return self._get_with_retry(self.url(path), params)
        except (requests.RequestException, RetryableError) as e:
            raise TransportFailure(f"GET {path} failed: {sanitize_error(e)}") from e

    def send(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Non-idempotent request, sent exactly once."""
        try:
            return self.session.request(method, self.url(path), json=json, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportFailure(f"{method} {path} failed: {sanitize_error(e)}") from e

    @staticmethod
    def json(response: requests.Response, action: str) -> Any:
        """Decode a JSON body or raise TransportFailure."""
        try:
            return response.json()
        except ValueError as e:
            raise TransportFailure(f"{action} returned a non-JSON body") from e

    def close(self) -> None:
        self.session.close()

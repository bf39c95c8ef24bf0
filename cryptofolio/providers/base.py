"""Shared HTTP plumbing for external data providers."""

import logging
from typing import Any, Optional

import requests

from cryptofolio.errors import ExternalServiceError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class HttpProvider:
    """Base class for API-key authenticated JSON providers.

    Subclasses set ``name``, ``base_url`` and ``api_key_header`` and may
    override ``_extract_error`` to pull the provider's own error message
    out of a response body. Calls are never retried.
    """

    name = "provider"
    base_url = ""
    api_key_header = "X-API-Key"

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        base_url: Optional[str] = None,
    ):
        """Initialize the provider client.

        Args:
            api_key: Provider API key, sent on every request.
            session: Optional requests session. A new one is created if omitted.
            timeout: Per-request timeout in seconds.
            base_url: Override the provider base URL.
        """
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = (base_url or self.base_url).rstrip("/")
        self._session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        return {
            self.api_key_header: self.api_key,
            "Accept": "application/json",
        }

    def _extract_error(self, payload: Any) -> Optional[str]:
        """Return the provider's error message from a response body, if any."""
        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error")
            if isinstance(message, str):
                return message
        return None

    def _get(self, path: str, params: Optional[dict] = None, base_url: Optional[str] = None) -> Any:
        """Perform a GET request and return the decoded JSON body.

        Raises:
            ExternalServiceError: On transport errors, non-2xx responses or
                undecodable bodies.
        """
        url = f"{(base_url or self.base_url).rstrip('/')}/{path.lstrip('/')}"
        logger.debug("GET %s params=%s", url, params)

        try:
            response = self._session.get(
                url, headers=self._headers(), params=params, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise ExternalServiceError(self.name, f"request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.ok:
            provider_message = self._extract_error(payload)
            if response.status_code == 429:
                reason = "rate limit exceeded"
            else:
                reason = f"HTTP {response.status_code}"
            raise ExternalServiceError(
                self.name,
                provider_message or reason,
                provider_message=provider_message,
                status_code=response.status_code,
            )

        if payload is None:
            raise ExternalServiceError(
                self.name, "response body is not valid JSON", status_code=response.status_code
            )
        return payload

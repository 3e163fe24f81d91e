"""Synchronous HTTP transport for the Econt JSON services.

This module provides :class:`Transport`, the blocking HTTP layer shared by
every service namespace and by :class:`~econt.cache.ApiFetcher`.  It wraps
:class:`httpx.Client` and layers on:

- **Basic auth** -- the configured username/password is sent with every
  request.
- **Retry with backoff** -- retries on 5xx and network errors with
  exponential delay (1 s, 2 s, 4 s, ...).
- **Error mapping** -- HTTP failures become typed
  :class:`~econt.exceptions.SourceUnavailableError` subclasses, with the
  Econt error body (``message`` plus ``innerErrors``) folded into the
  exception message.

Every Econt operation is a ``POST`` of a JSON object to
``<base_url>/<Service>/<Method>.json``.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import httpx

from econt.exceptions import (
    ApiError,
    AuthError,
    ConnectionError_,
    NotFoundError,
    ServerError,
)
from econt.models import ClientConfig
from econt.output import get_output


class Transport:
    """HTTP transport bound to one :class:`~econt.models.ClientConfig`.

    Args:
        config: Client configuration (base URL, credentials, request settings).
        http_client: Pre-built :class:`httpx.Client`.  Tests pass one backed
            by :class:`httpx.MockTransport`; when ``None`` a client is
            created from *config*.

    Example::

        with Transport(config) as transport:
            data = transport.post("Nomenclatures/NomenclaturesService.getCountries.json")
    """

    def __init__(
        self,
        config: ClientConfig,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._config = config
        self._owns_client = http_client is None
        self._client: Optional[httpx.Client] = http_client or self._build_client()

    def _build_client(self) -> httpx.Client:
        request = self._config.request
        auth = None
        if self._config.username:
            auth = httpx.BasicAuth(self._config.username, self._config.password or "")
        return httpx.Client(
            base_url=self._config.resolved_base_url(),
            timeout=request.timeout,
            verify=request.verify_ssl,
            auth=auth,
            follow_redirects=True,
        )

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._client is not None and self._owns_client:
            self._client.close()
        self._client = None

    # ------------------------------------------------------------------ #
    # Public request method
    # ------------------------------------------------------------------ #

    def post(
        self,
        endpoint: str,
        payload: Optional[dict[str, Any]] = None,
        retry: bool = True,
    ) -> dict[str, Any]:
        """POST *payload* to an Econt service method and return the decoded body.

        Args:
            endpoint: Path relative to the base URL, e.g.
                ``"Nomenclatures/NomenclaturesService.getCities.json"``.
            payload: JSON request object.  ``{}`` when omitted.
            retry: Retry on 5xx and connection errors.  Pass ``False`` for
                calls that must not run twice, such as creating a shipment.

        Returns:
            The decoded JSON object (an empty dict for an empty body).

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ApiError: On other 4xx responses.
            ServerError: On 5xx after all retries are exhausted, or when the
                body is not JSON.
            ConnectionError_: On network / timeout errors after all retries.
        """
        response = self._execute_with_retry(endpoint, payload or {}, retry)
        self._map_response_error(response)

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as exc:
            raise ServerError(f"Invalid JSON from {endpoint}: {exc}") from exc
        if not isinstance(data, dict):
            raise ServerError(f"Unexpected response shape from {endpoint}")
        return data

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _execute_with_retry(
        self, endpoint: str, payload: dict[str, Any], retry: bool = True
    ) -> httpx.Response:
        """Execute the request with exponential-backoff retry.

        Retries on 5xx status codes and connection / timeout errors up to
        ``max_retries`` times.  The delay doubles each attempt: 1 s, 2 s, 4 s, ...
        With *retry* off the request is sent exactly once.
        """
        assert self._client is not None, "Transport is closed"

        max_retries = self._config.request.max_retries if retry else 0
        output = get_output()

        for attempt in range(max_retries + 1):
            try:
                response = self._client.post(
                    f"/{endpoint.lstrip('/')}",
                    json=payload,
                    headers={"Accept": "application/json"},
                )
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    output.debug(
                        f"Connection error: {exc}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                ) from exc

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2 ** attempt
                output.debug(
                    f"Server error {response.status_code}, retrying in {delay}s "
                    f"(attempt {attempt + 1}/{max_retries})"
                )
                time.sleep(delay)
                continue

            return response

        raise ServerError("Request failed after all retries")  # pragma: no cover

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        msg = _error_message(response)
        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"

        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        if status >= 500:
            raise ServerError(full_msg)
        raise ApiError(full_msg)


def _error_message(response: httpx.Response) -> str:
    """Extract a readable message from an Econt error body.

    Econt reports failures as ``{"type": ..., "message": ..., "innerErrors":
    [...]}``; nested messages are appended after the top-level one.
    """
    try:
        detail = response.json()
    except ValueError:
        return response.text[:200] if response.text else ""

    if not isinstance(detail, dict):
        return str(detail)

    parts: list[str] = []
    message = detail.get("message") or detail.get("error") or ""
    if message:
        parts.append(str(message))
    for inner in detail.get("innerErrors") or []:
        if isinstance(inner, dict) and inner.get("message"):
            parts.append(str(inner["message"]))
    return "; ".join(parts)

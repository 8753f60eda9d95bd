"""HTTP client for the Velixar memory API."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from velixar_mcp.config import REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

ERROR_BODY_LIMIT = 200


class VelixarAPIError(Exception):
    """Any failure talking to the memory API.

    Covers timeouts, transport errors, non-2xx responses, error fields in
    decoded bodies and malformed responses.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class VelixarClient:
    """Authenticated, timeout-bounded access to the memory API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_url = api_url
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._api_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def request(
        self,
        path: str,
        method: str = "GET",
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Issue one API call and return the decoded JSON body.

        Raises:
            VelixarAPIError: On timeout, transport failure, non-2xx status
                or an undecodable body. No retries are attempted.
        """
        request_headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            **(headers or {}),
        }
        content = json.dumps(json_body) if json_body is not None else None

        logger.debug("%s %s params=%s", method, path, params)
        try:
            response = await self.client.request(
                method,
                path,
                params=params,
                content=content,
                headers=request_headers,
            )
        except httpx.TimeoutException as e:
            raise VelixarAPIError(f"API timeout after {int(self._timeout * 1000)}ms") from e
        except httpx.HTTPError as e:
            raise VelixarAPIError(f"API request failed: {e}") from e

        if not response.is_success:
            body = response.text[:ERROR_BODY_LIMIT]
            raise VelixarAPIError(
                f"API {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:  # JSONDecodeError or UnicodeDecodeError
            raise VelixarAPIError(
                f"API returned invalid JSON: {e}",
                status_code=response.status_code,
            ) from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

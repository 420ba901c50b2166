"""Shared REST client for the task system's incoming webhook endpoint."""

import logging
from typing import Any, Optional

import httpx

from ..errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


class UpstreamClient:
    """Calls REST methods under the decrypted webhook base endpoint.

    Every method is invoked as `POST {endpoint}/{method}` with its arguments
    in the query string and an optional JSON body. Transport failures, 5xx
    responses and non-JSON bodies surface as UpstreamUnavailable. Error
    payloads on 2xx/4xx responses are returned to the caller, which decides
    what they mean for its operation.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def call(
        self,
        method: str,
        params: Any = None,
        json: Optional[dict] = None,
        task_id: Optional[int] = None,
    ) -> dict:
        """Invoke a REST method and return the decoded JSON body.

        Raises:
            UpstreamUnavailable: On transport failure, 5xx or non-JSON body
        """
        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.endpoint}/{method}", params=params, json=json
            )
        except httpx.RequestError as e:
            raise UpstreamUnavailable(
                f"Connection error: {e}", operation=method, task_id=task_id
            ) from e

        if response.status_code >= 500:
            raise UpstreamUnavailable(
                f"Upstream error: {response.status_code}",
                operation=method,
                task_id=task_id,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamUnavailable(
                f"Invalid JSON from upstream (HTTP {response.status_code})",
                operation=method,
                task_id=task_id,
            ) from e

        if not isinstance(data, dict):
            raise UpstreamUnavailable(
                "Unexpected response shape from upstream",
                operation=method,
                task_id=task_id,
            )
        return data


def error_description(data: dict) -> Optional[str]:
    """Return the upstream error description, or None if the call succeeded."""
    if not data.get("error"):
        return None
    return str(data.get("error_description") or data["error"])

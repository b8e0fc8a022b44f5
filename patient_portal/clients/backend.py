from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from patient_portal.services.exceptions import DownstreamServiceError, SlotConflictError

logger = logging.getLogger(__name__)


class PortalBackendClient:
    """Async HTTP client responsible for communicating with the portal backend.

    Every backend response is wrapped in a ``{"success", "message", "data"}``
    envelope; :meth:`get` and :meth:`post` return the unwrapped ``data``.
    """

    def __init__(
        self,
        base_url: str | None,
        *,
        timeout: float = 10.0,
        use_mock_data: bool = True,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = str(base_url).rstrip("/") if base_url else None
        self._timeout = timeout
        self.use_mock_data = use_mock_data or not self._base_url
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        if not self.use_mock_data and self._base_url:
            self._client = self._build_client()

    def _build_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self.use_mock_data or not self._base_url:
            raise RuntimeError("HTTP client requested while running in mock mode")
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def post(self, path: str, payload: Dict[str, Any]) -> Any:
        if self.use_mock_data:
            raise RuntimeError("Real HTTP call requested while mock mode is enabled")
        client = await self._ensure_client()
        return await self._send(client.post(path, json=payload), path)

    async def get(self, path: str, params: Dict[str, Any] | None = None) -> Any:
        if self.use_mock_data:
            raise RuntimeError("Real HTTP call requested while mock mode is enabled")
        client = await self._ensure_client()
        if params:
            params = {key: value for key, value in params.items() if value is not None}
        return await self._send(client.get(path, params=params), path)

    async def _send(self, request, path: str) -> Any:
        try:
            response = await request
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            message = _error_message(exc.response) or "Portal backend returned an error response"
            if status_code == 409:
                logger.warning("Portal backend reported a slot conflict on %s: %s", path, message)
                raise SlotConflictError(message, cause=exc) from exc
            logger.exception("Portal backend returned error %s for %s", status_code, path)
            raise DownstreamServiceError(message, status_code=status_code, cause=exc) from exc
        except httpx.RequestError as exc:
            logger.exception("Unable to reach portal backend: %s", exc)
            raise DownstreamServiceError(
                "Unable to reach portal backend", status_code=None, cause=exc
            ) from exc
        except ValueError as exc:
            logger.exception("Portal backend returned a non-JSON body for %s", path)
            raise DownstreamServiceError(
                "Portal backend returned an invalid response",
                status_code=response.status_code,
                cause=exc,
            ) from exc

        return _unwrap(payload, path, response.status_code)

    async def simulate_latency(self) -> None:
        """Allow services to await for latency even when mocking responses."""

        await asyncio.sleep(0)


def _error_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        return str(message) if message else None
    return None


def _unwrap(payload: Any, path: str, status_code: int) -> Any:
    if not isinstance(payload, dict) or "success" not in payload:
        return payload
    if not payload.get("success"):
        message = payload.get("message") or "Portal backend rejected the request"
        logger.error("Portal backend rejected %s: %s", path, message)
        raise DownstreamServiceError(str(message), status_code=status_code)
    return payload.get("data")

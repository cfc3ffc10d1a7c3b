"""
Storefront -> payment API over HTTP (BACKEND_URL), the same calls a browser frontend makes.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from app.config import Settings

GENERIC_FAILURE = "Payment failed. Please try again."


class BackendError(Exception):
    """API call failed. The message is the API's `error` field when it sent one."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return GENERIC_FAILURE
    if isinstance(body, dict):
        return body.get("error") or body.get("message") or GENERIC_FAILURE
    return GENERIC_FAILURE


class BackendClient:
    def __init__(self, settings: Settings, logger: Optional[logging.Logger] = None) -> None:
        self._settings = settings
        self._logger = logger or logging.getLogger(__name__)

    @property
    def payment_url(self) -> str:
        return f"{self._settings.backend_url.rstrip('/')}{self._settings.api_prefix}/payment"

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._settings.backend_request_timeout) as client:
                resp = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            self._logger.error("backend_request_failed", extra={"url": url, "error": str(e)})
            raise BackendError(GENERIC_FAILURE) from e
        if resp.status_code < 200 or resp.status_code >= 300:
            message = _error_message(resp)
            self._logger.warning(
                "backend_error_response",
                extra={"url": url, "status_code": resp.status_code, "error": message},
            )
            raise BackendError(message, resp.status_code)
        try:
            body = resp.json()
        except ValueError as e:
            raise BackendError(GENERIC_FAILURE, resp.status_code) from e
        if not isinstance(body, dict):
            raise BackendError(GENERIC_FAILURE, resp.status_code)
        return body

    async def initiate(self, plan: str, payment_mode: Optional[str] = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"plan": plan}
        if payment_mode:
            payload["paymentMode"] = payment_mode
        return await self._request("POST", f"{self.payment_url}/initiate", json=payload)

    async def status(self, order_id: str) -> dict[str, Any]:
        return await self._request("GET", f"{self.payment_url}/status/{order_id}")

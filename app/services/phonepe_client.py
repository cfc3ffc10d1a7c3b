"""
Gateway integration: OAuth client-credentials token, payment creation (Checkout v2),
checkout URL derivation, order status.
Every failure is logged with its details and re-raised as an opaque GatewayError.
"""
from __future__ import annotations

import logging
import math
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

import httpx
from prometheus_client import Counter

from app.config import Settings
from app.schemas.plan import DEFAULT_PAYMENT_MODE, PaymentMode

TOKEN_FAILED = "Failed to get access token"
PAYMENT_FAILED = "Payment initiation failed"
STATUS_FAILED = "Failed to check payment status"

# Path segment present on API-host URLs; hosted checkout pages never carry it
API_PATH_SEGMENT = "/apis/"
SANDBOX_CHECKOUT_HOST = "checkout-preprod.phonepe.com"
PRODUCTION_CHECKOUT_HOST = "checkout.phonepe.com"

PLACEHOLDER_MOBILE_NUMBER = "9999999999"

GATEWAY_REQUESTS = Counter(
    "gateway_requests_total", "Outbound gateway operations", ["operation", "outcome"]
)


class GatewayError(Exception):
    """Upstream failure. The message is generic; details only go to the logs."""


def to_paise(amount: Any) -> int:
    """
    Convert a rupee amount to paise.
    Raises ValueError for missing, boolean, non-numeric, non-finite or non-positive amounts.
    """
    if amount is None or isinstance(amount, bool):
        raise ValueError(f"Invalid amount: {amount!r}")
    if isinstance(amount, float) and not math.isfinite(amount):
        raise ValueError(f"Invalid amount: {amount!r}")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite() or value <= 0:
        raise ValueError(f"Invalid amount: {amount!r}")
    return int((value * 100).to_integral_value())


def payment_instrument(payment_mode: Optional[str]) -> dict[str, str]:
    """Gateway instrument for a payment mode. Only UPI intent differs from the hosted page."""
    if payment_mode == PaymentMode.UPI_INTENT.value:
        return {"type": PaymentMode.UPI_INTENT.value}
    return {"type": PaymentMode.PAY_PAGE.value}


def _read_json(resp: httpx.Response) -> dict[str, Any]:
    body = resp.json()
    if not isinstance(body, dict):
        raise ValueError(f"Unexpected gateway body type: {type(body).__name__}")
    return body


class PhonePeClient:
    """Thin async client over the gateway REST API. A new token is fetched per operation."""

    def __init__(
        self,
        settings: Settings,
        logger: Optional[logging.Logger] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._settings = settings
        self._logger = logger or logging.getLogger(__name__)
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    @property
    def base_url(self) -> str:
        return self._settings.phonepe_base_url.rstrip("/")

    @property
    def is_sandbox(self) -> bool:
        base = self._settings.phonepe_base_url.lower()
        return "preprod" in base or "sandbox" in base

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._settings.gateway_request_timeout)

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"O-Bearer {token}"}

    def _log_failure(self, event: str, exc: Exception, **extra: Any) -> None:
        if isinstance(exc, httpx.HTTPStatusError):
            extra["status_code"] = exc.response.status_code
            extra["gateway_response"] = exc.response.text
        self._logger.error(event, extra={"error": str(exc), **extra})

    async def acquire_token(self) -> str:
        url = f"{self.base_url}/v1/oauth/token"
        form = {
            "client_id": self._settings.phonepe_client_id,
            "client_secret": self._settings.phonepe_client_secret,
            "client_version": self._settings.phonepe_client_version,
            "grant_type": "client_credentials",
        }
        try:
            async with self._http() as client:
                resp = await client.post(url, data=form)
                resp.raise_for_status()
                body = _read_json(resp)
            token = body.get("access_token")
            if not token:
                raise ValueError("Token response has no access_token")
        except (httpx.HTTPError, ValueError) as e:
            GATEWAY_REQUESTS.labels(operation="token", outcome="error").inc()
            self._log_failure("gateway_token_failed", e, url=url)
            raise GatewayError(TOKEN_FAILED) from e
        GATEWAY_REQUESTS.labels(operation="token", outcome="ok").inc()
        self._logger.info("gateway_token_received")
        return token

    def build_payload(self, amount_paise: int, payment_mode: str) -> dict[str, Any]:
        return {
            "merchantId": self._settings.phonepe_merchant_id,
            "merchantOrderId": f"ORD_{self._id_factory()}",
            "merchantUserId": f"USER_{self._id_factory()}",
            "amount": amount_paise,
            "redirectUrl": self._settings.redirect_url,
            "redirectMode": "GET",
            "callbackUrl": self._settings.callback_url,
            "mobileNumber": PLACEHOLDER_MOBILE_NUMBER,
            "paymentInstrument": payment_instrument(payment_mode),
        }

    def build_checkout_url(self, order_id: str, redirect_url: Optional[str]) -> str:
        """
        Hosted checkout URL for an order. The gateway's redirectUrl is used as-is unless it
        points at the API host, in which case the URL is built on the checkout domain.
        """
        if redirect_url and API_PATH_SEGMENT not in redirect_url:
            return redirect_url
        host = SANDBOX_CHECKOUT_HOST if self.is_sandbox else PRODUCTION_CHECKOUT_HOST
        return f"https://{host}/v2/pay?orderId={order_id}"

    async def create_payment(
        self,
        plan: str,
        amount: Any,
        payment_mode: Optional[str] = DEFAULT_PAYMENT_MODE.value,
    ) -> dict[str, Any]:
        """
        Create a gateway order for `amount` rupees.
        Returns the gateway body plus checkoutUrl and orderId. Raises GatewayError.
        """
        mode = payment_mode or DEFAULT_PAYMENT_MODE.value
        try:
            amount_paise = to_paise(amount)
        except ValueError as e:
            GATEWAY_REQUESTS.labels(operation="create_payment", outcome="rejected").inc()
            self._logger.warning("invalid_amount", extra={"plan": plan, "error": str(e)})
            raise GatewayError(PAYMENT_FAILED) from e

        url = f"{self.base_url}/checkout/v2/pay"
        try:
            token = await self.acquire_token()
            payload = self.build_payload(amount_paise, mode)
            self._logger.info(
                "payment_request",
                extra={"plan": plan, "payment_mode": mode, "order_id": payload["merchantOrderId"]},
            )
            async with self._http() as client:
                resp = await client.post(url, json=payload, headers=self._auth_headers(token))
                resp.raise_for_status()
                body = _read_json(resp)
            order_id = body.get("orderId")
            if not order_id:
                raise ValueError("Gateway response has no orderId")
        except (GatewayError, httpx.HTTPError, ValueError) as e:
            GATEWAY_REQUESTS.labels(operation="create_payment", outcome="error").inc()
            self._log_failure("payment_request_failed", e, url=url, plan=plan, payment_mode=mode)
            raise GatewayError(PAYMENT_FAILED) from e

        checkout_url = self.build_checkout_url(order_id, body.get("redirectUrl"))
        GATEWAY_REQUESTS.labels(operation="create_payment", outcome="ok").inc()
        self._logger.info(
            "payment_created",
            extra={"order_id": order_id, "gateway_response": body, "url": checkout_url},
        )
        result = dict(body)
        result.setdefault("merchantOrderId", payload["merchantOrderId"])
        result["checkoutUrl"] = checkout_url
        result["orderId"] = order_id
        return result

    async def get_status(self, order_id: str) -> dict[str, Any]:
        """Raw gateway status payload for an order. Raises GatewayError."""
        url = f"{self.base_url}/checkout/v2/order/{order_id}/status"
        try:
            token = await self.acquire_token()
            async with self._http() as client:
                resp = await client.get(url, headers=self._auth_headers(token))
                resp.raise_for_status()
                body = _read_json(resp)
        except (GatewayError, httpx.HTTPError, ValueError) as e:
            GATEWAY_REQUESTS.labels(operation="status", outcome="error").inc()
            self._log_failure("status_request_failed", e, url=url, order_id=order_id)
            raise GatewayError(STATUS_FAILED) from e
        GATEWAY_REQUESTS.labels(operation="status", outcome="ok").inc()
        self._logger.info("payment_status", extra={"order_id": order_id, "gateway_response": body})
        return body

"""
Payment API - initiate a gateway payment, query order status, receive gateway callbacks.
Errors are returned as {"error": "..."}; upstream details never reach the caller.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from app.config import Settings, get_settings
from app.core.signing import CallbackVerificationError, verify_callback
from app.schemas.payment import CallbackAck, ErrorResponse, InitiatePaymentRequest
from app.schemas.plan import DEFAULT_PAYMENT_MODE, PLAN_PRICES, lookup_plan
from app.services.phonepe_client import GatewayError, PhonePeClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payment", tags=["payment"])


def get_gateway_client(settings: Settings = Depends(get_settings)) -> PhonePeClient:
    return PhonePeClient(settings)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _read_json(request: Request) -> Any:
    """Request body as JSON; an empty body reads as {}. Raises ValueError on malformed JSON."""
    raw = await request.body()
    return json.loads(raw) if raw.strip() else {}


def _decode_response_field(payload: Any) -> Any:
    """Legacy callbacks carry the result as base64 JSON in a `response` field."""
    if not isinstance(payload, dict):
        return None
    encoded = payload.get("response")
    if not isinstance(encoded, str):
        return None
    try:
        return json.loads(base64.b64decode(encoded, validate=True))
    except (binascii.Error, ValueError):
        return None


@router.post(
    "/initiate",
    summary="Initiate payment",
    description="Validates the plan against the price table, creates a gateway order and returns its checkout URL.",
    responses={
        200: {"description": "Gateway payload with checkoutUrl and orderId"},
        400: {"model": ErrorResponse, "description": "Invalid plan"},
        500: {"model": ErrorResponse, "description": "Gateway failure"},
    },
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": InitiatePaymentRequest.model_json_schema(by_alias=True)}},
        }
    },
)
async def initiate_payment(
    request: Request,
    client: PhonePeClient = Depends(get_gateway_client),
) -> Any:
    # Parsed by hand: any body without a known plan is a 400, never a 422
    try:
        raw = await _read_json(request)
    except ValueError:
        raw = {}
    body = InitiatePaymentRequest.model_validate(raw if isinstance(raw, dict) else {})

    plan = lookup_plan(body.plan)
    if plan is None:
        logger.info("invalid_plan", extra={"plan": body.plan})
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid Plan")
    mode = body.payment_mode if isinstance(body.payment_mode, str) else None
    mode = mode or DEFAULT_PAYMENT_MODE.value
    try:
        return await client.create_payment(plan.value, PLAN_PRICES[plan], mode)
    except GatewayError as e:
        logger.error("initiate_failed", extra={"plan": plan.value, "payment_mode": mode, "error": str(e)})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))


@router.get("/status", include_in_schema=False)
@router.get("/status/", include_in_schema=False)
async def payment_status_without_order_id() -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, "Order ID is required")


@router.get(
    "/status/{order_id}",
    summary="Payment status",
    description="Returns the gateway's order status payload unmodified.",
    responses={
        400: {"model": ErrorResponse, "description": "Missing order id"},
        500: {"model": ErrorResponse, "description": "Gateway failure"},
    },
)
async def payment_status(
    order_id: str,
    client: PhonePeClient = Depends(get_gateway_client),
) -> Any:
    if not order_id.strip():
        return _error(status.HTTP_400_BAD_REQUEST, "Order ID is required")
    try:
        return await client.get_status(order_id.strip())
    except GatewayError as e:
        logger.error("status_failed", extra={"order_id": order_id, "error": str(e)})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))


@router.post(
    "/callback",
    response_model=CallbackAck,
    summary="Gateway callback",
    description=(
        "Asynchronous payment notification. Verified with the configured callback credentials "
        "(Authorization digest) or salt key (X-VERIFY); acknowledged with {status: received}."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Body is not valid JSON"},
        401: {"model": ErrorResponse, "description": "Invalid callback signature"},
    },
)
async def payment_callback(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Any:
    try:
        payload = await _read_json(request)
    except ValueError:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid callback payload")

    try:
        verified = verify_callback(
            settings,
            request.headers.get("Authorization"),
            request.headers.get("X-VERIFY"),
            payload if isinstance(payload, dict) else {},
        )
    except CallbackVerificationError as e:
        logger.warning("callback_rejected", extra={"error": str(e)})
        return _error(status.HTTP_401_UNAUTHORIZED, "Invalid callback signature")

    if not verified:
        logger.warning("callback_unverified", extra={"error": "no callback credentials configured"})
    decoded = _decode_response_field(payload)
    logger.info(
        "callback_received",
        extra={
            "callback_headers": dict(request.headers),
            "callback_payload": decoded if decoded is not None else payload,
        },
    )
    return CallbackAck()

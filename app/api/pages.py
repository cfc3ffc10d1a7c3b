"""
Storefront pages: plan selection and checkout, bank transfer instructions, payment result.
The pages talk to the payment API over HTTP and keep order details in a session cookie.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from app.config import Settings, get_settings
from app.core.session import ORDER_COOKIE, clear_order_details, decode_order_details, store_order_details
from app.schemas.payment import OrderDetails
from app.schemas.plan import (
    DEFAULT_PAYMENT_MODE,
    PAYMENT_MODE_LABELS,
    PLAN_NAMES,
    PLAN_PRICES,
    PaymentMode,
    list_plans,
    lookup_plan,
)
from app.services.backend_client import BackendClient, BackendError
from app.services.payment_result import (
    PaymentOutcome,
    pending_receipt,
    placeholder_receipt,
    receipt_from_redirect,
    receipt_from_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pages"], include_in_schema=False)

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

MISSING_CHECKOUT_URL = "Payment URL not received from server."
MISSING_PLAN = "Please select a plan."


def get_backend_client(settings: Settings = Depends(get_settings)) -> BackendClient:
    return BackendClient(settings)


def _plans_page(
    request: Request,
    error: str = "",
    selected_plan: str = "",
    selected_mode: str = DEFAULT_PAYMENT_MODE.value,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "plans.html",
        {
            "plans": list_plans(),
            "payment_modes": PAYMENT_MODE_LABELS,
            "selected_plan": selected_plan,
            "selected_mode": selected_mode,
            "error": error,
        },
    )


@router.get("/", response_class=HTMLResponse)
async def plans_page(request: Request) -> HTMLResponse:
    return _plans_page(request)


@router.post("/checkout", response_class=HTMLResponse)
async def checkout(
    request: Request,
    plan: str = Form(""),
    payment_mode: str = Form(DEFAULT_PAYMENT_MODE.value),
    client: BackendClient = Depends(get_backend_client),
    settings: Settings = Depends(get_settings),
):
    selected = lookup_plan(plan)

    if payment_mode == PaymentMode.BANK_TRANSFER.value:
        if selected is None:
            return _plans_page(request, MISSING_PLAN, plan, payment_mode)
        return templates.TemplateResponse(
            request,
            "bank_transfer.html",
            {
                "plan_name": PLAN_NAMES[selected],
                "amount": PLAN_PRICES[selected],
                "bank": {
                    "Account Name": settings.bank_account_name,
                    "Account Number": settings.bank_account_number,
                    "IFSC": settings.bank_ifsc,
                    "Bank": settings.bank_name,
                },
            },
        )

    try:
        result = await client.initiate(plan, payment_mode)
    except BackendError as e:
        return _plans_page(request, str(e), plan, payment_mode)

    checkout_url = result.get("checkoutUrl")
    if not checkout_url:
        logger.warning("checkout_url_missing", extra={"plan": plan, "payment_mode": payment_mode})
        return _plans_page(request, MISSING_CHECKOUT_URL, plan, payment_mode)

    details = OrderDetails(
        order_id=result.get("orderId") or result.get("merchantOrderId"),
        amount=PLAN_PRICES[selected] if selected else None,
        plan_name=PLAN_NAMES[selected] if selected else None,
        payment_mode=payment_mode,
        date=datetime.now(timezone.utc).isoformat(),
    )
    response = RedirectResponse(checkout_url, status_code=status.HTTP_303_SEE_OTHER)
    store_order_details(response, details)
    logger.info("checkout_redirect", extra={"order_id": details.order_id, "url": checkout_url})
    return response


@router.get("/success", response_class=HTMLResponse)
async def payment_result(
    request: Request,
    client: BackendClient = Depends(get_backend_client),
) -> HTMLResponse:
    params = dict(request.query_params)
    order = decode_order_details(request.cookies.get(ORDER_COOKIE))

    if params.get("orderId"):
        receipt = receipt_from_redirect(params, order)
    elif order.order_id:
        try:
            payload = await client.status(order.order_id)
        except BackendError as e:
            logger.warning("status_poll_failed", extra={"order_id": order.order_id, "error": str(e)})
            receipt = pending_receipt(order)
        else:
            receipt = receipt_from_status(payload, order)
    else:
        receipt = placeholder_receipt()

    return templates.TemplateResponse(
        request,
        "success.html",
        {
            "receipt": receipt,
            "succeeded": receipt.outcome == PaymentOutcome.SUCCEEDED.value,
            "failed": receipt.outcome == PaymentOutcome.FAILED.value,
        },
    )


@router.get("/back")
async def back_to_plans() -> RedirectResponse:
    response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    clear_order_details(response)
    return response

"""
Result page reconciliation: classify a gateway status payload into one outcome and
build the receipt shown to the user from redirect parameters, a status poll, or
session data alone.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Optional

from app.schemas.payment import OrderDetails, PaymentReceipt


class PaymentOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    PENDING = "pending"
    FAILED = "failed"
    UNKNOWN = "unknown"


class ReceiptSource(str, Enum):
    REDIRECT = "redirect"
    STATUS = "status"
    SESSION = "session"
    PLACEHOLDER = "placeholder"


# Consulted in this order; the first recognised value decides the outcome
STATUS_FIELDS = ("state", "transactionStatus", "code", "status")

SUCCESS_VALUES = frozenset({"COMPLETED", "SUCCESS", "PAYMENT_SUCCESS"})
PENDING_VALUES = frozenset({"PENDING", "INITIATED", "PROCESSING", "PAYMENT_PENDING"})
FAILURE_VALUES = frozenset(
    {
        "FAILED",
        "FAILURE",
        "ERROR",
        "DECLINED",
        "CANCELLED",
        "EXPIRED",
        "TIMED_OUT",
        "PAYMENT_ERROR",
        "PAYMENT_DECLINED",
        "PAYMENT_FAILED",
    }
)

NOT_AVAILABLE = "N/A"
DEFAULT_PLAN_NAME = "Subscription"
DEFAULT_MODE_LABEL = "Online"


def _outcome_for(value: Any) -> Optional[PaymentOutcome]:
    if not isinstance(value, str):
        return None
    normalized = value.strip().upper()
    if normalized in SUCCESS_VALUES:
        return PaymentOutcome.SUCCEEDED
    if normalized in PENDING_VALUES:
        return PaymentOutcome.PENDING
    if normalized in FAILURE_VALUES:
        return PaymentOutcome.FAILED
    return None


def classify_payment(payload: Optional[Mapping[str, Any]]) -> PaymentOutcome:
    """
    Classify a status payload (redirect parameters or gateway status body).

    Fields are read in the order state, transactionStatus, code, status. The first
    field holding a recognised value wins, so ``state=FAILED`` beats ``code=SUCCESS``.
    Missing or unrecognised values never count as success; if nothing is
    recognised the outcome is UNKNOWN.
    """
    if not payload:
        return PaymentOutcome.UNKNOWN
    for field in STATUS_FIELDS:
        outcome = _outcome_for(payload.get(field))
        if outcome is not None:
            return outcome
    return PaymentOutcome.UNKNOWN


def format_paise(amount: Any) -> Optional[str]:
    try:
        value = Decimal(str(amount)) / 100
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite():
        return None
    return f"₹ {value:.2f}"


def format_rupees(amount: Optional[int]) -> str:
    return f"₹ {amount}" if amount is not None else NOT_AVAILABLE


def format_date(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime("%d %B %Y, %I:%M %p")


def _latest_payment_detail(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    """Most recent attempt from paymentDetails (a list on Checkout v2, a dict on older APIs)."""
    details = payload.get("paymentDetails")
    if isinstance(details, list):
        details = details[-1] if details else None
    return details if isinstance(details, Mapping) else {}


def _first(*values: Any, default: str) -> str:
    for value in values:
        if value:
            return str(value)
    return default


def _display_state(payload: Mapping[str, Any], outcome: PaymentOutcome) -> str:
    for field in STATUS_FIELDS:
        value = payload.get(field)
        if isinstance(value, str) and value:
            return value
    return outcome.value.upper()


def receipt_from_redirect(
    params: Mapping[str, str],
    order: OrderDetails,
    now: Optional[datetime] = None,
) -> PaymentReceipt:
    outcome = classify_payment(params)
    amount = format_paise(params["amount"]) if params.get("amount") else None
    return PaymentReceipt(
        order_id=_first(params.get("orderId"), params.get("merchantOrderId"), order.order_id, default=NOT_AVAILABLE),
        transaction_id=_first(params.get("transactionId"), default=NOT_AVAILABLE),
        amount=amount or format_rupees(order.amount),
        plan_name=order.plan_name or DEFAULT_PLAN_NAME,
        payment_mode=_first(order.payment_mode, params.get("paymentMode"), default=DEFAULT_MODE_LABEL),
        state=_display_state(params, outcome),
        code=_first(params.get("code"), default=NOT_AVAILABLE),
        message=_first(params.get("message"), default=""),
        outcome=outcome.value,
        source=ReceiptSource.REDIRECT.value,
        date=format_date(now),
    )


def receipt_from_status(
    payload: Mapping[str, Any],
    order: OrderDetails,
    now: Optional[datetime] = None,
) -> PaymentReceipt:
    outcome = classify_payment(payload)
    detail = _latest_payment_detail(payload)
    amount = format_paise(payload["amount"]) if payload.get("amount") is not None else None
    return PaymentReceipt(
        order_id=_first(payload.get("orderId"), order.order_id, default=NOT_AVAILABLE),
        transaction_id=_first(payload.get("transactionId"), detail.get("transactionId"), default=NOT_AVAILABLE),
        amount=amount or format_rupees(order.amount),
        plan_name=order.plan_name or DEFAULT_PLAN_NAME,
        payment_mode=_first(
            payload.get("paymentMode"), detail.get("paymentMode"), order.payment_mode, default=DEFAULT_MODE_LABEL
        ),
        state=_display_state(payload, outcome),
        code=_first(payload.get("code"), detail.get("errorCode"), default=NOT_AVAILABLE),
        message=_first(payload.get("message"), default=""),
        outcome=outcome.value,
        source=ReceiptSource.STATUS.value,
        date=format_date(now),
    )


def pending_receipt(order: OrderDetails, now: Optional[datetime] = None) -> PaymentReceipt:
    """Receipt when the status poll failed: built from session data, awaiting confirmation."""
    return PaymentReceipt(
        order_id=order.order_id or NOT_AVAILABLE,
        transaction_id="Pending Confirmation",
        amount=format_rupees(order.amount),
        plan_name=order.plan_name or DEFAULT_PLAN_NAME,
        payment_mode=order.payment_mode or DEFAULT_MODE_LABEL,
        state="PROCESSING",
        code="PENDING",
        message="Payment is being verified. You will receive a confirmation shortly.",
        outcome=PaymentOutcome.PENDING.value,
        source=ReceiptSource.SESSION.value,
        date=format_date(now),
    )


def placeholder_receipt(now: Optional[datetime] = None) -> PaymentReceipt:
    return PaymentReceipt(
        order_id=NOT_AVAILABLE,
        transaction_id=NOT_AVAILABLE,
        amount=NOT_AVAILABLE,
        plan_name=DEFAULT_PLAN_NAME,
        payment_mode=DEFAULT_MODE_LABEL,
        state="INITIATED",
        code="PENDING",
        message="Payment initiated. Awaiting confirmation.",
        outcome=PaymentOutcome.PENDING.value,
        source=ReceiptSource.PLACEHOLDER.value,
        date=format_date(now),
    )

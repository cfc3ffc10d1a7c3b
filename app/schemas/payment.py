from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class InitiatePaymentRequest(BaseModel):
    """POST /api/payment/initiate body. Fields are untyped so the handler can answer 400, not 422."""

    model_config = ConfigDict(populate_by_name=True)

    plan: Optional[Any] = None
    payment_mode: Optional[Any] = Field(default=None, alias="paymentMode")


class CallbackAck(BaseModel):
    status: str = "received"


class ErrorResponse(BaseModel):
    error: str


class OrderDetails(BaseModel):
    """Order metadata kept in the browser session between checkout and the result page."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: Optional[str] = Field(default=None, alias="orderId")
    amount: Optional[int] = None
    plan_name: Optional[str] = Field(default=None, alias="planName")
    payment_mode: Optional[str] = Field(default=None, alias="paymentMode")
    date: Optional[str] = None


class PaymentReceipt(BaseModel):
    """Display shape of the result page, whatever source it was built from."""

    order_id: str
    transaction_id: str
    amount: str
    plan_name: str
    payment_mode: str
    state: str
    code: str
    message: str
    outcome: str
    source: str
    date: str

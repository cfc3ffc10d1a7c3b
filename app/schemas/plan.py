"""
Subscription plans and payment modes shared by the API and the storefront pages.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class Plan(str, Enum):
    BASIC = "BASIC"
    PRO = "PRO"
    PREMIUM = "PREMIUM"


class PaymentMode(str, Enum):
    PAY_PAGE = "PAY_PAGE"
    UPI = "UPI"
    CARD = "CARD"
    WALLET = "WALLET"
    NET_BANKING = "NET_BANKING"
    UPI_INTENT = "UPI_INTENT"
    # Storefront only: shows static instructions, never sent to the gateway
    BANK_TRANSFER = "BANK_TRANSFER"


DEFAULT_PAYMENT_MODE = PaymentMode.PAY_PAGE

# Prices in rupees
PLAN_PRICES: dict[Plan, int] = {
    Plan.BASIC: 199,
    Plan.PRO: 499,
    Plan.PREMIUM: 999,
}

PLAN_NAMES: dict[Plan, str] = {
    Plan.BASIC: "Basic Plan",
    Plan.PRO: "Pro Plan",
    Plan.PREMIUM: "Premium Plan",
}

PAYMENT_MODE_LABELS: dict[PaymentMode, str] = {
    PaymentMode.PAY_PAGE: "Any (PhonePe checkout)",
    PaymentMode.UPI: "UPI",
    PaymentMode.CARD: "Credit / Debit Card",
    PaymentMode.WALLET: "Wallet",
    PaymentMode.NET_BANKING: "Net Banking",
    PaymentMode.UPI_INTENT: "UPI App (intent)",
    PaymentMode.BANK_TRANSFER: "Bank Transfer",
}


class PlanSchema(BaseModel):
    id: Plan
    name: str
    price: int


def lookup_plan(plan_id: Any) -> Optional[Plan]:
    """Return the Plan for a raw identifier, or None if it is missing, not a string or unknown."""
    if not plan_id or not isinstance(plan_id, str):
        return None
    try:
        return Plan(plan_id)
    except ValueError:
        return None


def list_plans() -> list[PlanSchema]:
    return [PlanSchema(id=p, name=PLAN_NAMES[p], price=PLAN_PRICES[p]) for p in Plan]

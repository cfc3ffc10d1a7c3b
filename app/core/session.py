"""
Browser session blob: order details kept in a single cookie between checkout and the
result page. JSON, base64url-encoded without padding so it needs no cookie quoting.
"""
from __future__ import annotations

import base64
import binascii
import json
from typing import Optional

from pydantic import ValidationError
from starlette.responses import Response

from app.schemas.payment import OrderDetails

# Session cookie (no max-age): gone when the browser session ends
ORDER_COOKIE = "orderDetails"


def encode_order_details(details: OrderDetails) -> str:
    raw = details.model_dump_json(by_alias=True, exclude_none=True)
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_order_details(value: Optional[str]) -> OrderDetails:
    """Decode the cookie value; anything unreadable is treated as an empty session."""
    if not value:
        return OrderDetails()
    try:
        padded = value + "=" * (-len(value) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        return OrderDetails.model_validate(json.loads(raw))
    except (binascii.Error, UnicodeError, ValueError, ValidationError):
        return OrderDetails()


def store_order_details(response: Response, details: OrderDetails) -> None:
    response.set_cookie(
        ORDER_COOKIE,
        encode_order_details(details),
        httponly=True,
        samesite="lax",
    )


def clear_order_details(response: Response) -> None:
    response.delete_cookie(ORDER_COOKIE)

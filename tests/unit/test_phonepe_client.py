"""
Unit tests: gateway client (token, payment creation, checkout URL, status).
Gateway HTTP is mocked with respx.
"""
import json
import math

import pytest
import respx
from httpx import Response as HttpxResponse

from app.config import Settings
from app.services.phonepe_client import (
    PAYMENT_FAILED,
    STATUS_FAILED,
    TOKEN_FAILED,
    GatewayError,
    PhonePeClient,
    payment_instrument,
    to_paise,
)

SANDBOX_BASE = "https://api-preprod.phonepe.com/apis/pg-sandbox"
PROD_BASE = "https://api.phonepe.com/apis/pg"
TOKEN_URL = f"{SANDBOX_BASE}/v1/oauth/token"
PAY_URL = f"{SANDBOX_BASE}/checkout/v2/pay"


def make_client(base_url: str = SANDBOX_BASE) -> PhonePeClient:
    settings = Settings(
        phonepe_client_id="TEST_CLIENT",
        phonepe_client_secret="test-secret",
        phonepe_client_version="1",
        phonepe_merchant_id="TESTMERCHANT",
        phonepe_base_url=base_url,
        frontend_url="http://localhost:3000",
        backend_url="http://localhost:5000",
        api_prefix="/api",
    )
    ids = iter(["a1", "b2", "c3", "d4"])
    return PhonePeClient(settings, id_factory=lambda: next(ids))


def mock_token(token: str = "tok-123"):
    return respx.post(TOKEN_URL).mock(
        return_value=HttpxResponse(200, json={"access_token": token, "expires_in": 3600})
    )


@pytest.mark.parametrize("amount, expected", [(499, 49900), (199.5, 19950), ("999", 99900)])
def test_to_paise_valid(amount, expected):
    assert to_paise(amount) == expected


@pytest.mark.parametrize("amount", [None, "", "abc", True, 0, -10, math.nan, math.inf, "NaN"])
def test_to_paise_rejects(amount):
    with pytest.raises(ValueError):
        to_paise(amount)


def test_payment_instrument_only_upi_intent_differs():
    assert payment_instrument("UPI_INTENT") == {"type": "UPI_INTENT"}
    for mode in ("UPI", "CARD", "WALLET", "NET_BANKING", "PAY_PAGE", "SOMETHING_ELSE", None):
        assert payment_instrument(mode) == {"type": "PAY_PAGE"}


def test_checkout_url_rebuilt_when_redirect_points_at_api_host():
    client = make_client()
    url = client.build_checkout_url("OMO123", f"{SANDBOX_BASE}/checkout/v2/pay/OMO123")
    assert url == "https://checkout-preprod.phonepe.com/v2/pay?orderId=OMO123"


def test_checkout_url_uses_hosted_redirect_verbatim():
    client = make_client()
    hosted = "https://mercury-uat.phonepe.com/transact/uat_v2?token=xyz"
    assert client.build_checkout_url("OMO123", hosted) == hosted


def test_checkout_url_built_when_redirect_missing():
    assert make_client().build_checkout_url("OMO9", None) == "https://checkout-preprod.phonepe.com/v2/pay?orderId=OMO9"


def test_checkout_url_production_domain():
    client = make_client(PROD_BASE)
    url = client.build_checkout_url("OMO5", f"{PROD_BASE}/checkout/v2/pay")
    assert url == "https://checkout.phonepe.com/v2/pay?orderId=OMO5"


@pytest.mark.asyncio
@respx.mock
async def test_acquire_token_posts_client_credentials():
    route = mock_token("tok-abc")
    token = await make_client().acquire_token()
    assert token == "tok-abc"
    form = route.calls.last.request.content.decode()
    assert "grant_type=client_credentials" in form
    assert "client_id=TEST_CLIENT" in form
    assert "client_version=1" in form


@pytest.mark.asyncio
@respx.mock
async def test_acquire_token_failure_is_generic():
    respx.post(TOKEN_URL).mock(return_value=HttpxResponse(401, json={"code": "UNAUTHORIZED"}))
    with pytest.raises(GatewayError) as exc:
        await make_client().acquire_token()
    assert str(exc.value) == TOKEN_FAILED


@pytest.mark.asyncio
async def test_create_payment_invalid_amount_makes_no_call():
    async with respx.mock(assert_all_called=False) as respx_mock:
        token_route = respx_mock.post(TOKEN_URL).mock(return_value=HttpxResponse(200, json={"access_token": "t"}))
        pay_route = respx_mock.post(PAY_URL).mock(return_value=HttpxResponse(200, json={"orderId": "OMO1"}))
        for amount in (None, "abc", math.nan):
            with pytest.raises(GatewayError) as exc:
                await make_client().create_payment("PRO", amount, "UPI")
            assert str(exc.value) == PAYMENT_FAILED
    assert not token_route.called
    assert not pay_route.called


@pytest.mark.asyncio
@respx.mock
async def test_create_payment_success_builds_payload_and_checkout_url():
    mock_token("tok-123")
    pay_route = respx.post(PAY_URL).mock(
        return_value=HttpxResponse(
            200,
            json={
                "orderId": "OMO123",
                "state": "PENDING",
                "expireAt": 1703756259307,
                "redirectUrl": f"{SANDBOX_BASE}/checkout/v2/pay/OMO123",
            },
        )
    )

    result = await make_client().create_payment("PRO", 499, "UPI")

    assert result["orderId"] == "OMO123"
    assert result["state"] == "PENDING"
    assert result["checkoutUrl"] == "https://checkout-preprod.phonepe.com/v2/pay?orderId=OMO123"
    assert result["merchantOrderId"] == "ORD_a1"

    request = pay_route.calls.last.request
    assert request.headers["Authorization"] == "O-Bearer tok-123"
    payload = json.loads(request.content)
    assert payload["merchantId"] == "TESTMERCHANT"
    assert payload["merchantOrderId"] == "ORD_a1"
    assert payload["merchantUserId"] == "USER_b2"
    assert payload["amount"] == 49900
    assert payload["redirectUrl"] == "http://localhost:3000/success"
    assert payload["redirectMode"] == "GET"
    assert payload["callbackUrl"] == "http://localhost:5000/api/payment/callback"
    assert payload["mobileNumber"] == "9999999999"
    assert payload["paymentInstrument"] == {"type": "PAY_PAGE"}


@pytest.mark.asyncio
@respx.mock
async def test_create_payment_keeps_hosted_redirect_url():
    mock_token()
    hosted = "https://mercury-uat.phonepe.com/transact/uat_v2?token=xyz"
    respx.post(PAY_URL).mock(return_value=HttpxResponse(200, json={"orderId": "OMO2", "redirectUrl": hosted}))
    result = await make_client().create_payment("BASIC", 199, "UPI_INTENT")
    assert result["checkoutUrl"] == hosted


@pytest.mark.asyncio
@respx.mock
async def test_create_payment_without_order_id_fails():
    mock_token()
    respx.post(PAY_URL).mock(return_value=HttpxResponse(200, json={"state": "PENDING"}))
    with pytest.raises(GatewayError) as exc:
        await make_client().create_payment("PRO", 499)
    assert str(exc.value) == PAYMENT_FAILED


@pytest.mark.asyncio
async def test_create_payment_token_failure_skips_payment_call():
    async with respx.mock(assert_all_called=False) as respx_mock:
        respx_mock.post(TOKEN_URL).mock(return_value=HttpxResponse(500, text="boom"))
        pay_route = respx_mock.post(PAY_URL).mock(return_value=HttpxResponse(200, json={"orderId": "OMO1"}))
        with pytest.raises(GatewayError) as exc:
            await make_client().create_payment("PRO", 499)
    assert str(exc.value) == PAYMENT_FAILED
    assert not pay_route.called


@pytest.mark.asyncio
@respx.mock
async def test_get_status_returns_raw_body_with_fresh_token_each_call():
    token_route = mock_token()
    body = {"orderId": "OMO1", "state": "COMPLETED", "amount": 49900, "paymentDetails": []}
    respx.get(f"{SANDBOX_BASE}/checkout/v2/order/OMO1/status").mock(return_value=HttpxResponse(200, json=body))

    client = make_client()
    assert await client.get_status("OMO1") == body
    assert await client.get_status("OMO1") == body
    assert token_route.call_count == 2


@pytest.mark.asyncio
@respx.mock
async def test_get_status_gateway_error_is_generic():
    mock_token()
    respx.get(f"{SANDBOX_BASE}/checkout/v2/order/OMO1/status").mock(
        return_value=HttpxResponse(404, json={"code": "ORDER_NOT_FOUND"})
    )
    with pytest.raises(GatewayError) as exc:
        await make_client().get_status("OMO1")
    assert str(exc.value) == STATUS_FAILED

"""
Unit tests: session cookie codec and port probing.
"""
import logging
import socket

from app.config import Settings
from app.core.session import decode_order_details, encode_order_details
from app.main import find_free_port, warn_if_port_changed
from app.schemas.payment import OrderDetails


def test_order_details_cookie_codec():
    details = OrderDetails(orderId="OMO1", amount=499, planName="Pro Plan", paymentMode="UPI", date="2026-10-19")
    value = encode_order_details(details)
    assert "=" not in value
    assert decode_order_details(value) == details


def test_unreadable_cookie_is_empty_session():
    assert decode_order_details(None) == OrderDetails()
    assert decode_order_details("not base64 !!!") == OrderDetails()
    assert decode_order_details("bm90IGpzb24") == OrderDetails()  # "not json"


def test_find_free_port_skips_busy_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
        busy.bind(("127.0.0.1", 0))
        busy.listen(1)
        busy_port = busy.getsockname()[1]
        assert find_free_port("127.0.0.1", busy_port) > busy_port


def test_port_change_warns_about_urls_on_configured_port(caplog):
    configured = Settings(port=5000, backend_url="http://localhost:5000", frontend_url="http://localhost:3000")

    with caplog.at_level(logging.WARNING, logger="app"):
        stale = warn_if_port_changed(configured, 5001)

    assert stale == ["http://localhost:5000"]
    record = next(r for r in caplog.records if r.getMessage() == "port_changed")
    assert record.port == 5001
    assert record.configured_port == 5000
    assert record.stale_urls == ["http://localhost:5000"]


def test_no_warning_when_port_unchanged(caplog):
    configured = Settings(port=5000, backend_url="http://localhost:5000", frontend_url="http://localhost:5000")

    with caplog.at_level(logging.WARNING, logger="app"):
        assert warn_if_port_changed(configured, 5000) == []

    assert not [r for r in caplog.records if r.getMessage() == "port_changed"]

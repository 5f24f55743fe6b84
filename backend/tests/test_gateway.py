"""
Tests for the Razorpay REST client and gateway helpers.

HTTP is served by httpx.MockTransport; nothing leaves the process.
"""
import asyncio
import base64
import json

import httpx
import pytest

from core.payments.gateway import (
    RazorpayApiError,
    RazorpayGateway,
    amount_in_paise,
    amount_in_rupees,
    describe_gateway_error,
    generate_receipt_id,
)


def _gateway(handler, key_id="rzp_test_key", key_secret="rzp_test_secret"):
    return RazorpayGateway(
        key_id=key_id,
        key_secret=key_secret,
        api_base_url="https://api.razorpay.test/",
        transport=httpx.MockTransport(handler),
    )


class TestRazorpayGateway:

    def test_fetch_payment(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"id": "pay_1", "order_id": "ord_1", "amount": 29900})

        payment = asyncio.run(_gateway(handler).fetch_payment("pay_1"))

        assert payment["order_id"] == "ord_1"
        assert seen["method"] == "GET"
        assert seen["url"] == "https://api.razorpay.test/v1/payments/pay_1"
        expected = base64.b64encode(b"rzp_test_key:rzp_test_secret").decode()
        assert seen["auth"] == f"Basic {expected}"

    def test_create_order_body(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "order_9", "amount": 29900, "currency": "INR", "status": "created"})

        receipt = "r" * 60
        order = asyncio.run(_gateway(handler).create_order(29900, "INR", receipt, {"business_id": "biz_1"}))

        assert order["id"] == "order_9"
        assert seen["path"] == "/v1/orders"
        assert seen["body"] == {
            "amount": 29900,
            "currency": "INR",
            "receipt": "r" * 40,
            "notes": {"business_id": "biz_1"},
            "payment_capture": 1,
        }

    def test_api_error_carries_gateway_code(self):
        def handler(request):
            return httpx.Response(400, json={"error": {
                "code": "BAD_REQUEST_ERROR",
                "description": "The id provided does not exist",
            }})

        with pytest.raises(RazorpayApiError) as exc_info:
            asyncio.run(_gateway(handler).fetch_payment("pay_missing"))

        assert exc_info.value.code == "BAD_REQUEST_ERROR"
        assert exc_info.value.description == "The id provided does not exist"
        assert exc_info.value.status_code == 400

    def test_non_json_error_is_server_error(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(RazorpayApiError) as exc_info:
            asyncio.run(_gateway(handler).fetch_payment("pay_1"))

        assert exc_info.value.code == "SERVER_ERROR"
        assert exc_info.value.status_code == 502

    def test_transport_failure_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RazorpayApiError) as exc_info:
            asyncio.run(_gateway(handler).fetch_payment("pay_1"))

        assert exc_info.value.code == "NETWORK_ERROR"

    def test_missing_credentials(self):
        def handler(request):
            raise AssertionError("no request should be sent")

        with pytest.raises(RazorpayApiError) as exc_info:
            asyncio.run(_gateway(handler, key_secret="").fetch_payment("pay_1"))

        assert exc_info.value.code == "SERVER_ERROR"


class TestGatewayHelpers:

    @pytest.mark.parametrize("code, message", [
        ("BAD_REQUEST_ERROR", "Invalid payment request. Please try again."),
        ("GATEWAY_ERROR", "Payment gateway error. Please try again."),
        ("NETWORK_ERROR", "Network error. Please check your connection."),
        ("SERVER_ERROR", "Server error. Please try again later."),
    ])
    def test_known_codes(self, code, message):
        assert describe_gateway_error(RazorpayApiError(code, "internal detail")) == message

    def test_unknown_code_uses_description(self):
        assert describe_gateway_error(RazorpayApiError("NEW_CODE", "Card expired")) == "Card expired"

    def test_error_without_code(self):
        message = describe_gateway_error(RuntimeError("stack trace with secrets"))
        assert message == "An unexpected error occurred. Please try again."

    def test_amount_conversions(self):
        assert amount_in_paise(299) == 29900
        assert amount_in_paise(19.99) == 1999
        assert amount_in_rupees(29900) == 299

    def test_receipt_id(self):
        receipt = generate_receipt_id("business_abcdef123456", "premium")
        plan, suffix, timestamp = receipt.split("_")
        assert plan == "premium"
        assert suffix == "123456"
        assert timestamp.isdigit()

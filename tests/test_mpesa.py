"""
Tests for the Daraja STK push client.
"""

import base64
import json
from decimal import Decimal

import httpx
import pytest

from hotel_booking_platform.config import Settings
from hotel_booking_platform.services.mpesa_service import (
    STK_PUSH_PATH,
    TOKEN_PATH,
    MpesaClient,
    format_phone_number,
    generate_timestamp,
)
from hotel_booking_platform.utils.exceptions import PaymentGatewayError

from .conftest import NOW

SANDBOX = "https://sandbox.safaricom.co.ke"


def mpesa_settings(**overrides) -> Settings:
    values = {
        "mpesa_consumer_key": "consumer-key",
        "mpesa_consumer_secret": "consumer-secret",
        "mpesa_passkey": "passkey",
        "mpesa_shortcode": "174379",
        "mpesa_callback_url": "https://hotel.test/api/v1/payments/mpesa/callback",
    }
    values.update(overrides)
    return Settings(**values)


class FakeDaraja:
    """Records requests and answers like the sandbox."""

    def __init__(self, stk_status: int = 200, stk_body=None):
        self.requests = []
        self.stk_status = stk_status
        self.stk_body = stk_body or {
            "MerchantRequestID": "29115-34620561-1",
            "CheckoutRequestID": "ws_CO_191220191020363925",
            "ResponseCode": "0",
            "ResponseDescription": "Success. Request accepted for processing",
            "CustomerMessage": "Success. Request accepted for processing",
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == TOKEN_PATH:
            return httpx.Response(200, json={"access_token": "sandbox-token", "expires_in": "3599"})
        if request.url.path == STK_PUSH_PATH:
            return httpx.Response(self.stk_status, json=self.stk_body)
        return httpx.Response(404, json={"errorMessage": "not found"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), base_url=SANDBOX)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0712345678", "254712345678"),
        ("0712 345 678", "254712345678"),
        ("+254712345678", "254712345678"),
        ("254712345678", "254712345678"),
        ("712345678", "254712345678"),
        ("0112-345-678", "254112345678"),
    ],
)
def test_format_phone_number(raw, expected):
    assert format_phone_number(raw) == expected


def test_timestamp_is_east_africa_time():
    # 06:00 UTC is 09:00 in Nairobi
    assert generate_timestamp(NOW) == "20300310090000"


def test_password_is_base64_of_shortcode_passkey_timestamp():
    client = MpesaClient(settings=mpesa_settings())

    password = client.generate_password("20300310090000")

    assert base64.b64decode(password).decode() == "174379passkey20300310090000"


async def test_stk_push_sends_signed_request():
    daraja = FakeDaraja()
    async with daraja.client() as http_client:
        client = MpesaClient(settings=mpesa_settings(), http_client=http_client)
        response = await client.stk_push(
            phone_number="0712345678",
            amount=Decimal("1500.40"),
            account_reference="HHB-20300310-AB12",
            transaction_desc="Payment for booking HHB-20300310-AB12",
            now=NOW,
        )

    assert response["CheckoutRequestID"] == "ws_CO_191220191020363925"

    token_request, push_request = daraja.requests
    assert token_request.url.params["grant_type"] == "client_credentials"
    assert token_request.headers["Authorization"].startswith("Basic ")
    assert push_request.headers["Authorization"] == "Bearer sandbox-token"

    payload = json.loads(push_request.content)
    assert payload["Amount"] == 1500
    assert payload["PartyA"] == payload["PhoneNumber"] == "254712345678"
    assert payload["PartyB"] == payload["BusinessShortCode"] == "174379"
    assert payload["Timestamp"] == "20300310090000"
    assert payload["TransactionType"] == "CustomerPayBillOnline"
    assert payload["CallBackURL"] == "https://hotel.test/api/v1/payments/mpesa/callback"


async def test_gateway_rejection_raises():
    daraja = FakeDaraja(stk_status=400, stk_body={"errorMessage": "Bad Request - Invalid PhoneNumber"})
    async with daraja.client() as http_client:
        client = MpesaClient(settings=mpesa_settings(), http_client=http_client)
        with pytest.raises(PaymentGatewayError) as exc_info:
            await client.stk_push("0712345678", Decimal("100"), "REF", "desc", now=NOW)

    assert "Invalid PhoneNumber" in exc_info.value.message
    assert exc_info.value.details["status_code"] == 400


async def test_missing_credentials_fail_before_any_request():
    daraja = FakeDaraja()
    async with daraja.client() as http_client:
        client = MpesaClient(settings=mpesa_settings(mpesa_consumer_key=""), http_client=http_client)
        with pytest.raises(PaymentGatewayError):
            await client.get_access_token()

    assert daraja.requests == []

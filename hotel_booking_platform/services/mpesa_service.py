"""
M-Pesa (Safaricom Daraja) STK push client.
"""

import base64
import logging
import re
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import httpx

from ..cache import CacheKeyBuilder, RedisCache
from ..config import Settings, get_settings
from ..utils.clock import hotel_timezone, utcnow
from ..utils.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth/v1/generate"
STK_PUSH_PATH = "/mpesa/stkpush/v1/processrequest"
TRANSACTION_TYPE = "CustomerPayBillOnline"

# Daraja tokens live for an hour; refresh a minute early
DEFAULT_TOKEN_TTL = 3599
TOKEN_TTL_MARGIN = 60

_PHONE_SEPARATORS = re.compile(r"[\s\-+]")


def format_phone_number(phone: str) -> str:
    """
    Normalise a Kenyan phone number to ``254XXXXXXXXX``.

    Spaces, dashes and plus signs are stripped; a leading 0 becomes 254;
    numbers starting with 7 or 1 get the 254 prefix.
    """
    cleaned = _PHONE_SEPARATORS.sub("", phone)

    if cleaned.startswith("0"):
        return "254" + cleaned[1:]
    if cleaned.startswith("254"):
        return cleaned
    if cleaned.startswith(("7", "1")):
        return "254" + cleaned
    return cleaned


def generate_timestamp(now: Optional[datetime] = None) -> str:
    """Daraja timestamp ``YYYYMMDDHHmmss`` in East Africa Time."""
    return (now or utcnow()).astimezone(hotel_timezone()).strftime("%Y%m%d%H%M%S")


class MpesaClient:
    """Client for the Daraja OAuth and STK push endpoints."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[RedisCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache
        self._http_client = http_client

    def generate_password(self, timestamp: str) -> str:
        """Base64 of shortcode + passkey + timestamp."""
        raw = f"{self.settings.mpesa_shortcode}{self.settings.mpesa_passkey or ''}{timestamp}"
        return base64.b64encode(raw.encode()).decode()

    async def get_access_token(self) -> str:
        """
        Fetch an OAuth access token, reusing a cached one while it is valid.

        Raises:
            PaymentGatewayError: If credentials are missing or the exchange fails
        """
        if not self.settings.mpesa_consumer_key or not self.settings.mpesa_consumer_secret:
            raise PaymentGatewayError("M-Pesa credentials are not configured")

        cache_key = CacheKeyBuilder.mpesa_token(self.settings.mpesa_shortcode)
        if self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached:
                return cached

        data = await self._request(
            "GET",
            TOKEN_PATH,
            params={"grant_type": "client_credentials"},
            auth=(self.settings.mpesa_consumer_key, self.settings.mpesa_consumer_secret),
        )
        token = data.get("access_token")
        if not token:
            raise PaymentGatewayError("Failed to get M-Pesa access token")

        if self.cache is not None:
            try:
                ttl = int(data.get("expires_in", DEFAULT_TOKEN_TTL)) - TOKEN_TTL_MARGIN
            except (TypeError, ValueError):
                ttl = DEFAULT_TOKEN_TTL - TOKEN_TTL_MARGIN
            if ttl > 0:
                await self.cache.set(cache_key, token, ttl=ttl)

        return token

    async def stk_push(
        self,
        phone_number: str,
        amount: Decimal,
        account_reference: str,
        transaction_desc: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Ask the customer's handset to approve a payment.

        Args:
            phone_number: Customer number in any accepted local format
            amount: Amount in KES, rounded to whole shillings
            account_reference: Shown to the customer, the booking number
            transaction_desc: Short description
            now: Reference time for the request timestamp

        Returns:
            Daraja response containing ``CheckoutRequestID``

        Raises:
            PaymentGatewayError: If the gateway rejects or fails the request
        """
        access_token = await self.get_access_token()
        timestamp = generate_timestamp(now)
        phone = format_phone_number(phone_number)

        payload = {
            "BusinessShortCode": self.settings.mpesa_shortcode,
            "Password": self.generate_password(timestamp),
            "Timestamp": timestamp,
            "TransactionType": TRANSACTION_TYPE,
            "Amount": int(Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
            "PartyA": phone,
            "PartyB": self.settings.mpesa_shortcode,
            "PhoneNumber": phone,
            "CallBackURL": self.settings.mpesa_callback_url,
            "AccountReference": account_reference,
            "TransactionDesc": transaction_desc,
        }

        logger.info(
            f"STK push for {account_reference}: {payload['Amount']} KES",
            extra={"stk_request": {**payload, "Password": "***hidden***"}},
        )

        data = await self._request(
            "POST",
            STK_PUSH_PATH,
            json=payload,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if "CheckoutRequestID" not in data:
            raise PaymentGatewayError(data.get("errorMessage") or "STK Push failed")
        return data

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        if self._http_client is not None:
            return await self._send(self._http_client, method, path, **kwargs)

        async with httpx.AsyncClient(
            base_url=self.settings.mpesa_base_url,
            timeout=self.settings.mpesa_timeout_seconds,
        ) as client:
            return await self._send(client, method, path, **kwargs)

    async def _send(self, client: httpx.AsyncClient, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException:
            logger.error(f"M-Pesa request timed out: {method} {path}")
            raise PaymentGatewayError("Payment gateway timed out")
        except httpx.HTTPError as e:
            logger.error(f"M-Pesa request failed: {method} {path}: {e}")
            raise PaymentGatewayError("Payment gateway unreachable")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            message = data.get("errorMessage") or response.text or "request failed"
            logger.error(f"M-Pesa error {response.status_code} on {path}: {message}")
            raise PaymentGatewayError(message, status_code=response.status_code)

        return data

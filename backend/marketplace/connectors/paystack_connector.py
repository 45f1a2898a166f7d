"""
Paystack REST Connector
Handles all interactions with the Paystack API

Handles:
- Bank list (NGN, nuban)
- Transaction initialize / verify
- Split creation for supplier subaccounts
- Webhook signature verification

Date: 2026-02-20
"""
import hashlib
import hmac
import logging
from typing import Any, Dict, List, Optional

import httpx

from marketplace.core.config import settings

logger = logging.getLogger(__name__)


class PaystackError(Exception):
    """Paystack answered with status=false or an unusable payload"""


class PaystackConnector:
    """
    Connector for the Paystack REST API

    Every call opens a short-lived httpx.AsyncClient authenticated with the
    secret key.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize Paystack connector

        Args:
            secret_key: Paystack secret key (defaults to PAYSTACK_SECRET_KEY)
            base_url: API base URL (defaults to PAYSTACK_BASE_URL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.secret_key = secret_key or settings.PAYSTACK_SECRET_KEY
        if not self.secret_key:
            raise ValueError("Paystack credentials not configured. Set PAYSTACK_SECRET_KEY")

        self.base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PAYSTACK_TIMEOUT_SECONDS
        self.transport = transport
        self.headers = {
            'Authorization': f'Bearer {self.secret_key}',
            'Content-Type': 'application/json',
        }

    async def _request(self, method: str, path: str, timeout: Optional[float] = None, **kwargs) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body"""
        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=timeout or self.timeout,
            transport=self.transport,
        ) as client:
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()

            data = response.json()
            if data.get('status') is False:
                raise PaystackError(data.get('message') or f"Paystack {method} {path} failed")
            return data

    async def list_banks(self, currency: str = "NGN") -> List[Dict[str, Any]]:
        """
        Get banks from Paystack

        Returns:
            Raw bank rows (name, code, active, currency, type, ...)
        """
        data = await self._request(
            "GET", "/bank",
            params={'currency': currency},
            timeout=settings.BANKS_TIMEOUT_SECONDS,
        )
        return data.get('data') or []

    async def create_split(self, name: str, subaccounts: List[Dict[str, Any]], currency: str = "NGN") -> str:
        """
        Create a flat split across supplier subaccounts

        Args:
            name: Split name (usually tied to the order)
            subaccounts: [{'subaccount': code, 'share': kobo}]

        Returns:
            split_code
        """
        data = await self._request("POST", "/split", json={
            'name': name,
            'type': 'flat',
            'currency': currency,
            'subaccounts': subaccounts,
            'bearer_type': 'account',
        })
        split_code = (data.get('data') or {}).get('split_code')
        if not split_code:
            raise PaystackError("Split created without split_code")
        return split_code

    async def initialize_transaction(
        self,
        email: str,
        amount_kobo: int,
        reference: str,
        callback_url: str,
        metadata: Optional[Dict[str, Any]] = None,
        split_code: Optional[str] = None,
        currency: str = "NGN"
    ) -> Dict[str, Any]:
        """
        Start a hosted checkout

        Returns:
            data block with authorization_url, access_code, reference
        """
        payload = {
            'email': email,
            'amount': amount_kobo,
            'reference': reference,
            'currency': currency,
            'callback_url': callback_url,
            'metadata': metadata or {},
        }
        if split_code:
            payload['split_code'] = split_code

        data = await self._request("POST", "/transaction/initialize", json=payload)
        return data.get('data') or {}

    async def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """
        Verify a transaction by reference

        Returns:
            data block with status, reference, amount (kobo), fees (kobo), ...
        """
        data = await self._request("GET", f"/transaction/verify/{reference}")
        return data.get('data') or {}

    @staticmethod
    def compute_signature(raw_body: bytes, secret_key: str) -> str:
        return hmac.new(secret_key.encode('utf-8'), raw_body, hashlib.sha512).hexdigest()

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        """True when x-paystack-signature matches HMAC-SHA512 of the raw body"""
        if not signature:
            return False
        expected = self.compute_signature(raw_body, self.secret_key).encode("ascii")
        given = signature.strip().lower().encode("utf-8", "ignore")
        return hmac.compare_digest(expected, given)

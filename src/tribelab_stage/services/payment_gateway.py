"""Payment gateway client (Razorpay-compatible REST API).

This module wraps every outbound call to the payment gateway:

- orders for one-off platform and community payments
- customers and recurring subscriptions for community billing
- payment lookups used during checkout verification
- HMAC signature checks for checkout callbacks and webhooks

Amounts are always passed in minor currency units (paise for INR).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from tribelab_stage.core.security import verify_hmac_signature
from tribelab_stage.core.settings import settings

logger = logging.getLogger(__name__)

HTTP_BAD_REQUEST = 400


class PaymentGatewayError(RuntimeError):
    """Base exception raised for payment gateway failures."""


class PaymentGatewayDisabledError(PaymentGatewayError):
    """Raised when gateway operations are attempted without API credentials."""


@dataclass(frozen=True)
class PaymentGatewayConfig:
    """Connection and signing configuration for the gateway."""

    base_url: str
    key_id: str | None
    key_secret: str | None
    webhook_secret: str | None
    community_plan_id: str | None
    timeout_seconds: float

    @property
    def enabled(self) -> bool:
        return bool(self.key_id and self.key_secret)


def load_gateway_config() -> PaymentGatewayConfig:
    """Build configuration object from global settings."""
    return PaymentGatewayConfig(
        base_url=settings.razorpay_base_url,
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        webhook_secret=settings.razorpay_webhook_secret,
        community_plan_id=settings.razorpay_community_plan_id,
        timeout_seconds=float(settings.razorpay_http_timeout_seconds),
    )


class PaymentGatewayClient:
    """HTTP client wrapper for payment gateway interactions."""

    def __init__(self, config: PaymentGatewayConfig | None = None) -> None:
        self.config = config or load_gateway_config()
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def key_id(self) -> str | None:
        return self.config.key_id

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise PaymentGatewayDisabledError("Payment gateway is not configured")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    auth=(self.config.key_id or "", self.config.key_secret or ""),
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_data: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        client = await self._ensure_client()
        try:
            response = await client.request(method, path, json=json_data)
        except httpx.HTTPError as exc:  # pragma: no cover - network failure
            logger.error("Gateway request %s %s failed: %s", method, path, exc)
            raise PaymentGatewayError(f"Gateway request failed: {exc}") from exc

        if response.status_code >= HTTP_BAD_REQUEST:
            description = _error_description(response)
            logger.warning(
                "Gateway %s %s responded %s: %s",
                method,
                path,
                response.status_code,
                description,
            )
            raise PaymentGatewayError(description)
        return response.json()

    async def create_order(
        self,
        amount: int,
        currency: str,
        *,
        receipt: str,
        notes: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Open an order for ``amount`` minor units."""
        return await self._request(
            "POST",
            "/orders",
            json_data={
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
                "notes": dict(notes or {}),
            },
        )

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/payments/{payment_id}")

    async def create_customer(self, name: str, email: str) -> dict[str, Any]:
        # fail_existing=0 returns the existing customer instead of erroring.
        return await self._request(
            "POST",
            "/customers",
            json_data={"name": name, "email": email, "fail_existing": "0"},
        )

    async def create_subscription(
        self,
        *,
        plan_id: str,
        customer_id: str,
        total_count: int,
        start_at: int,
        notes: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a recurring subscription whose first charge happens at ``start_at``."""
        return await self._request(
            "POST",
            "/subscriptions",
            json_data={
                "plan_id": plan_id,
                "customer_id": customer_id,
                "total_count": total_count,
                "start_at": start_at,
                "customer_notify": 1,
                "notes": dict(notes or {}),
            },
        )

    async def cancel_subscription(
        self,
        subscription_id: str,
        *,
        cancel_at_cycle_end: bool,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/subscriptions/{subscription_id}/cancel",
            json_data={"cancel_at_cycle_end": 1 if cancel_at_cycle_end else 0},
        )

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check the checkout signature for an order payment."""
        return verify_hmac_signature(
            self.config.key_secret,
            f"{order_id}|{payment_id}",
            signature,
        )

    def verify_subscription_signature(
        self,
        subscription_id: str,
        payment_id: str,
        signature: str,
    ) -> bool:
        """Check the checkout signature for a subscription authorisation payment."""
        return verify_hmac_signature(
            self.config.key_secret,
            f"{payment_id}|{subscription_id}",
            signature,
        )

    def verify_webhook_signature(self, body: bytes, signature: str | None) -> bool:
        """Check a webhook body against the ``X-Razorpay-Signature`` header."""
        return verify_hmac_signature(self.config.webhook_secret, body, signature)

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


def _error_description(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"Gateway responded with {response.status_code}"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return str(error["description"])
    return f"Gateway responded with {response.status_code}"


class _PaymentGatewaySingleton:
    """Singleton wrapper for PaymentGatewayClient."""

    _instance: PaymentGatewayClient | None = None

    @classmethod
    def get_instance(cls) -> PaymentGatewayClient:
        if cls._instance is None:
            cls._instance = PaymentGatewayClient()
        return cls._instance


def get_payment_gateway() -> PaymentGatewayClient:
    """Return a singleton payment gateway client instance."""
    return _PaymentGatewaySingleton.get_instance()

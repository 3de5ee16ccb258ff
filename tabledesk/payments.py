from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, TypedDict

import httpx

from .errors import (
    ConfigurationError, GatewayAuthError, UpstreamError, ValidationError,
)

logger = logging.getLogger(__name__)

SECRET_KEY_PREFIX = "FLWSECK-"
PAYMENT_OPTIONS = "card, banktransfer, ussd, mobilemoney"


class Customer(TypedDict, total=False):
    email: str
    phone_number: str
    name: str


class CheckoutRequest(TypedDict):
    tx_ref: str
    amount: float
    currency: str
    redirect_url: str
    customer: Customer
    title: str
    description: str
    meta: Dict[str, Any]


# ----------------------------
# Payment Adapter Interface
# ----------------------------
class PaymentAdapter(ABC):
    @abstractmethod
    async def create_checkout(
        self, http: httpx.AsyncClient, req: CheckoutRequest
    ) -> str:
        """Open a hosted checkout; returns the link to redirect the payer."""

    # (successful?, raw gateway payload)
    @abstractmethod
    async def verify(
        self, http: httpx.AsyncClient, tx_ref: str
    ) -> tuple[bool, Dict[str, Any]]:
        ...


# ----------------------------
# Flutterwave-style hosted checkout
# ----------------------------
class HostedCheckout(PaymentAdapter):

    def __init__(self, secret_key: str, base_url: str) -> None:
        self.secret_key = (secret_key or "").strip()
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        if not self.secret_key.startswith(SECRET_KEY_PREFIX):
            logger.error("payment secret key is missing or malformed")
            raise ConfigurationError(
                "Invalid payment gateway secret key configuration",
                error=f"Secret key must start with {SECRET_KEY_PREFIX}",
            )
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _check_auth(resp: httpx.Response) -> None:
        # before any body parsing: a 401 page need not be JSON
        if resp.status_code not in (401, 403):
            return
        try:
            body = resp.json()
        except ValueError:
            body = None
        message = body.get("message") if isinstance(body, dict) else None
        logger.error("payment gateway rejected our key: %s",
                     message or resp.text[:200])
        raise GatewayAuthError(
            "Invalid payment gateway authorization key",
            error=message or "Unauthorized",
        )

    @staticmethod
    def _json(resp: httpx.Response) -> Dict[str, Any]:
        try:
            return resp.json()
        except ValueError:
            logger.error("payment gateway sent non-JSON: %.200s", resp.text)
            raise UpstreamError(
                "Invalid response from payment gateway",
                error=resp.text[:200],
            )

    async def create_checkout(
        self, http: httpx.AsyncClient, req: CheckoutRequest
    ) -> str:
        headers = self._headers()
        payload = {
            "tx_ref": req["tx_ref"],
            "amount": req["amount"],
            "currency": req["currency"],
            "redirect_url": req["redirect_url"],
            "payment_options": PAYMENT_OPTIONS,
            "customer": req["customer"],
            "customizations": {
                "title": req["title"],
                "description": req["description"],
            },
            "meta": req["meta"],
        }
        try:
            resp = await http.post(
                f"{self.base_url}/payments", json=payload, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error("payment gateway unreachable: %s", e)
            raise UpstreamError("Error initializing payment", error=str(e))

        self._check_auth(resp)
        data = self._json(resp)
        link = (data.get("data") or {}).get("link")
        if data.get("status") != "success" or not link:
            logger.error("payment initialization failed: %s", data)
            raise UpstreamError(
                data.get("message") or "Failed to initialize payment",
                error=data,
            )
        return link

    async def verify(
        self, http: httpx.AsyncClient, tx_ref: str
    ) -> tuple[bool, Dict[str, Any]]:
        headers = self._headers()
        try:
            resp = await http.get(
                f"{self.base_url}/transactions/verify_by_reference",
                params={"tx_ref": tx_ref},
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error("payment gateway unreachable: %s", e)
            raise UpstreamError("Error verifying payment", error=str(e))

        self._check_auth(resp)
        data = self._json(resp)
        tx = data.get("data") or {}
        ok = data.get("status") == "success" and \
            tx.get("status") == "successful"
        return ok, data


def parse_amount(raw: Any) -> float:
    try:
        amount = float(raw)
    except (TypeError, ValueError):
        raise ValidationError("Invalid payment amount")
    if amount <= 0:
        raise ValidationError("Invalid payment amount")
    return amount


def customer_name(user_id: str) -> str:
    return f"User {user_id[:8]}"

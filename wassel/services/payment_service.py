# wassel/services/payment_service.py
"""
Stripe payment intents over the REST API (form-encoded, basic auth via the
secret key). One call per booking; no retry, no idempotency key.
"""

from typing import Any

import httpx

from wassel.config import Settings
from wassel.infrastructure.observability.logging import get_logger
from wassel.models.api.payment_request import PaymentIntentRequest, PaymentIntentResponse
from wassel.services.upstream import UpstreamConfigError, send_upstream

logger = get_logger(__name__)

UPSTREAM = "stripe"
PLATFORM_TAG = "wassel"


def to_minor_units(amount: float) -> int:
    """Major currency units -> cents, rounded half away from zero."""
    return int(amount * 100 + (0.5 if amount >= 0 else -0.5))


def encode_intent_form(request: PaymentIntentRequest) -> dict[str, Any]:
    """Flatten the intent into Stripe's bracketed form fields."""
    form: dict[str, Any] = {
        "amount": to_minor_units(request.amount),
        "currency": request.currency.lower(),
        "automatic_payment_methods[enabled]": "true",
    }
    if request.customer_id:
        form["customer"] = request.customer_id

    metadata = {**request.metadata, "platform": PLATFORM_TAG}
    for key, value in metadata.items():
        form[f"metadata[{key}]"] = value
    return form


class PaymentService:
    def __init__(self, http: httpx.AsyncClient, secret_key: str | None, api_base: str):
        self._http = http
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient, settings: Settings) -> "PaymentService":
        return cls(http, settings.STRIPE_SECRET_KEY, settings.STRIPE_API_BASE)

    async def create_payment_intent(self, request: PaymentIntentRequest) -> PaymentIntentResponse:
        if not self.secret_key:
            raise UpstreamConfigError(UPSTREAM)

        response = await send_upstream(
            self._http,
            UPSTREAM,
            "POST",
            f"{self.api_base}/payment_intents",
            data=encode_intent_form(request),
            auth=(self.secret_key, ""),
            error_message="Failed to create payment intent",
            error_status=400,
        )

        intent = response.json()
        logger.info(
            "Payment intent created",
            payment_intent_id=intent.get("id"),
            amount=request.amount,
            currency=request.currency,
        )
        return PaymentIntentResponse(
            client_secret=intent.get("client_secret"),
            payment_intent_id=intent["id"],
        )

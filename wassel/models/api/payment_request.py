# wassel/models/api/payment_request.py
"""
Payment API request/response models.
Used by routes for input validation.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class PaymentIntentRequest(BaseModel):
    """Request for creating a payment intent for a ride booking."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    amount: float = Field(..., gt=0, description="Amount in major currency units")
    currency: str = Field(default="usd", min_length=3, max_length=3)
    metadata: dict[str, str] = Field(default_factory=dict)
    customer_id: str | None = Field(default=None, description="Stripe customer id")


class PaymentIntentResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    client_secret: str | None
    payment_intent_id: str

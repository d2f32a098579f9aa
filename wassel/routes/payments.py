# wassel/routes/payments.py
from fastapi import APIRouter, Depends

from wassel.models.api.payment_request import PaymentIntentRequest, PaymentIntentResponse
from wassel.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/intent", response_model=PaymentIntentResponse, response_model_by_alias=True)
async def create_payment_intent(
    body: PaymentIntentRequest,
    services: ServiceContainer = Depends(get_services),
):
    """Create a Stripe payment intent for a ride booking."""
    return await services.payments.create_payment_intent(body)

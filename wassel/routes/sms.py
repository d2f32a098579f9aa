# wassel/routes/sms.py
from fastapi import APIRouter, Depends

from wassel.middleware.rate_limit_dependencies import rate_limit_sms_recipient
from wassel.models.api.sms_request import SmsSendRequest, SmsSendResponse
from wassel.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/api/sms", tags=["sms"])


@router.post("/send", response_model=SmsSendResponse, response_model_by_alias=True)
async def send_sms(
    body: SmsSendRequest,
    _rate: None = Depends(rate_limit_sms_recipient),
    services: ServiceContainer = Depends(get_services),
):
    return await services.sms.send(body)

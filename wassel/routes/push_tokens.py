# wassel/routes/push_tokens.py
from fastapi import APIRouter, Depends

from wassel.middleware.rate_limit_dependencies import rate_limit_ip
from wassel.models.api.push_token_request import RegisterPushTokenRequest, UnregisterPushTokenRequest
from wassel.models.api.trip_request import OkResponse
from wassel.services.container import ServiceContainer, get_services

router = APIRouter(prefix="/api/push-tokens", tags=["push-tokens"])


@router.post("/register", response_model=OkResponse)
async def register_push_token(
    body: RegisterPushTokenRequest,
    _rate: None = Depends(rate_limit_ip),
    services: ServiceContainer = Depends(get_services),
):
    await services.push_tokens.register(body.token, body.user_id)
    return OkResponse()


@router.post("/unregister", response_model=OkResponse)
async def unregister_push_token(
    body: UnregisterPushTokenRequest,
    _rate: None = Depends(rate_limit_ip),
    services: ServiceContainer = Depends(get_services),
):
    await services.push_tokens.unregister(body.token)
    return OkResponse()

# wassel/services/sms_service.py
import httpx

from wassel.config import Settings
from wassel.infrastructure.observability.logging import get_logger
from wassel.models.api.sms_request import SmsSendRequest, SmsSendResponse
from wassel.services.upstream import UpstreamConfigError, send_upstream

logger = get_logger(__name__)

UPSTREAM = "twilio"


class SmsService:
    """Sends SMS through Twilio's Messages resource."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        api_base: str,
    ):
        self._http = http
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.api_base = api_base.rstrip("/")

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient, settings: Settings) -> "SmsService":
        return cls(
            http,
            settings.TWILIO_ACCOUNT_SID,
            settings.TWILIO_AUTH_TOKEN,
            settings.TWILIO_PHONE_NUMBER,
            settings.TWILIO_API_BASE,
        )

    async def send(self, request: SmsSendRequest) -> SmsSendResponse:
        if not (self.account_sid and self.auth_token and self.from_number):
            raise UpstreamConfigError(UPSTREAM)

        response = await send_upstream(
            self._http,
            UPSTREAM,
            "POST",
            f"{self.api_base}/Accounts/{self.account_sid}/Messages.json",
            data={"To": request.to, "From": self.from_number, "Body": request.message},
            auth=(self.account_sid, self.auth_token),
            error_message="Failed to send SMS",
            error_status=400,
        )

        data = response.json()
        # Log the destination suffix only
        logger.info("SMS sent", message_sid=data.get("sid"), to_suffix=request.to[-4:], sms_type=request.type)
        return SmsSendResponse(message_sid=data["sid"], status=data.get("status"))

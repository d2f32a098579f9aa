import base64
import json
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from wassel.config import Settings
from wassel.main import create_app
from wassel.services.container import ServiceContainer

SUPABASE = "https://proj.supabase.co"
CONFIGURED = {
    "SUPABASE_URL": SUPABASE,
    "SUPABASE_ANON_KEY": "anon-key",
    "SUPABASE_SERVICE_ROLE_KEY": "service-key",
    "STRIPE_SECRET_KEY": "sk_test",
    "TWILIO_ACCOUNT_SID": "AC1",
    "TWILIO_AUTH_TOKEN": "twilio-token",
    "TWILIO_PHONE_NUMBER": "+15550000000",
}


class Upstreams:
    """Records every upstream call and answers from `responses` by (method, path)."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: dict[tuple[str, str], httpx.Response] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"message": "no route"})
        return response

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]


@pytest.fixture
def upstreams():
    return Upstreams()


@pytest.fixture
def make_client(upstreams, apply_auth_override):
    def _make(**fields) -> TestClient:
        settings = Settings(_env_file=None, **{**CONFIGURED, **fields})
        transport = httpx.MockTransport(upstreams)
        app = create_app(services_factory=lambda: ServiceContainer(settings, transport=transport))
        apply_auth_override(app)
        return TestClient(app)

    return _make


def test_offline_trip_sync_upserts_row(make_client, upstreams):
    upstreams.responses[("POST", "/rest/v1/offline_trips")] = httpx.Response(201)
    body = {"id": "trip-1", "userId": "u1", "type": "booking", "data": {"seats": 2}, "timestamp": 0}

    with make_client() as client:
        response = client.post("/api/trips/sync", json=body)

    assert response.status_code == 200
    assert response.json() == {"ok": True, "id": "trip-1"}

    sent = upstreams.calls("POST", "/rest/v1/offline_trips")[0]
    assert sent.url.params["on_conflict"] == "id"
    assert "resolution=merge-duplicates" in sent.headers["Prefer"]
    assert sent.headers["apikey"] == "service-key"
    assert json.loads(sent.content) == {
        "id": "trip-1",
        "user_id": "u1",
        "type": "booking",
        "data": {"seats": 2},
        "created_at": "1970-01-01T00:00:00+00:00",
    }


def test_offline_message_sync(make_client, upstreams):
    upstreams.responses[("POST", "/rest/v1/messages")] = httpx.Response(201)
    body = {"id": "m1", "conversationId": "c1", "senderId": "u1", "content": "hi", "timestamp": 1000}

    with make_client() as client:
        response = client.post("/api/messages/sync", json=body)

    assert response.json() == {"ok": True, "id": "m1"}
    assert json.loads(upstreams.requests[0].content)["conversation_id"] == "c1"


def test_malformed_body_is_400(make_client, upstreams):
    with make_client() as client:
        bad_json = client.post(
            "/api/trips/sync", content=b"{not json", headers={"content-type": "application/json"}
        )
        missing_field = client.post("/api/trips/sync", json={"id": "t1", "type": "booking"})

    assert bad_json.status_code == 400
    assert bad_json.json()["error"] == "Invalid request body"
    assert missing_field.status_code == 400
    assert upstreams.requests == []


def test_missing_supabase_config_is_500(make_client, upstreams):
    with make_client(SUPABASE_SERVICE_ROLE_KEY=None) as client:
        response = client.post("/api/trips/update", json={"tripId": "T1", "updates": {"status": "done"}})

    assert response.status_code == 500
    assert response.json() == {"error": "Missing supabase config"}
    assert upstreams.requests == []


def test_supabase_error_details_are_surfaced(make_client, upstreams):
    upstreams.responses[("POST", "/rest/v1/offline_trips")] = httpx.Response(
        409, json={"code": "23505", "message": "duplicate key"}
    )
    body = {"id": "trip-1", "userId": "u1", "type": "history", "timestamp": 5}

    with make_client() as client:
        response = client.post("/api/trips/sync", json=body)

    assert response.status_code == 500
    assert response.json() == {
        "error": "Failed to sync trip",
        "details": {"code": "23505", "message": "duplicate key"},
    }


def test_trip_reads_are_cached_until_updated(make_client, upstreams):
    upstreams.responses[("GET", "/rest/v1/trips")] = httpx.Response(200, json=[{"id": "T1", "status": "active"}])
    upstreams.responses[("PATCH", "/rest/v1/trips")] = httpx.Response(204)

    with make_client() as client:
        first = client.get("/api/trips/T1")
        second = client.get("/api/trips/T1")
        update = client.post("/api/trips/update", json={"tripId": "T1", "updates": {"status": "done"}})
        third = client.get("/api/trips/T1")

    assert first.json() == {"id": "T1", "status": "active"}
    assert second.json() == first.json()
    assert update.json() == {"ok": True}
    assert third.status_code == 200
    assert len(upstreams.calls("GET", "/rest/v1/trips")) == 2

    read = upstreams.calls("GET", "/rest/v1/trips")[0]
    assert read.url.params["id"] == "eq.T1"
    assert read.headers["apikey"] == "anon-key"

    patch = upstreams.calls("PATCH", "/rest/v1/trips")[0]
    assert patch.headers["apikey"] == "service-key"
    assert json.loads(patch.content) == {"status": "done"}


def test_unknown_trip_is_null(make_client, upstreams):
    upstreams.responses[("GET", "/rest/v1/trips")] = httpx.Response(200, json=[])

    with make_client() as client:
        response = client.get("/api/trips/missing")

    assert response.status_code == 200
    assert response.json() is None


def test_update_requires_changes(make_client):
    with make_client() as client:
        response = client.post("/api/trips/update", json={"tripId": "T1", "updates": {}})

    assert response.status_code == 400


def test_payment_intent_is_form_encoded_for_stripe(make_client, upstreams):
    upstreams.responses[("POST", "/v1/payment_intents")] = httpx.Response(
        200, json={"id": "pi_123", "client_secret": "pi_123_secret"}
    )

    with make_client() as client:
        response = client.post(
            "/api/payments/intent",
            json={"amount": 12.5, "currency": "JOD", "metadata": {"tripId": "T1"}, "customerId": "cus_1"},
        )

    assert response.status_code == 200
    assert response.json() == {"clientSecret": "pi_123_secret", "paymentIntentId": "pi_123"}

    sent = upstreams.requests[0]
    form = {k: v[0] for k, v in parse_qs(sent.content.decode()).items()}
    assert form == {
        "amount": "1250",
        "currency": "jod",
        "automatic_payment_methods[enabled]": "true",
        "customer": "cus_1",
        "metadata[tripId]": "T1",
        "metadata[platform]": "wassel",
    }
    assert sent.headers["authorization"] == "Basic " + base64.b64encode(b"sk_test:").decode()


def test_payment_rejects_non_positive_amount(make_client, upstreams):
    with make_client() as client:
        response = client.post("/api/payments/intent", json={"amount": 0})

    assert response.status_code == 400
    assert upstreams.requests == []


def test_stripe_error_is_400_with_details(make_client, upstreams):
    upstreams.responses[("POST", "/v1/payment_intents")] = httpx.Response(
        402, json={"error": {"message": "card_declined"}}
    )

    with make_client() as client:
        response = client.post("/api/payments/intent", json={"amount": 3})

    assert response.status_code == 400
    assert response.json()["error"] == "Failed to create payment intent"
    assert response.json()["details"] == {"error": {"message": "card_declined"}}


def test_missing_stripe_key_is_500(make_client):
    with make_client(STRIPE_SECRET_KEY=None) as client:
        response = client.post("/api/payments/intent", json={"amount": 3})

    assert response.status_code == 500
    assert response.json() == {"error": "Missing stripe config"}


def test_sms_send_goes_through_twilio(make_client, upstreams):
    upstreams.responses[("POST", "/2010-04-01/Accounts/AC1/Messages.json")] = httpx.Response(
        201, json={"sid": "SM1", "status": "queued"}
    )

    with make_client() as client:
        response = client.post("/api/sms/send", json={"to": "+962790000000", "message": "Driver arriving"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "messageSid": "SM1", "status": "queued"}

    form = {k: v[0] for k, v in parse_qs(upstreams.requests[0].content.decode()).items()}
    assert form == {"To": "+962790000000", "From": "+15550000000", "Body": "Driver arriving"}


def test_sms_rejects_non_e164_number(make_client, upstreams):
    with make_client() as client:
        response = client.post("/api/sms/send", json={"to": "0790000000", "message": "hi"})

    assert response.status_code == 400
    assert upstreams.requests == []


def test_twilio_error_is_400(make_client, upstreams):
    upstreams.responses[("POST", "/2010-04-01/Accounts/AC1/Messages.json")] = httpx.Response(
        400, json={"code": 21211, "message": "Invalid 'To' Phone Number"}
    )

    with make_client() as client:
        response = client.post("/api/sms/send", json={"to": "+15551234567", "message": "hi"})

    assert response.status_code == 400
    assert response.json()["details"]["code"] == 21211


def test_push_token_register_and_unregister(make_client, upstreams):
    upstreams.responses[("POST", "/rest/v1/push_tokens")] = httpx.Response(201)
    upstreams.responses[("DELETE", "/rest/v1/push_tokens")] = httpx.Response(204)

    with make_client() as client:
        registered = client.post("/api/push-tokens/register", json={"token": "tok-1", "userId": "u1"})
        unregistered = client.post("/api/push-tokens/unregister", json={"token": "tok-1"})

    assert registered.json() == {"ok": True}
    assert unregistered.json() == {"ok": True}

    row = json.loads(upstreams.calls("POST", "/rest/v1/push_tokens")[0].content)
    assert row["token"] == "tok-1" and row["user_id"] == "u1"
    assert upstreams.calls("DELETE", "/rest/v1/push_tokens")[0].url.params["token"] == "eq.tok-1"


def test_upstream_network_failure_is_surfaced():
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    settings = Settings(_env_file=None, **CONFIGURED)
    app = create_app(
        services_factory=lambda: ServiceContainer(settings, transport=httpx.MockTransport(unreachable))
    )

    with TestClient(app) as client:
        response = client.post("/api/payments/intent", json={"amount": 3})

    assert response.status_code == 400
    assert "connection refused" in response.json()["details"]

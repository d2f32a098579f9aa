import jwt
import pytest
from fastapi import HTTPException

from wassel.auth import verify


class RejectingJWKClient:
    def get_signing_key_from_jwt(self, token):
        raise jwt.PyJWKClientError("no matching key")


def test_missing_supabase_config_is_500(monkeypatch):
    monkeypatch.setattr(verify, "_jwk_client", None)
    monkeypatch.setattr(verify.settings, "SUPABASE_URL", None)
    monkeypatch.setattr(verify.settings, "SUPABASE_JWKS_URL", None)

    with pytest.raises(HTTPException) as exc_info:
        verify.verify_jwt("token")

    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == "Missing supabase config"


def test_jwks_url_derived_from_project_url(monkeypatch):
    monkeypatch.setattr(verify.settings, "SUPABASE_URL", "https://proj.supabase.co/")
    monkeypatch.setattr(verify.settings, "SUPABASE_JWKS_URL", None)

    assert verify.settings.jwks_url() == "https://proj.supabase.co/auth/v1/.well-known/jwks.json"
    assert verify.settings.project_ref() == "proj"


def test_invalid_token_is_401(monkeypatch):
    monkeypatch.setattr(verify, "_jwk_client", RejectingJWKClient())

    with pytest.raises(HTTPException) as exc_info:
        verify.verify_jwt("not-a-jwt")

    assert exc_info.value.status_code == 401
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

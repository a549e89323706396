import pytest
from fastapi import HTTPException
from jose import jwt
from pydantic import SecretStr
from starlette.requests import Request

from app.core.config import settings
from app.services.auth_service import get_current_shop


def _request(authorization: str = "") -> Request:
    headers = [(b"authorization", authorization.encode())] if authorization else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


@pytest.fixture()
def app_secret(monkeypatch):
    monkeypatch.setattr(settings, "SHOPIFY_API_SECRET", SecretStr("s3cret"))
    monkeypatch.setattr(settings, "SHOPIFY_API_KEY", "api-key")
    return "s3cret"


def test_no_secret_falls_back_to_configured_shop(monkeypatch):
    monkeypatch.setattr(settings, "SHOPIFY_API_SECRET", None)
    assert get_current_shop(_request()).shop == settings.SHOPIFY_SHOP


def test_valid_session_token_resolves_shop(app_secret):
    token = jwt.encode(
        {"dest": "https://gifts.myshopify.com", "aud": "api-key", "sub": "42"},
        app_secret, algorithm="HS256",
    )
    ctx = get_current_shop(_request(f"Bearer {token}"))
    assert ctx.shop == "gifts.myshopify.com"
    assert ctx.user_id == "42"


def test_wrong_signature_is_401(app_secret):
    token = jwt.encode({"dest": "https://gifts.myshopify.com", "aud": "api-key"}, "other", algorithm="HS256")
    with pytest.raises(HTTPException) as exc:
        get_current_shop(_request(f"Bearer {token}"))
    assert exc.value.status_code == 401


def test_missing_header_is_401(app_secret):
    with pytest.raises(HTTPException) as exc:
        get_current_shop(_request())
    assert exc.value.detail == "Not authenticated"


def test_token_without_dest_is_401(app_secret):
    token = jwt.encode({"aud": "api-key"}, app_secret, algorithm="HS256")
    with pytest.raises(HTTPException) as exc:
        get_current_shop(_request(f"Bearer {token}"))
    assert exc.value.detail == "Session token missing shop"

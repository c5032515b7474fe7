"""JWT helpers: claims, expiry, tampering, token types."""

import json
from datetime import timedelta

import jwt as pyjwt
import pytest

from comityspace.auth.identity import ACCESS_TOKEN, REFRESH_TOKEN, Identity, UserType
from comityspace.auth.jwt import create_access_token, create_refresh_token, verify_token
from comityspace.config import settings
from comityspace.errors import InvalidTokenError


def _volunteer() -> Identity:
    return Identity(
        id=7,
        email="sam@example.org",
        user_type=UserType.VOLUNTEER,
        role="volunteer",
        organization_id=3,
        organization_name="Harbor Food Bank",
    )


def test_access_token_carries_identity_claims():
    payload = verify_token(create_access_token(_volunteer()), ACCESS_TOKEN)
    assert payload["userId"] == 7
    assert payload["email"] == "sam@example.org"
    assert payload["userType"] == "volunteer"
    assert payload["role"] == "volunteer"
    assert payload["organizationId"] == 3
    assert payload["organizationName"] == "Harbor Food Bank"
    assert payload["type"] == "access"


def test_access_token_lifetime_matches_settings():
    payload = verify_token(create_access_token(_volunteer()))
    assert payload["exp"] - payload["iat"] == settings.access_token_expire_minutes * 60


def test_refresh_token_is_minimal():
    """Role and organization are re-read at refresh time, so they are not in it."""
    payload = verify_token(create_refresh_token(_volunteer()), REFRESH_TOKEN)
    claims = set(payload) - {"iat", "exp", "type"}
    assert claims == {"userId", "userType"}
    assert payload["exp"] - payload["iat"] == settings.refresh_token_expire_days * 86400


def test_expired_token_rejected():
    token = create_access_token(_volunteer(), expires_delta=timedelta(seconds=-1))
    with pytest.raises(InvalidTokenError):
        verify_token(token)


def test_tampered_token_rejected():
    """Promoting yourself in the payload breaks the signature."""
    token = create_access_token(_volunteer())
    header, _, signature = token.split(".")
    forged_payload = pyjwt.utils.base64url_encode(
        json.dumps({"userId": 7, "userType": "super_admin", "type": "access"}).encode()
    ).decode()
    with pytest.raises(InvalidTokenError):
        verify_token(f"{header}.{forged_payload}.{signature}")


def test_token_signed_with_other_secret_rejected():
    forged = pyjwt.encode(
        {"userId": 1, "userType": "super_admin", "type": "access", "iat": 0, "exp": 2**31},
        "not-the-real-secret",
        algorithm="HS256",
    )
    with pytest.raises(InvalidTokenError):
        verify_token(forged)


def test_refresh_token_not_accepted_as_access_token():
    with pytest.raises(InvalidTokenError):
        verify_token(create_refresh_token(_volunteer()), ACCESS_TOKEN)


def test_access_token_not_accepted_as_refresh_token():
    with pytest.raises(InvalidTokenError):
        verify_token(create_access_token(_volunteer()), REFRESH_TOKEN)


def test_garbage_rejected_with_generic_message():
    with pytest.raises(InvalidTokenError) as exc:
        verify_token("not.a.jwt")
    assert exc.value.message == "Invalid or expired token"

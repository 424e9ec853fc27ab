"""
Tests for bearer-token authentication.
"""
from datetime import timedelta

from fastapi import status

from contract_analysis.utils.auth import create_access_token, decode_access_token

ENTITLEMENTS_URL = "/api/billing/entitlements"


def test_missing_token(client):
    """Requests without a bearer token get a JSON 401."""
    response = client.get(ENTITLEMENTS_URL)

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"error": "unauthorized", "message": "Authentication required"}
    assert response.headers["www-authenticate"] == "Bearer"


def test_invalid_token(client):
    response = client.get(ENTITLEMENTS_URL, headers={"Authorization": "Bearer invalid_token"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["message"] == "Could not validate credentials"


def test_expired_token(client, make_user):
    user = make_user()
    token = create_access_token({"sub": user.id}, expires_delta=timedelta(minutes=-5))

    response = client.get(ENTITLEMENTS_URL, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_unknown_user(client):
    token = create_access_token({"sub": "no-such-user"})

    response = client.get(ENTITLEMENTS_URL, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_valid_token(client, make_user, auth_headers):
    """Test that a valid token reaches a protected route."""
    user = make_user()

    response = client.get(ENTITLEMENTS_URL, headers=auth_headers(user))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["plan"] == "FREE"


def test_token_round_trip():
    token = create_access_token({"sub": "user-1"})

    payload = decode_access_token(token)

    assert payload["sub"] == "user-1"
    assert "exp" in payload
    assert decode_access_token(token + "x") is None

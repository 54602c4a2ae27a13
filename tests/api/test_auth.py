from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from fastapi.testclient import TestClient

from tenantgate.services import token_service
from tests.conftest import add_test_member, auth, create_test_org, create_test_user, mint_token


def test_expired_token(client: TestClient) -> None:
    user = create_test_user()
    token = token_service.create_access_token(
        sub=str(user.id), email=user.email, ttl=timedelta(seconds=-1)
    )

    r = client.get("/auth/me", headers=auth(token))

    assert r.status_code == 401
    assert r.json()["detail"] == "Token expired"
    assert r.headers["WWW-Authenticate"] == "Bearer"


def test_garbage_token(client: TestClient) -> None:
    r = client.get("/auth/me", headers=auth("not.a.jwt"))
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid token"


def test_non_uuid_subject(client: TestClient) -> None:
    r = client.get("/auth/me", headers=auth(mint_token("alice")))
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid token subject"


def test_unknown_user(client: TestClient) -> None:
    r = client.get("/auth/me", headers=auth(mint_token(uuid4())))
    assert r.status_code == 401
    assert r.json()["detail"] == "User not found"


def test_domain_401_carries_challenge(client: TestClient) -> None:
    org = create_test_org("acme")
    ghost = uuid4()
    add_test_member(org.id, ghost, "owner")

    r = client.get("/v1/orgs/current", headers=auth(mint_token(ghost)))

    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"


def test_token_from_identity_provider(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    provider_key = ec.generate_private_key(ec.SECP256R1())
    pem = provider_key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    settings = replace(
        token_service.SETTINGS,
        jwt_public_key=pem.decode(),
        jwt_issuer="https://id.example.com",
        jwt_audience="tenantgate-api",
    )
    monkeypatch.setattr(token_service, "_verifier", token_service.build_verifier(settings))
    user = create_test_user("idp@example.com", "Ida")
    now = datetime.now(UTC)
    token = jwt.encode(
        {
            "sub": str(user.id),
            "email": user.email,
            "sid": "browser-1",
            "iss": "https://id.example.com",
            "aud": "tenantgate-api",
            "exp": now + timedelta(minutes=5),
            "iat": now,
            "jti": str(uuid4()),
        },
        provider_key,
        algorithm="ES256",
    )

    r = client.get("/auth/me", headers=auth(token))
    assert r.status_code == 200
    assert r.json()["email"] == "idp@example.com"

    # Locally signed tokens no longer verify.
    r = client.get("/auth/me", headers=auth(mint_token(user)))
    assert r.status_code == 401

from __future__ import annotations

import time

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jose import jwt

from transcript_annotator.config import settings
from transcript_annotator.database import get_db
from transcript_annotator.main import create_app
from transcript_annotator.services.auth import InvalidSessionToken, extract_token, verify_session_token

from conftest import TestingSessionLocal


def _pem_pair():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


PRIVATE_PEM, PUBLIC_PEM = _pem_pair()


@pytest.fixture()
def clerk_key(monkeypatch):
    monkeypatch.setattr(settings, "CLERK_JWT_KEY", PUBLIC_PEM)
    monkeypatch.setattr(settings, "CLERK_AUTHORIZED_PARTIES", "http://localhost:3000")
    monkeypatch.setattr(settings, "CLERK_ISSUER", "")


def _token(**overrides) -> str:
    now = int(time.time())
    claims = {"sub": "auth_u1", "azp": "http://localhost:3000", "iat": now, "nbf": now - 5, "exp": now + 300}
    claims.update(overrides)
    claims = {k: v for k, v in claims.items() if v is not None}
    return jwt.encode(claims, PRIVATE_PEM, algorithm="RS256")


def test_extract_token_prefers_bearer_header():
    assert extract_token("Bearer abc", "cookie") == "abc"
    assert extract_token("bearer  abc ", None) == "abc"
    assert extract_token("Basic abc", " cookie ") == "cookie"
    assert extract_token("Bearer ", None) is None
    assert extract_token(None, None) is None


def test_valid_token_yields_claims(clerk_key):
    claims = verify_session_token(_token())

    assert claims["sub"] == "auth_u1"


def test_escaped_newlines_in_key_are_restored(monkeypatch):
    monkeypatch.setattr(settings, "CLERK_JWT_KEY", PUBLIC_PEM.replace("\n", "\\n"))
    monkeypatch.setattr(settings, "CLERK_AUTHORIZED_PARTIES", "")

    assert verify_session_token(_token())["sub"] == "auth_u1"


@pytest.mark.parametrize("overrides", [
    {"exp": int(time.time()) - 60},
    {"azp": "https://evil.example.com"},
    {"sub": None},
])
def test_untrusted_tokens_are_rejected(clerk_key, overrides):
    with pytest.raises(InvalidSessionToken):
        verify_session_token(_token(**overrides))


def test_token_signed_with_other_key_is_rejected(clerk_key):
    other_private, _ = _pem_pair()
    forged = jwt.encode({"sub": "auth_u1", "exp": int(time.time()) + 300}, other_private, algorithm="RS256")

    with pytest.raises(InvalidSessionToken):
        verify_session_token(forged)


def test_unconfigured_key_rejects_everything(monkeypatch):
    monkeypatch.setattr(settings, "CLERK_JWT_KEY", "")

    with pytest.raises(InvalidSessionToken):
        verify_session_token(_token())


@pytest.fixture()
def real_auth_client(db):
    app = create_app()

    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def test_route_accepts_bearer_and_cookie_sessions(clerk_key, real_auth_client, world):
    url = f"/api/annotator/transcripts/{world.t1}/scavenger-hunt"

    by_header = real_auth_client.get(url, headers={"Authorization": f"Bearer {_token()}"})
    real_auth_client.cookies.set("__session", _token())
    by_cookie = real_auth_client.get(url)

    assert by_header.status_code == 200
    assert by_cookie.status_code == 200


def test_route_rejects_bad_session(clerk_key, real_auth_client, world):
    url = f"/api/annotator/transcripts/{world.t1}/scavenger-hunt"

    anonymous = real_auth_client.get(url)
    tampered = real_auth_client.get(url, headers={"Authorization": f"Bearer {_token()}x"})

    assert anonymous.status_code == 401
    assert tampered.status_code == 401
    assert tampered.json() == {"success": False, "error": "Unauthorized"}

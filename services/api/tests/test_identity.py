from datetime import datetime, timedelta, timezone

import jwt
import pytest
from jwt import PyJWKClientError

from wsp_api.core import identity as identity_module
from wsp_api.core.config import Settings
from wsp_api.core.identity import IdentityProviderError, JwtIdentityProvider, extract_bearer_token

from conftest import TEST_SECRET

SUBJECT = "407e4af9-208b-4af7-8b17-dac60f3ebb30"


def _encode(claims: dict, secret: str = TEST_SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def _future(seconds: int = 600) -> int:
    return int((datetime.now(timezone.utc) + timedelta(seconds=seconds)).timestamp())


def test_issued_token_verifies_to_same_subject(settings):
    provider = JwtIdentityProvider(settings)
    token, expires_at = provider.issue_access_token(subject=SUBJECT, email="alice@example.com", name="Alice")

    identity = provider.verify(token)

    assert identity is not None
    assert identity.subject == SUBJECT
    assert identity.email == "alice@example.com"
    assert identity.name == "Alice"
    assert expires_at > datetime.now(timezone.utc)


def test_token_signed_with_other_secret_is_rejected(settings):
    provider = JwtIdentityProvider(settings)
    token = _encode({"sub": SUBJECT, "exp": _future()}, secret="another-secret-that-is-also-32-bytes-long")

    with pytest.raises(IdentityProviderError):
        provider.verify(token)


def test_expired_token_is_rejected(settings):
    provider = JwtIdentityProvider(settings)
    token = _encode({"sub": SUBJECT, "exp": _future(-3600)})

    with pytest.raises(IdentityProviderError):
        provider.verify(token)


def test_malformed_token_is_rejected(settings):
    with pytest.raises(IdentityProviderError):
        JwtIdentityProvider(settings).verify("not-a-jwt")


def test_token_without_subject_yields_no_identity(settings):
    token = _encode({"email": "alice@example.com", "exp": _future()})
    assert JwtIdentityProvider(settings).verify(token) is None


def test_name_falls_back_to_preferred_username(settings):
    token = _encode({"sub": SUBJECT, "preferred_username": "alice", "exp": _future()})
    identity = JwtIdentityProvider(settings).verify(token)
    assert identity.name == "alice"
    assert identity.email is None


def test_issuer_and_audience_are_enforced_when_configured():
    settings = Settings(
        auth_jwt_secret=TEST_SECRET,
        auth_jwt_issuer="https://idp.example.com",
        auth_jwt_audience="wsp-api",
    )
    provider = JwtIdentityProvider(settings)
    token, _ = provider.issue_access_token(subject=SUBJECT)
    assert provider.verify(token).subject == SUBJECT

    foreign = _encode({"sub": SUBJECT, "iss": "https://other.example.com", "aud": "wsp-api", "exp": _future()})
    with pytest.raises(IdentityProviderError):
        provider.verify(foreign)


def test_unreachable_key_set_is_a_verification_failure(monkeypatch):
    settings = Settings(auth_jwks_url="https://idp.example.com/.well-known/jwks.json", auth_jwt_algorithms="RS256")

    class _UnreachableClient:
        def get_signing_key_from_jwt(self, token):
            raise PyJWKClientError("Fail to fetch data from the url")

    monkeypatch.setattr(identity_module, "_get_jwks_client", lambda url, timeout: _UnreachableClient())
    token = _encode({"sub": SUBJECT, "exp": _future()})

    with pytest.raises(IdentityProviderError):
        JwtIdentityProvider(settings).verify(token)


def test_token_issuing_is_disabled_with_remote_key_set():
    settings = Settings(auth_jwks_url="https://idp.example.com/.well-known/jwks.json")
    with pytest.raises(IdentityProviderError):
        JwtIdentityProvider(settings).issue_access_token(subject=SUBJECT)


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        (None, None),
        ("", None),
        ("Basic dXNlcjpwYXNz", None),
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("bearer abc.def.ghi", "abc.def.ghi"),
        ("Bearer first.token, Bearer second.token", "second.token"),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected

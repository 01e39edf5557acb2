import asyncio

import pytest

from caseboard_ai.core.auth import HmacTokenVerifier, extract_bearer_token, mint_token
from caseboard_ai.core.errors import AuthError, ConfigurationError

SECRET = "unit-test-secret"
NOW = 1_700_000_000


def test_minted_token_verifies_to_subject():
    token = mint_token(SECRET, "user-42", ttl_seconds=600, issued_at=NOW)
    assert token.startswith("cb1.")
    assert HmacTokenVerifier(SECRET).verify_sync(token, now_ts=NOW + 10) == "user-42"


def test_async_verify_uses_current_time():
    token = mint_token(SECRET, "user-42")
    assert asyncio.run(HmacTokenVerifier(SECRET).verify(token)) == "user-42"


@pytest.mark.parametrize(
    "token",
    [
        "",
        "not-a-token",
        "cb2.abc.def",
        "cb1.abc",
        "cb1.é.sig",
    ],
)
def test_malformed_tokens_are_rejected(token):
    with pytest.raises(AuthError):
        HmacTokenVerifier(SECRET).verify_sync(token, now_ts=NOW)


def test_signature_from_other_secret_is_rejected():
    token = mint_token("other-secret", "user-42", issued_at=NOW)
    with pytest.raises(AuthError):
        HmacTokenVerifier(SECRET).verify_sync(token, now_ts=NOW)


def test_tampered_payload_is_rejected():
    prefix, payload, sig = mint_token(SECRET, "user-42", issued_at=NOW).split(".")
    forged = mint_token(SECRET, "admin", issued_at=NOW).split(".")[1]
    with pytest.raises(AuthError):
        HmacTokenVerifier(SECRET).verify_sync(f"{prefix}.{forged}.{sig}", now_ts=NOW)


def test_expiry_honours_clock_skew():
    token = mint_token(SECRET, "user-42", ttl_seconds=60, issued_at=NOW)
    verifier = HmacTokenVerifier(SECRET, clock_skew_seconds=30)
    assert verifier.verify_sync(token, now_ts=NOW + 80) == "user-42"
    with pytest.raises(AuthError):
        verifier.verify_sync(token, now_ts=NOW + 100)


def test_token_from_the_future_is_rejected():
    token = mint_token(SECRET, "user-42", issued_at=NOW + 3600)
    with pytest.raises(AuthError):
        HmacTokenVerifier(SECRET).verify_sync(token, now_ts=NOW)


def test_missing_secret_is_a_configuration_error():
    with pytest.raises(ConfigurationError) as exc:
        HmacTokenVerifier("").verify_sync("cb1.a.b")
    assert exc.value.public_message == "Auth service not configured"
    with pytest.raises(ConfigurationError):
        mint_token("", "user-1")


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Bearer abc.def", "abc.def"),
        ("bearer   tok  ", "tok"),
        ("BEARER tok", "tok"),
        ("Basic dXNlcjpwdw==", None),
        ("Bearer", None),
        ("Bearer    ", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_bearer_token(header, expected):
    assert extract_bearer_token(header) == expected

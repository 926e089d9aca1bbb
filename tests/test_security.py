"""Tests for session tokens, password hashing and OAuth state."""

from datetime import datetime, timedelta, UTC

import pytest
from jose import JWTError, jwt

from config import JWT_ALGORITHM, JWT_SECRET
from security import (
    SessionIdentity,
    create_jwt,
    create_oauth_state,
    decode_jwt,
    hash_password,
    identity_from_claims,
    verify_oauth_state,
    verify_password,
)


def test_token_carries_identity_and_thirty_day_expiry():
    now = datetime(2026, 1, 1, tzinfo=UTC)
    token = create_jwt(7, "a@x.com", now=now)
    claims = jwt.get_unverified_claims(token)
    assert claims["userId"] == 7
    assert claims["email"] == "a@x.com"
    assert claims["exp"] - claims["iat"] == 30 * 24 * 3600


def test_decode_valid_token():
    claims = decode_jwt(create_jwt(7, "a@x.com"))
    assert identity_from_claims(claims) == SessionIdentity(user_id=7, email="a@x.com")


def test_expired_token_with_valid_signature_is_rejected():
    """Expiry in the past fails even though the signature is correct."""
    past = datetime.now(UTC) - timedelta(days=31)
    token = create_jwt(7, "a@x.com", now=past)
    with pytest.raises(JWTError):
        decode_jwt(token)


def test_token_signed_with_other_secret_is_rejected():
    token = jwt.encode(
        {"userId": 7, "email": "a@x.com", "exp": datetime.now(UTC) + timedelta(days=1)},
        "not-the-secret",
        algorithm=JWT_ALGORITHM,
    )
    with pytest.raises(JWTError):
        decode_jwt(token)


def test_identity_requires_user_and_email():
    assert identity_from_claims({"userId": 1}) is None
    assert identity_from_claims({"email": "a@x.com"}) is None
    assert identity_from_claims({"userId": "1", "email": "a@x.com"}) is None


def test_oauth_state_is_not_a_session():
    """A state value verifies as state but never as a session identity."""
    state = create_oauth_state("nonce-1")
    assert verify_oauth_state(state, "nonce-1")
    assert identity_from_claims(decode_jwt(state)) is None


def test_session_token_is_not_an_oauth_state():
    assert not verify_oauth_state(create_jwt(1, "a@x.com"), "nonce-1")
    assert not verify_oauth_state(None, "nonce-1")
    assert not verify_oauth_state("garbage", "nonce-1")


def test_oauth_state_is_bound_to_its_nonce():
    """The state only verifies together with the nonce it was minted for."""
    state = create_oauth_state("nonce-1")
    assert not verify_oauth_state(state, "nonce-2")
    assert not verify_oauth_state(state, None)
    assert not verify_oauth_state(state, "")


def test_password_hash_is_salted_and_verifies():
    first = hash_password("longpass")
    second = hash_password("longpass")
    assert first != second
    assert verify_password("longpass", first)
    assert not verify_password("wrongpass", first)


def test_verify_password_without_hash():
    """OAuth-only accounts have no hash; nothing verifies against it."""
    assert not verify_password("anything", None)
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_secret_comes_from_environment():
    assert JWT_SECRET == "test-secret"

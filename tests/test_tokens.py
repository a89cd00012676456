"""Unit tests for auth/tokens.py -- password hashing and typed JWTs.

Covers:
- hash_password / verify_password round trip and malformed hashes
- each token type decodes only as itself
- expired and tampered tokens are rejected
- authenticate_user ignores confirmation status
"""

import pytest

from auth.models import User
from auth.store import UserStore
from auth.tokens import (
    SESSION,
    _encode,
    authenticate_user,
    create_access_token,
    create_invitation_token,
    create_verification_token,
    decode_access_token,
    decode_invitation_token,
    decode_verification_token,
    hash_password,
    verify_password,
)


@pytest.fixture
def store():
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


def test_password_hash_verifies():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


def test_verify_password_malformed_hash():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_access_token_round_trip():
    payload = decode_access_token(create_access_token(7, "ada@example.com"))
    assert payload["user_id"] == 7
    assert payload["sub"] == "ada@example.com"
    assert payload["typ"] == SESSION


def test_token_types_are_not_interchangeable():
    user = User(id=3, email="ada@example.com", first_name="Ada", last_name="Lovelace")
    session = create_access_token(3, "ada@example.com")
    verification = create_verification_token(user)
    invitation = create_invitation_token(carer_id=3, patient_id=9)

    assert decode_access_token(verification) is None
    assert decode_access_token(invitation) is None
    assert decode_verification_token(session) is None
    assert decode_verification_token(invitation) is None
    assert decode_invitation_token(session) is None
    assert decode_invitation_token(verification) is None

    assert decode_verification_token(verification)["user_id"] == 3
    claims = decode_invitation_token(invitation)
    assert (claims["carer_id"], claims["patient_id"]) == (3, 9)


def test_expired_token_rejected():
    token = _encode(SESSION, {"sub": "ada@example.com", "user_id": 1}, -60)
    assert decode_access_token(token) is None


def test_tampered_token_rejected():
    token = create_access_token(1, "ada@example.com")
    head, body, sig = token.split(".")
    tampered = ".".join([head, body, sig[::-1]])
    assert decode_access_token(tampered) is None


def test_token_missing_required_claim_rejected():
    token = _encode(SESSION, {"sub": "ada@example.com"}, 60)
    assert decode_access_token(token) is None


def test_authenticate_user(store):
    store.create_user(
        User(
            email="ada@example.com",
            first_name="Ada",
            last_name="Lovelace",
            hashed_password=hash_password("pw"),
        )
    )
    user = authenticate_user(store, "ADA@example.com", "pw")
    assert user is not None
    assert user.is_confirmed is False
    assert authenticate_user(store, "ada@example.com", "nope") is None
    assert authenticate_user(store, "ghost@example.com", "pw") is None

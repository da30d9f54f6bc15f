from datetime import timedelta

import pytest

from vu_assistant.engines.mail_engine import (
    extract_action_link,
    password_reset_template,
    registration_verification_template,
)
from vu_assistant.utils.auth_utils import (
    create_access_token,
    decode_access_token,
    generate_verification_token,
    hash_password,
    is_valid_email,
    is_valid_password,
    verify_password,
)
from vu_assistant.utils.logging_utils import anonymize_text


def test_password_hash_round_trip():
    hashed = hash_password("Secret123")
    assert hashed != "Secret123"
    assert verify_password("Secret123", hashed)
    assert not verify_password("secret123", hashed)


@pytest.mark.parametrize("stored", ["", None, "not-a-werkzeug-hash"])
def test_verify_password_rejects_unusable_hashes(stored):
    assert not verify_password("Secret123", stored)


def test_access_token_carries_claims():
    token = create_access_token({"userId": "u-1", "email": "a@b.co", "fullName": "A B"})
    payload = decode_access_token(token)
    assert payload["userId"] == "u-1"
    assert payload["fullName"] == "A B"
    assert "exp" in payload


def test_expired_and_tampered_tokens_are_rejected():
    expired = create_access_token({"userId": "u-1"}, expires_delta=timedelta(seconds=-5))
    assert decode_access_token(expired) is None
    assert decode_access_token("definitely.not.ajwt") is None


def test_verification_tokens_are_random_hex():
    first, second = generate_verification_token(), generate_verification_token()
    assert len(first) == 64
    assert first != second
    int(first, 16)


@pytest.mark.parametrize(
    "email, valid",
    [
        ("student@vu.edu.au", True),
        ("a@b.co", True),
        ("missing-at.example.com", False),
        ("two words@vu.edu.au", False),
        ("nodot@localhost", False),
        ("", False),
    ],
)
def test_is_valid_email(email, valid):
    assert is_valid_email(email) is valid


@pytest.mark.parametrize(
    "password, valid",
    [
        ("Secret123", True),
        ("Secret12!", True),
        ("secret123", False),
        ("SECRET123", False),
        ("SecretPass", False),
        ("Sh0rt", False),
        ("Secret 123", False),
    ],
)
def test_is_valid_password(password, valid):
    assert is_valid_password(password) is valid


def test_anonymize_text_masks_pii():
    token = create_access_token({"userId": "u-1"})
    masked = anonymize_text(f"user student@vu.edu.au called +61 3 9919 6100 with {token}")
    assert "student@vu.edu.au" not in masked
    assert "[EMAIL]" in masked
    assert "[PHONE]" in masked
    assert token not in masked


def test_templates_embed_action_link():
    html = registration_verification_template("http://localhost:3000/auth/verify?token=abc", "Sam")
    assert "Hello Sam!" in html
    assert extract_action_link(html) == "http://localhost:3000/auth/verify?token=abc"

    reset = password_reset_template("http://localhost:3000/auth/reset-password?token=xyz", "Sam")
    assert extract_action_link(reset) == "http://localhost:3000/auth/reset-password?token=xyz"


from datetime import datetime, timedelta, timezone

import jwt
import pytest
from cryptography.fernet import Fernet

from access_core.errors import TokenError, TokenExpiredError
from access_core.jwt_service import (
    JWT_ALGORITHM,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_jwt_secret,
)
from access_core.security import (
    decrypt_string,
    encrypt_string,
    hash_token,
    reset_encryption_key_cache,
)


@pytest.fixture
def app_context(app):
    with app.app_context():
        yield


def test_access_token_claims(app_context):
    payload = decode_token(create_access_token(user_id=7, role="Security"))

    assert payload["user_id"] == 7
    assert payload["sub"] == "7"
    assert payload["role"] == "Security"
    assert payload["type"] == "access"
    assert payload["jti"]


def test_tokens_are_unique(app_context):
    assert create_access_token(user_id=7, role="Admin") != create_access_token(user_id=7, role="Admin")


def test_refresh_token_uses_its_own_secret(app_context):
    token = create_refresh_token(user_id=7)

    assert decode_token(token, verify_type="refresh")["user_id"] == 7
    with pytest.raises(jwt.InvalidSignatureError):
        jwt.decode(token, get_jwt_secret("access"), algorithms=[JWT_ALGORITHM])


def test_wrong_type_is_rejected(app_context):
    with pytest.raises(TokenError):
        decode_token(create_access_token(user_id=7, role="Admin"), verify_type="refresh")


def test_expired_token(app_context):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {
            "sub": "7",
            "user_id": 7,
            "type": "access",
            "iat": now - timedelta(hours=2),
            "exp": now - timedelta(hours=1),
        },
        get_jwt_secret("access"),
        algorithm=JWT_ALGORITHM,
    )

    with pytest.raises(TokenExpiredError):
        decode_token(token)


def test_token_hash_is_stable_and_opaque():
    assert hash_token("abc") == hash_token("abc")
    assert hash_token("abc") != "abc"
    assert len(hash_token("abc")) == 64


def test_encrypted_values_decrypt():
    ciphertext = encrypt_string("+1 555 0100")

    assert ciphertext != "+1 555 0100"
    assert decrypt_string(ciphertext) == "+1 555 0100"
    assert decrypt_string("not-a-fernet-token") is None


def test_explicit_encryption_key_is_used(monkeypatch):
    key = Fernet.generate_key()
    monkeypatch.setenv("ENCRYPTION_KEY", key.decode("utf-8"))
    reset_encryption_key_cache()
    try:
        ciphertext = encrypt_string("badge-42")

        assert Fernet(key).decrypt(ciphertext.encode("utf-8")) == b"badge-42"
    finally:
        monkeypatch.delenv("ENCRYPTION_KEY")
        reset_encryption_key_cache()

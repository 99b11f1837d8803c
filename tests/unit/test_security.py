"""
Unit tests for app/core/security.py

Tests password hashing and JWT tokens without database.
"""

import pytest
from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError

from app.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    decode_access_token,
    SECRET_KEY,
    ALGORITHM,
)


class TestPasswordHashing:
    """Test password hashing and verification."""

    def test_hash_password(self):
        password = "MySecurePassword123!"
        hashed = get_password_hash(password)

        assert hashed != password
        assert hashed.startswith("$2b$")  # bcrypt prefix

    def test_verify_correct_password(self):
        hashed = get_password_hash("MySecurePassword123!")
        assert verify_password("MySecurePassword123!", hashed) is True

    def test_verify_incorrect_password(self):
        hashed = get_password_hash("MySecurePassword123!")

        assert verify_password("WrongPassword", hashed) is False
        assert verify_password("", hashed) is False
        assert verify_password("MySecurePassword123", hashed) is False  # Missing !

    def test_salted(self):
        """Same password, different hashes, both verify."""
        hash1 = get_password_hash("MySecurePassword123!")
        hash2 = get_password_hash("MySecurePassword123!")

        assert hash1 != hash2
        assert verify_password("MySecurePassword123!", hash1)
        assert verify_password("MySecurePassword123!", hash2)

    def test_garbage_hash_does_not_verify(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_long_password(self):
        """Passwords beyond bcrypt's 72-byte limit still hash and verify."""
        password = "x" * 120
        assert verify_password(password, get_password_hash(password)) is True

    def test_unicode_password(self):
        password = "Señor-密码-🔐"
        assert verify_password(password, get_password_hash(password)) is True


class TestJWT:
    """Test JWT token creation and validation."""

    def test_create_access_token(self):
        token = create_access_token(data={"sub": "123"})
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])

        assert payload["sub"] == "123"
        assert "exp" in payload

    def test_token_version_included(self):
        token = create_access_token(data={"sub": "123"}, token_version=5)
        assert decode_access_token(token)["tv"] == 5

    def test_token_with_custom_expiration(self):
        token = create_access_token(data={"sub": "123"}, expires_delta=timedelta(minutes=5))
        payload = decode_access_token(token)

        exp = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        remaining = exp - datetime.now(timezone.utc)
        assert timedelta(minutes=4) < remaining <= timedelta(minutes=5)

    def test_expired_token_rejected(self):
        token = create_access_token(data={"sub": "123"}, expires_delta=timedelta(seconds=-10))
        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_token_with_wrong_secret(self):
        token = jwt.encode({"sub": "123"}, "wrong-secret", algorithm=ALGORITHM)
        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_tampered_token_rejected(self):
        token = create_access_token(data={"sub": "123"})
        with pytest.raises(JWTError):
            decode_access_token(token[:-4] + "abcd")

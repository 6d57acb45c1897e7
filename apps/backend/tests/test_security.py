"""
test_security.py — Unit tests for the JWT utilities.
"""

from datetime import timedelta

from jose import jwt

from moodmap.core.config import settings
from moodmap.core.security import create_access_token, decode_access_token


class TestJWT:
    def test_encode_decode_roundtrip(self):
        token = create_access_token("652f1c9e8b3a4d0012345678")
        assert decode_access_token(token) == "652f1c9e8b3a4d0012345678"

    def test_token_carries_expiry(self):
        token = create_access_token("user-123")
        claims = jwt.get_unverified_claims(token)
        assert claims["sub"] == "user-123"
        assert "exp" in claims

    def test_expired_token_returns_none(self):
        token = create_access_token("user-123", expires_delta=timedelta(seconds=-10))
        assert decode_access_token(token) is None

    def test_wrong_secret_returns_none(self):
        forged = jwt.encode({"sub": "user-123"}, settings.jwt_secret + "-other", algorithm="HS256")
        assert decode_access_token(forged) is None

    def test_tampered_token_returns_none(self):
        token = create_access_token("user-123")
        tampered = token[:-5] + "XXXXX"
        assert decode_access_token(tampered) is None

    def test_garbage_token_returns_none(self):
        assert decode_access_token("not.a.jwt") is None

    def test_empty_string_returns_none(self):
        assert decode_access_token("") is None

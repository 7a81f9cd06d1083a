"""Unit tests for household-scoped JWT tokens and the cron secret."""

from datetime import timedelta
from uuid import uuid4

import pytest
from jose import JWTError, jwt

from finsync.config import settings
from finsync.core.security import (
    create_access_token,
    decode_token,
    get_household_id_from_token,
    verify_cron_secret,
)


class TestAccessTokens:
    """Test JWT token creation and validation."""

    def test_token_carries_household_id(self):
        household_id = uuid4()
        token = create_access_token(household_id)

        payload = decode_token(token)

        assert payload["sub"] == str(household_id)
        assert payload["type"] == "access"
        assert "exp" in payload

    def test_get_household_id_from_token(self):
        household_id = uuid4()

        assert get_household_id_from_token(create_access_token(household_id)) == household_id

    def test_expired_token_is_rejected(self):
        token = create_access_token(uuid4(), expires_delta=timedelta(seconds=-1))

        with pytest.raises(JWTError):
            decode_token(token)

    def test_token_signed_with_other_secret_is_rejected(self):
        token = jwt.encode({"sub": str(uuid4()), "type": "access"}, "another-secret", algorithm="HS256")

        with pytest.raises(JWTError):
            get_household_id_from_token(token)

    def test_non_access_token_is_rejected(self):
        token = jwt.encode(
            {"sub": str(uuid4()), "type": "refresh"}, settings.jwt_secret, algorithm=settings.jwt_algorithm
        )

        with pytest.raises(JWTError):
            get_household_id_from_token(token)

    def test_subject_must_be_uuid(self):
        token = jwt.encode(
            {"sub": "household-1", "type": "access"}, settings.jwt_secret, algorithm=settings.jwt_algorithm
        )

        with pytest.raises(ValueError):
            get_household_id_from_token(token)


class TestCronSecret:
    def test_matching_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "s3cret")

        assert verify_cron_secret("s3cret") is True

    def test_wrong_or_missing_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "s3cret")

        assert verify_cron_secret("nope") is False
        assert verify_cron_secret(None) is False

    def test_unconfigured_secret_rejects_everything(self, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", None)

        assert verify_cron_secret("") is False
        assert verify_cron_secret("anything") is False

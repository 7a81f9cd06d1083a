"""Unit tests for the credential vault."""

import pytest

from finsync.core.exceptions import CredentialError
from finsync.core.vault import (
    decrypt_credentials,
    decrypt_token,
    encrypt_credentials,
    encrypt_token,
)


class TestCredentials:
    """Round trip and tamper detection for credential blobs."""

    def test_round_trip(self):
        credentials = {"email": "a@b.co", "password": "p4ss", "phone_number": "+972501234567"}

        encrypted = encrypt_credentials(credentials)

        assert "p4ss" not in encrypted
        assert decrypt_credentials(encrypted) == credentials

    def test_encryption_is_randomized(self):
        credentials = {"id": "123456782"}

        assert encrypt_credentials(credentials) != encrypt_credentials(credentials)

    def test_tampered_value_is_rejected(self):
        encrypted = encrypt_credentials({"id": "123456782"})
        tampered = encrypted[:-4] + ("AAAA" if not encrypted.endswith("AAAA") else "BBBB")

        with pytest.raises(CredentialError) as exc_info:
            decrypt_credentials(tampered)

        assert exc_info.value.error_code == "CRED_001"

    def test_wrong_key_is_rejected(self):
        encrypted = encrypt_credentials({"id": "123456782"}, secret="key-one")

        with pytest.raises(CredentialError):
            decrypt_credentials(encrypted, secret="key-two")

    @pytest.mark.parametrize("value", ["", "not-a-token", "ünicode"])
    def test_malformed_values_are_rejected(self, value):
        with pytest.raises(CredentialError):
            decrypt_credentials(value)


class TestTokens:
    """Long-lived token helpers."""

    def test_token_round_trip(self):
        assert decrypt_token(encrypt_token("otp-long-term-token")) == "otp-long-term-token"

    def test_credentials_blob_is_not_a_token(self):
        with pytest.raises(CredentialError) as exc_info:
            decrypt_token(encrypt_credentials({"email": "a@b.co"}))

        assert exc_info.value.details["reason"] == "token_missing"

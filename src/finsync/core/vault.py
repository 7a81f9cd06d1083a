"""Credential vault for provider credentials and long-lived tokens.

Credentials are serialized to JSON and encrypted with Fernet (AES-128-CBC
with an HMAC-SHA256 tag), so any tampering with the stored value is
detected on decryption. The key is derived from ``CREDENTIALS_SECRET`` with
a domain-separation suffix so it never equals a key used elsewhere.
"""

import base64
import hashlib
import json
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from finsync.config import settings
from finsync.core.exceptions import CredentialError

_KEY_DOMAIN = "_bank_creds"


def _derive_key(secret: str) -> bytes:
    digest = hashlib.sha256((secret + _KEY_DOMAIN).encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


def _cipher(secret: str | None = None) -> Fernet:
    return Fernet(_derive_key(secret or settings.credentials_secret))


def encrypt_credentials(credentials: dict[str, Any], secret: str | None = None) -> str:
    """Encrypt a credentials mapping for storage.

    Args:
        credentials: Provider-specific credential fields
        secret: Optional key material (defaults to settings)

    Returns:
        Opaque, URL-safe encrypted string
    """
    payload = json.dumps(credentials, separators=(",", ":")).encode("utf-8")
    return _cipher(secret).encrypt(payload).decode("ascii")


def decrypt_credentials(encrypted: str, secret: str | None = None) -> dict[str, Any]:
    """Decrypt a credentials mapping produced by ``encrypt_credentials``.

    Raises:
        CredentialError: If the value is malformed, tampered with, or was
            encrypted under a different key
    """
    if not encrypted:
        raise CredentialError(details={"reason": "empty"})
    try:
        plaintext = _cipher(secret).decrypt(encrypted.encode("ascii"))
    except (InvalidToken, UnicodeEncodeError, ValueError) as e:
        raise CredentialError(details={"reason": type(e).__name__}) from e

    try:
        data = json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CredentialError(details={"reason": "payload_not_json"}) from e

    if not isinstance(data, dict):
        raise CredentialError(details={"reason": "payload_not_object"})
    return data


def encrypt_token(token: str, secret: str | None = None) -> str:
    """Encrypt a single long-lived token."""
    return encrypt_credentials({"token": token}, secret)


def decrypt_token(encrypted: str, secret: str | None = None) -> str:
    """Decrypt a token produced by ``encrypt_token``."""
    data = decrypt_credentials(encrypted, secret)
    token = data.get("token")
    if not isinstance(token, str):
        raise CredentialError(details={"reason": "token_missing"})
    return token

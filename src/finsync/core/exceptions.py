"""Custom exception classes for synchronization and categorization.

This module defines the exception hierarchy used throughout the sync
pipeline and the categorization services. Each exception carries an
error_code that maps to the catalog in errors.py.
"""

from typing import Any


class FinanceSyncError(Exception):
    """Base exception for all domain errors.

    Attributes:
        error_code: Code from the error catalog (e.g., "AUTH_001")
        details: Additional context about the error (for logging)
        http_status: HTTP status code to return (default: 500)
    """

    default_code = "UNKNOWN"
    default_status = 500

    def __init__(
        self,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        http_status: int | None = None,
    ):
        """Initialize the exception.

        Args:
            error_code: Error code from errors.py
            details: Additional error context (not shown to users)
            http_status: HTTP status code
        """
        self.error_code = error_code or self.default_code
        self.details = details or {}
        self.http_status = http_status or self.default_status
        super().__init__(self.error_code)


class CredentialError(FinanceSyncError):
    """Raised when stored credentials cannot be decrypted or parsed.

    Fatal to the sync attempt of one connection only.
    """

    default_code = "CRED_001"
    default_status = 422


class AuthRequiredError(FinanceSyncError):
    """Raised when a provider rejects the credentials or long-lived token.

    The connection is deactivated until the user re-authenticates.
    """

    default_code = "AUTH_001"
    default_status = 401


class TwoFactorError(FinanceSyncError):
    """Raised when a two-factor step is rejected by the provider."""

    default_code = "AUTH_003"
    default_status = 400


class TwoFactorSessionExpiredError(TwoFactorError):
    """Raised when a two-factor session id is unknown, expired or consumed."""

    default_code = "AUTH_002"
    default_status = 410


class TransientProviderError(FinanceSyncError):
    """Raised for network failures, timeouts and unknown provider faults.

    The connection stays active and is retried on the next cycle.
    """

    default_code = "PROV_001"
    default_status = 502


class ProviderNotSupportedError(FinanceSyncError):
    """Raised when no adapter is registered for a provider tag."""

    default_code = "PROV_002"
    default_status = 400


class TransactionImportError(FinanceSyncError):
    """Raised when a single transaction cannot be categorized or persisted.

    Logged by the importer; the batch continues.
    """

    default_code = "IMP_001"
    default_status = 500


class LockConflictError(FinanceSyncError):
    """Raised when a transaction is already claimed by another worker."""

    default_code = "LOCK_001"
    default_status = 409


class NotFoundError(FinanceSyncError):
    """Raised when a requested entity does not exist."""

    default_code = "API_001"
    default_status = 404


class CrossHouseholdError(FinanceSyncError):
    """Raised when a record exists but belongs to another household."""

    default_code = "API_005"
    default_status = 403


class ValidationError(FinanceSyncError):
    """Raised when input fails a business rule.

    This includes:
    - Rule patterns that do not compile
    - Category parent assignments that would create a cycle
    - Account mappings pointing at unknown accounts
    """

    default_code = "VAL_001"
    default_status = 400

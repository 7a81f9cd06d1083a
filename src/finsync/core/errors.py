"""Error codes and user-friendly messages.

This module defines the error catalog for bank synchronization and
categorization. Each error has:
- code: Unique identifier
- message: Technical description (for logs)
- user_message: User-friendly explanation
- suggestion: Actionable guidance for the user
- retry_allowed: Whether the error is retryable
"""

ERROR_CATALOG: dict[str, dict] = {
    "CRED_001": {
        "code": "CRED_001",
        "message": "Stored credentials could not be decrypted",
        "user_message": "We couldn't read the saved credentials for this connection.",
        "suggestion": "Please remove the connection and add it again.",
        "retry_allowed": False,
    },
    "CRED_002": {
        "code": "CRED_002",
        "message": "Credentials do not match the provider's required fields",
        "user_message": "Some of the login details for this bank are missing or invalid.",
        "suggestion": "Check the required fields for this provider and try again.",
        "retry_allowed": False,
    },
    "AUTH_001": {
        "code": "AUTH_001",
        "message": "Provider rejected credentials or long-lived token",
        "user_message": "This connection needs to be re-authenticated.",
        "suggestion": "Open the connection settings and sign in to your bank again.",
        "retry_allowed": False,
    },
    "AUTH_002": {
        "code": "AUTH_002",
        "message": "Two-factor session expired or already used",
        "user_message": "Your verification session has expired.",
        "suggestion": "Request a new verification code and try again.",
        "retry_allowed": True,
    },
    "AUTH_003": {
        "code": "AUTH_003",
        "message": "Two-factor verification failed",
        "user_message": "We couldn't verify the code with your bank.",
        "suggestion": "Check the code you received and try again.",
        "retry_allowed": True,
    },
    "PROV_001": {
        "code": "PROV_001",
        "message": "Transient provider failure",
        "user_message": "Your bank is temporarily unavailable.",
        "suggestion": "We'll retry automatically on the next sync.",
        "retry_allowed": True,
    },
    "PROV_002": {
        "code": "PROV_002",
        "message": "Provider is not supported",
        "user_message": "This bank is not supported.",
        "suggestion": "Choose one of the supported providers.",
        "retry_allowed": False,
    },
    "PROV_003": {
        "code": "PROV_003",
        "message": "Provider does not use two-factor authentication",
        "user_message": "This bank doesn't need a verification code.",
        "suggestion": "Run a sync directly instead.",
        "retry_allowed": False,
    },
    "IMP_001": {
        "code": "IMP_001",
        "message": "Failed to import a transaction",
        "user_message": "One transaction couldn't be imported.",
        "suggestion": "It will be retried on the next sync.",
        "retry_allowed": True,
    },
    "LOCK_001": {
        "code": "LOCK_001",
        "message": "Transaction is already being processed",
        "user_message": "This transaction is already being categorized.",
        "suggestion": "Wait a moment and refresh.",
        "retry_allowed": True,
    },
    "VAL_001": {
        "code": "VAL_001",
        "message": "Invalid rule pattern",
        "user_message": "That rule pattern isn't valid.",
        "suggestion": "Check the pattern (regular expressions must compile) and try again.",
        "retry_allowed": False,
    },
    "VAL_002": {
        "code": "VAL_002",
        "message": "Category parent assignment would create a cycle",
        "user_message": "A category can't be placed under one of its own subcategories.",
        "suggestion": "Choose a different parent category.",
        "retry_allowed": False,
    },
    "VAL_003": {
        "code": "VAL_003",
        "message": "Account mapping references unknown accounts",
        "user_message": "One or more selected accounts don't exist.",
        "suggestion": "Refresh your accounts and choose again.",
        "retry_allowed": False,
    },
    "API_001": {
        "code": "API_001",
        "message": "Connection not found",
        "user_message": "We couldn't find this bank connection.",
        "suggestion": "Please refresh and try again.",
        "retry_allowed": False,
    },
    "API_002": {
        "code": "API_002",
        "message": "Transaction not found",
        "user_message": "We couldn't find this transaction.",
        "suggestion": "Please refresh and try again.",
        "retry_allowed": False,
    },
    "API_003": {
        "code": "API_003",
        "message": "Category not found",
        "user_message": "We couldn't find this category.",
        "suggestion": "Please choose a category from the list.",
        "retry_allowed": False,
    },
    "API_004": {
        "code": "API_004",
        "message": "Rule not found",
        "user_message": "We couldn't find this rule.",
        "suggestion": "Please refresh and try again.",
        "retry_allowed": False,
    },
    "API_005": {
        "code": "API_005",
        "message": "Access denied: record belongs to a different household",
        "user_message": "You don't have permission to access this record.",
        "suggestion": "You can only access your own household's data.",
        "retry_allowed": False,
    },
    "API_006": {
        "code": "API_006",
        "message": "Invalid cron secret",
        "user_message": "Unauthorized.",
        "suggestion": "Provide the configured cron secret.",
        "retry_allowed": False,
    },
    "API_007": {
        "code": "API_007",
        "message": "Account not found",
        "user_message": "We couldn't find this account.",
        "suggestion": "Please choose an account from the list.",
        "retry_allowed": False,
    },
}


def get_error(error_code: str) -> dict:
    """Get error definition by code.

    Args:
        error_code: Error code from the catalog

    Returns:
        Dict with error details (a generic entry for unknown codes)
    """
    if error_code not in ERROR_CATALOG:
        return {
            "code": "UNKNOWN",
            "message": f"Unknown error code: {error_code}",
            "user_message": "An unexpected error occurred.",
            "suggestion": "Please try again. Contact support if the problem persists.",
            "retry_allowed": True,
        }
    return ERROR_CATALOG[error_code]


def get_user_message(error_code: str) -> str:
    """Get user-friendly message for an error code."""
    return get_error(error_code)["user_message"]


def get_suggestion(error_code: str) -> str:
    """Get actionable suggestion for an error code."""
    return get_error(error_code)["suggestion"]


def is_retryable(error_code: str) -> bool:
    """Check if an error is retryable."""
    return get_error(error_code)["retry_allowed"]

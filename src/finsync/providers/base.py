"""Provider adapter contract and result models.

Each external institution is one ``ProviderAdapter`` subclass, selected by
its ``BankProvider`` tag. Expected failures (rejected credentials, expired
token, provider error payloads) are reported through the result models;
only unexpected transport faults propagate to the caller.
"""

from abc import ABC, abstractmethod
import datetime
from enum import Enum
from typing import ClassVar, Literal

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from finsync.core.exceptions import CredentialError, TwoFactorError


class BankProvider(str, Enum):
    """Closed set of supported institutions."""

    ONEZERO = "onezero"
    ISRACARD = "isracard"


# error_type values produced by the adapters
ERROR_AUTH_REQUIRED = "AUTH_REQUIRED"
ERROR_INVALID_PASSWORD = "INVALID_PASSWORD"
ERROR_CHANGE_PASSWORD = "CHANGE_PASSWORD"
ERROR_ACCOUNT_BLOCKED = "ACCOUNT_BLOCKED"
ERROR_TIMEOUT = "TIMEOUT"
ERROR_GENERIC = "GENERIC"
ERROR_EXCEPTION = "EXCEPTION"


class Installments(BaseModel):
    number: int
    total: int


class ScrapedTransaction(BaseModel):
    """A raw transaction as reported by a provider (amounts in major units)."""

    type: Literal["normal", "installments"] = "normal"
    identifier: str | None = None
    date: datetime.date
    processed_date: datetime.date | None = None
    original_amount: float
    original_currency: str = "ILS"
    charged_amount: float
    charged_currency: str | None = None
    description: str = ""
    memo: str | None = None
    category: str | None = None
    installments: Installments | None = None
    status: Literal["completed", "pending"] = "completed"


class ScrapedAccount(BaseModel):
    account_number: str
    balance: float | None = None
    txns: list[ScrapedTransaction] = Field(default_factory=list)


class ScrapeResult(BaseModel):
    success: bool
    accounts: list[ScrapedAccount] = Field(default_factory=list)
    error_type: str | None = None
    error_message: str | None = None

    @classmethod
    def failure(cls, error_type: str, error_message: str) -> "ScrapeResult":
        return cls(success=False, error_type=error_type, error_message=error_message)

    @property
    def transaction_count(self) -> int:
        return sum(len(account.txns) for account in self.accounts)


class TwoFactorInitResult(BaseModel):
    success: bool
    session_id: str | None = None
    error_message: str | None = None


class TwoFactorCompleteResult(BaseModel):
    success: bool
    long_term_token: str | None = None
    error_message: str | None = None
    # Set when the session id was unknown, expired or already consumed
    session_expired: bool = False


class ProviderAdapter(ABC):
    """Uniform contract implemented by every provider."""

    provider: ClassVar[BankProvider]
    display_name: ClassVar[str]
    requires_two_factor: ClassVar[bool] = False
    credentials_model: ClassVar[type[BaseModel]]

    def parse_credentials(self, credentials: dict) -> BaseModel:
        """Validate a raw credentials mapping against the provider's fields.

        Raises:
            CredentialError: CRED_002 if fields are missing or malformed
        """
        try:
            return self.credentials_model.model_validate(credentials)
        except PydanticValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise CredentialError(
                "CRED_002", details={"provider": self.provider.value, "fields": fields}
            ) from e

    @classmethod
    def describe(cls) -> dict:
        """Provider metadata for clients (no secrets)."""
        return {
            "provider": cls.provider.value,
            "display_name": cls.display_name,
            "requires_two_factor": cls.requires_two_factor,
            "credential_fields": list(cls.credentials_model.model_fields.keys()),
        }

    @abstractmethod
    async def scrape(
        self,
        start_date: datetime.date,
        credentials: dict,
        long_term_token: str | None = None,
    ) -> ScrapeResult:
        """Fetch accounts and transactions since ``start_date``."""

    async def init_two_factor(self, credentials: dict, owner: str | None = None) -> TwoFactorInitResult:
        """Ask the provider to send a code. The session is bound to ``owner``."""
        raise TwoFactorError("PROV_003", details={"provider": self.provider.value})

    async def complete_two_factor(
        self, credentials: dict, code: str, session_id: str | None, owner: str | None = None
    ) -> TwoFactorCompleteResult:
        raise TwoFactorError("PROV_003", details={"provider": self.provider.value})

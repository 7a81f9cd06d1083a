"""External institution adapters."""

from finsync.providers.base import (
    BankProvider,
    ProviderAdapter,
    ScrapedAccount,
    ScrapedTransaction,
    ScrapeResult,
    TwoFactorCompleteResult,
    TwoFactorInitResult,
)
from finsync.providers.registry import ProviderRegistry
from finsync.providers.sessions import InMemoryTwoFactorSessionStore, TwoFactorSessionStore

__all__ = [
    "BankProvider",
    "InMemoryTwoFactorSessionStore",
    "ProviderAdapter",
    "ProviderRegistry",
    "ScrapeResult",
    "ScrapedAccount",
    "ScrapedTransaction",
    "TwoFactorCompleteResult",
    "TwoFactorInitResult",
    "TwoFactorSessionStore",
]

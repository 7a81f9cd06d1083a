"""Provider registry: maps provider tags to adapter instances."""

from finsync.config import settings
from finsync.core.exceptions import ProviderNotSupportedError
from finsync.providers.base import BankProvider, ProviderAdapter
from finsync.providers.isracard import IsracardAdapter
from finsync.providers.onezero import OneZeroAdapter
from finsync.providers.sessions import InMemoryTwoFactorSessionStore, TwoFactorSessionStore


class ProviderRegistry:
    """Closed set of adapters, built around one two-factor session store."""

    def __init__(self, adapters: list[ProviderAdapter]):
        self._adapters: dict[BankProvider, ProviderAdapter] = {a.provider: a for a in adapters}

    @classmethod
    def default(cls, session_store: TwoFactorSessionStore | None = None) -> "ProviderRegistry":
        store = session_store or InMemoryTwoFactorSessionStore(settings.two_factor_session_ttl_seconds)
        return cls([OneZeroAdapter(store), IsracardAdapter()])

    def get_adapter(self, provider: str) -> ProviderAdapter:
        """Look up the adapter for a provider tag.

        Raises:
            ProviderNotSupportedError: If the tag is unknown or not registered
        """
        try:
            adapter = self._adapters.get(BankProvider(provider))
        except ValueError:
            adapter = None
        if adapter is None:
            raise ProviderNotSupportedError(details={"provider": provider})
        return adapter

    def is_supported(self, provider: str) -> bool:
        return provider in {p.value for p in self._adapters}

    def list_providers(self) -> list[dict]:
        return [adapter.describe() for adapter in self._adapters.values()]

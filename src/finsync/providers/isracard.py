"""Isracard credit card adapter.

Logs on with national id, last 6 card digits and password (no two-factor),
then reads one transaction listing per month from ``start_date`` to today.
Isracard reports a business sector per transaction, surfaced as the
transaction's ``category``.
"""

import logging
import re
from datetime import date, datetime

import httpx
from pydantic import BaseModel, Field

from finsync.config import settings
from finsync.core.exceptions import CredentialError
from finsync.providers.base import (
    ERROR_AUTH_REQUIRED,
    ERROR_CHANGE_PASSWORD,
    ERROR_GENERIC,
    ERROR_INVALID_PASSWORD,
    BankProvider,
    Installments,
    ProviderAdapter,
    ScrapedAccount,
    ScrapedTransaction,
    ScrapeResult,
)

logger = logging.getLogger(__name__)

PROXY_PATH = "services/ProxyRequestHandler.ashx"
COUNTRY_CODE = "212"
ID_TYPE = "1"

# "תשלום 2 מתוך 6" (payment 2 of 6)
_INSTALLMENTS_RE = re.compile(r"תשלום\s+(\d+)\s+מתוך\s+(\d+)")
_CURRENCY_CODES = {"ש\"ח": "ILS", "ILS": "ILS", "$": "USD", "USD": "USD", "€": "EUR", "EUR": "EUR"}


class IsracardCredentials(BaseModel):
    id: str = Field(min_length=5, max_length=9)
    card6_digits: str = Field(min_length=6, max_length=6, pattern=r"^\d{6}$")
    password: str = Field(min_length=1)


def month_range(start_date: date, end_date: date) -> list[tuple[int, int]]:
    """(year, month) pairs from start to end inclusive."""
    months = []
    year, month = start_date.year, start_date.month
    while (year, month) <= (end_date.year, end_date.month):
        months.append((year, month))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    return datetime.strptime(value, "%d/%m/%Y").date()


def _parse_installments(more_info: str | None) -> Installments | None:
    match = _INSTALLMENTS_RE.search(more_info or "")
    if not match:
        return None
    return Installments(number=int(match.group(1)), total=int(match.group(2)))


class IsracardAdapter(ProviderAdapter):
    provider = BankProvider.ISRACARD
    display_name = "Isracard"
    requires_two_factor = False
    credentials_model = IsracardCredentials

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        today: date | None = None,
    ):
        self.base_url = (base_url or settings.isracard_base_url).rstrip("/")
        self.timeout = timeout or settings.provider_http_timeout_seconds
        self._transport = transport
        self._today = today

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _request(self, client: httpx.AsyncClient, req_name: str, payload: dict | None = None, **params) -> dict:
        url = f"{self.base_url}/{PROXY_PATH}"
        query = {"reqName": req_name, **params}
        if payload is None:
            response = await client.get(url, params=query)
        else:
            response = await client.post(url, params=query, json=payload)
        response.raise_for_status()
        return response.json() or {}

    async def scrape(
        self,
        start_date: date,
        credentials: dict,
        long_term_token: str | None = None,
    ) -> ScrapeResult:
        try:
            creds = self.parse_credentials(credentials)
        except CredentialError:
            return ScrapeResult.failure(ERROR_AUTH_REQUIRED, "Stored credentials are incomplete. Please re-authenticate.")

        async with self._client() as client:
            try:
                failure = await self._logon(client, creds)
                if failure is not None:
                    return failure
                accounts = await self._fetch_accounts(client, start_date)
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code in (401, 403):
                    return ScrapeResult.failure(ERROR_AUTH_REQUIRED, "Isracard session was rejected")
                return ScrapeResult.failure(ERROR_GENERIC, f"Isracard request failed with status {status_code}")

        result = ScrapeResult(success=True, accounts=accounts)
        logger.info(
            "Isracard scrape complete",
            extra={"accounts": len(accounts), "transactions": result.transaction_count},
        )
        return result

    async def _logon(self, client: httpx.AsyncClient, creds: IsracardCredentials) -> ScrapeResult | None:
        validated = await self._request(
            client,
            "ValidateIdData",
            {
                "id": creds.id,
                "cardSuffix": creds.card6_digits,
                "countryCode": COUNTRY_CODE,
                "idType": ID_TYPE,
                "checkLevel": "1",
                "companyCode": "11",
            },
        )
        bean = validated.get("ValidateIdDataBean") or {}
        return_code = str(bean.get("returnCode", ""))
        if return_code == "4":
            return ScrapeResult.failure(ERROR_CHANGE_PASSWORD, "Isracard requires a password change")
        if return_code != "1":
            return ScrapeResult.failure(ERROR_INVALID_PASSWORD, "Isracard rejected the id or card digits")

        logon = await self._request(
            client,
            "performLogonI",
            {
                "KodMishtamesh": bean.get("userName", ""),
                "MisparZihuy": creds.id,
                "Sisma": creds.password,
                "cardSuffix": creds.card6_digits,
                "countryCode": COUNTRY_CODE,
                "idType": ID_TYPE,
            },
        )
        status = str(logon.get("status", ""))
        if status == "3":
            return ScrapeResult.failure(ERROR_CHANGE_PASSWORD, "Isracard requires a password change")
        if status != "1":
            return ScrapeResult.failure(ERROR_INVALID_PASSWORD, "Isracard rejected the password")
        return None

    async def _fetch_accounts(self, client: httpx.AsyncClient, start_date: date) -> list[ScrapedAccount]:
        today = self._today or date.today()
        by_card: dict[str, list[ScrapedTransaction]] = {}

        for year, month in month_range(start_date, today):
            body = await self._request(
                client, "CardsTransactionsList", month=f"{month:02d}", year=str(year), requiredDate="N"
            )
            if str((body.get("Header") or {}).get("Status")) != "1":
                logger.warning("Isracard listing unavailable", extra={"year": year, "month": month})
                continue

            cards = (body.get("CardsTransactionsListBean") or {}).get("cards", [])
            for card in cards:
                txns = by_card.setdefault(str(card["cardNumber"]), [])
                for raw in card.get("transactions", []):
                    txn = self._map_transaction(raw)
                    if txn.date >= start_date:
                        txns.append(txn)

        return [ScrapedAccount(account_number=number, txns=txns) for number, txns in by_card.items()]

    @staticmethod
    def _map_transaction(raw: dict) -> ScrapedTransaction:
        installments = _parse_installments(raw.get("moreInfo"))
        original_currency = _CURRENCY_CODES.get(raw.get("currencyId") or "", raw.get("currencyId") or "ILS")
        # Isracard reports charges as positive numbers
        charged = -float(raw.get("paymentSum") or 0)
        original = -float(raw.get("dealSum") or raw.get("paymentSum") or 0)
        identifier = raw.get("voucherNumberRatz")
        return ScrapedTransaction(
            type="installments" if installments else "normal",
            identifier=str(identifier) if identifier else None,
            date=_parse_date(raw.get("fullPurchaseDate")),
            processed_date=_parse_date(raw.get("fullPaymentDate")),
            original_amount=original,
            original_currency=original_currency,
            charged_amount=charged,
            charged_currency="ILS",
            description=(raw.get("fullSupplierNameHeb") or raw.get("fullSupplierNameOutbound") or "").strip(),
            memo=raw.get("moreInfo") if not installments else None,
            category=raw.get("sector") or None,
            installments=installments,
            status="completed",
        )

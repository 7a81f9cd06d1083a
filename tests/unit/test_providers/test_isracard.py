from datetime import date

import httpx
import pytest

from finsync.core.exceptions import TwoFactorError
from finsync.providers.isracard import IsracardAdapter, month_range

BASE_URL = "https://isracard.test"
CREDENTIALS = {"id": "123456782", "card6_digits": "123456", "password": "secret"}


class FakeIsracard:
    def __init__(self):
        self.validate_code = "1"
        self.logon_status = "1"
        self.listing_status = 200
        self.months: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        req_name = request.url.params["reqName"]
        if req_name == "ValidateIdData":
            return httpx.Response(
                200, json={"ValidateIdDataBean": {"returnCode": self.validate_code, "userName": "user"}}
            )
        if req_name == "performLogonI":
            return httpx.Response(200, json={"status": self.logon_status})
        if req_name == "CardsTransactionsList":
            if self.listing_status != 200:
                return httpx.Response(self.listing_status)
            month = request.url.params["month"]
            self.months.append(f"{request.url.params['year']}-{month}")
            if month != "09":
                return httpx.Response(200, json={"Header": {"Status": "1"}, "CardsTransactionsListBean": {"cards": []}})
            return httpx.Response(
                200,
                json={
                    "Header": {"Status": "1"},
                    "CardsTransactionsListBean": {
                        "cards": [
                            {
                                "cardNumber": "4321",
                                "transactions": [
                                    {
                                        "voucherNumberRatz": "777",
                                        "fullPurchaseDate": "03/09/2026",
                                        "fullPaymentDate": "10/10/2026",
                                        "dealSum": "300",
                                        "paymentSum": "100",
                                        "currencyId": "ש\"ח",
                                        "fullSupplierNameHeb": " IKEA Netanya ",
                                        "moreInfo": "תשלום 1 מתוך 3",
                                        "sector": "ריהוט",
                                    },
                                    {
                                        "voucherNumberRatz": "778",
                                        "fullPurchaseDate": "20/07/2026",
                                        "paymentSum": "50",
                                        "fullSupplierNameHeb": "Old purchase",
                                    },
                                ],
                            }
                        ]
                    },
                },
            )
        return httpx.Response(404)


@pytest.fixture
def fake_bank() -> FakeIsracard:
    return FakeIsracard()


@pytest.fixture
def adapter(fake_bank) -> IsracardAdapter:
    return IsracardAdapter(base_url=BASE_URL, transport=httpx.MockTransport(fake_bank), today=date(2026, 10, 18))


def test_month_range_crosses_year() -> None:
    assert month_range(date(2025, 11, 20), date(2026, 2, 1)) == [(2025, 11), (2025, 12), (2026, 1), (2026, 2)]


def test_describe() -> None:
    info = IsracardAdapter.describe()

    assert info["provider"] == "isracard"
    assert info["requires_two_factor"] is False
    assert info["credential_fields"] == ["id", "card6_digits", "password"]


@pytest.mark.asyncio
async def test_scrape_maps_transactions(adapter: IsracardAdapter, fake_bank) -> None:
    result = await adapter.scrape(date(2026, 8, 1), CREDENTIALS)

    assert result.success is True
    assert fake_bank.months == ["2026-08", "2026-09", "2026-10"]
    assert len(result.accounts) == 1
    account = result.accounts[0]
    assert account.account_number == "4321"
    assert len(account.txns) == 1
    txn = account.txns[0]
    assert txn.identifier == "777"
    assert txn.date == date(2026, 9, 3)
    assert txn.charged_amount == -100.0
    assert txn.original_amount == -300.0
    assert txn.original_currency == "ILS"
    assert txn.description == "IKEA Netanya"
    assert txn.category == "ריהוט"
    assert txn.type == "installments"
    assert (txn.installments.number, txn.installments.total) == (1, 3)


@pytest.mark.asyncio
async def test_invalid_credentials(adapter: IsracardAdapter, fake_bank) -> None:
    fake_bank.validate_code = "2"

    result = await adapter.scrape(date(2026, 8, 1), CREDENTIALS)

    assert result.success is False
    assert result.error_type == "INVALID_PASSWORD"


@pytest.mark.asyncio
async def test_password_change_required(adapter: IsracardAdapter, fake_bank) -> None:
    fake_bank.logon_status = "3"

    result = await adapter.scrape(date(2026, 8, 1), CREDENTIALS)

    assert result.error_type == "CHANGE_PASSWORD"


@pytest.mark.asyncio
async def test_rejected_session_requires_auth(adapter: IsracardAdapter, fake_bank) -> None:
    fake_bank.listing_status = 401

    result = await adapter.scrape(date(2026, 8, 1), CREDENTIALS)

    assert result.error_type == "AUTH_REQUIRED"


@pytest.mark.asyncio
async def test_incomplete_credentials_require_auth(adapter: IsracardAdapter) -> None:
    result = await adapter.scrape(date(2026, 8, 1), {"id": "123456782"})

    assert result.success is False
    assert result.error_type == "AUTH_REQUIRED"


@pytest.mark.asyncio
async def test_two_factor_not_supported(adapter: IsracardAdapter) -> None:
    with pytest.raises(TwoFactorError) as exc_info:
        await adapter.init_two_factor(CREDENTIALS)

    assert exc_info.value.error_code == "PROV_003"

"""OneZero bank adapter.

OneZero requires SMS two-factor authentication once; the OTP exchange yields
a long-term token that is reused on every later sync until the bank rejects
it. Flow:

1. ``init_two_factor``: register a device, request an OTP for the phone
   number. The device token and OTP context are kept in the session store.
2. ``complete_two_factor``: verify the OTP code, returning the long-term
   token (session consumed regardless of outcome).
3. ``scrape``: exchange the long-term token plus e-mail/password for an id
   token, then for an access token, and read every portfolio's movements.
"""

import json
import logging
import re
from datetime import date, datetime
from typing import Any

import httpx
from pydantic import BaseModel, Field

from finsync.config import settings
from finsync.core.exceptions import CredentialError
from finsync.providers.base import (
    ERROR_AUTH_REQUIRED,
    ERROR_GENERIC,
    ERROR_INVALID_PASSWORD,
    BankProvider,
    ProviderAdapter,
    ScrapedAccount,
    ScrapedTransaction,
    ScrapeResult,
    TwoFactorCompleteResult,
    TwoFactorInitResult,
)
from finsync.providers.sessions import TwoFactorSessionStore, new_session_id

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 10
TOKEN_JSON_FIELDS = ("idToken", "accessToken", "refreshToken", "otpToken")

_PHONE_SEPARATORS_RE = re.compile(r"[\s\-().]")


class OneZeroCredentials(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    phone_number: str = Field(min_length=7)


def normalize_phone_number(phone_number: str, country_code: str | None = None) -> str:
    """Convert a local phone number to international (E.164-like) format.

    Examples (country code 972):
        "050-123-4567" -> "+972501234567"
        "501234567"    -> "+972501234567"
        "00972501234567" -> "+972501234567"
        "+972501234567" is returned unchanged
    """
    code = country_code or settings.default_phone_country_code
    phone = _PHONE_SEPARATORS_RE.sub("", phone_number.strip())
    if phone.startswith("+"):
        return phone
    if phone.startswith("00"):
        return "+" + phone[2:]
    if phone.startswith("0"):
        return f"+{code}{phone[1:]}"
    if phone.startswith(code) and len(phone) > len(code) + 8:
        return "+" + phone
    return f"+{code}{phone}"


def validate_token(token: str | None) -> str | None:
    """Return a reason string if the long-term token is unusable, else None."""
    if not token or len(token) < MIN_TOKEN_LENGTH:
        return "Token is empty or too short"
    if token.startswith("{"):
        try:
            data = json.loads(token)
        except json.JSONDecodeError:
            return "Token looks like JSON but failed to parse"
        if not isinstance(data, dict) or not any(data.get(f) for f in TOKEN_JSON_FIELDS):
            return "Token JSON missing expected fields"
    return None


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00")).date()


class OneZeroAdapter(ProviderAdapter):
    provider = BankProvider.ONEZERO
    display_name = "OneZero Bank"
    requires_two_factor = True
    credentials_model = OneZeroCredentials

    def __init__(
        self,
        session_store: TwoFactorSessionStore,
        identity_url: str | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.session_store = session_store
        self.identity_url = (identity_url or settings.onezero_identity_url).rstrip("/")
        self.api_url = (api_url or settings.onezero_api_url).rstrip("/")
        self.timeout = timeout or settings.provider_http_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _post_identity(self, client: httpx.AsyncClient, path: str, payload: dict) -> dict[str, Any]:
        response = await client.post(f"{self.identity_url}/{path}", json=payload)
        response.raise_for_status()
        return response.json().get("resultData") or {}

    # ------------------------------------------------------------------
    # Two-factor
    # ------------------------------------------------------------------

    async def init_two_factor(self, credentials: dict, owner: str | None = None) -> TwoFactorInitResult:
        creds = self.parse_credentials(credentials)
        phone_number = normalize_phone_number(creds.phone_number)
        self.session_store.purge_expired()

        try:
            async with self._client() as client:
                device = await self._post_identity(
                    client, "devices/token", {"extClientId": "mobile", "os": "Android"}
                )
                device_token = device.get("deviceToken")
                if not device_token:
                    return TwoFactorInitResult(success=False, error_message="Device registration failed")

                otp = await self._post_identity(
                    client,
                    "otp/prepare",
                    {"factorValue": phone_number, "deviceToken": device_token, "otpChannel": "Sms_Verify"},
                )
        except httpx.HTTPStatusError as e:
            logger.warning(
                "OneZero OTP request rejected",
                extra={"status_code": e.response.status_code},
            )
            return TwoFactorInitResult(success=False, error_message="Failed to send OTP")

        otp_context = otp.get("otpContext")
        if not otp_context:
            return TwoFactorInitResult(success=False, error_message="Failed to send OTP")

        session_id = new_session_id(self.provider.value)
        self.session_store.put(
            session_id,
            {"device_token": device_token, "otp_context": otp_context, "phone_number": phone_number},
            owner=owner,
        )
        logger.info("OneZero OTP sent", extra={"session_id": session_id})
        return TwoFactorInitResult(success=True, session_id=session_id)

    async def complete_two_factor(
        self, credentials: dict, code: str, session_id: str | None, owner: str | None = None
    ) -> TwoFactorCompleteResult:
        context = self.session_store.pop(session_id, owner=owner)
        if context is None:
            logger.info("OneZero two-factor session not found", extra={"session_id": session_id})
            return TwoFactorCompleteResult(
                success=False,
                session_expired=True,
                error_message="Session expired or not found. Please start two-factor setup again.",
            )

        try:
            async with self._client() as client:
                verified = await self._post_identity(
                    client,
                    "otp/verify",
                    {"otpContext": context["otp_context"], "otpCode": code},
                )
        except httpx.HTTPStatusError as e:
            logger.warning(
                "OneZero OTP verification rejected",
                extra={"status_code": e.response.status_code},
            )
            return TwoFactorCompleteResult(success=False, error_message="Failed to verify OTP code")

        token = verified.get("otpToken")
        if not token:
            return TwoFactorCompleteResult(success=False, error_message="Failed to obtain long-term token")

        logger.info("OneZero long-term token obtained")
        return TwoFactorCompleteResult(success=True, long_term_token=token)

    # ------------------------------------------------------------------
    # Scrape
    # ------------------------------------------------------------------

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

        if not long_term_token:
            return ScrapeResult.failure(
                ERROR_AUTH_REQUIRED,
                "No long-term token available. Please complete two-factor setup first.",
            )
        reason = validate_token(long_term_token)
        if reason:
            logger.warning("OneZero token validation failed", extra={"reason": reason})
            return ScrapeResult.failure(ERROR_AUTH_REQUIRED, f"Invalid two-factor token: {reason}. Please re-authenticate.")

        async with self._client() as client:
            try:
                access_token = await self._login(client, creds, long_term_token)
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code in (400, 401, 403):
                    return ScrapeResult.failure(
                        ERROR_INVALID_PASSWORD,
                        "Login rejected. Your two-factor token may have expired, please re-authenticate.",
                    )
                return ScrapeResult.failure(ERROR_GENERIC, f"OneZero login failed with status {status_code}")
            if access_token is None:
                return ScrapeResult.failure(
                    ERROR_AUTH_REQUIRED,
                    "Authentication token is invalid or expired (no idToken). Please re-authenticate.",
                )

            try:
                accounts = await self._fetch_accounts(client, access_token, start_date)
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code == 401:
                    return ScrapeResult.failure(ERROR_AUTH_REQUIRED, "Session expired while fetching movements")
                return ScrapeResult.failure(ERROR_GENERIC, f"OneZero data request failed with status {status_code}")

        result = ScrapeResult(success=True, accounts=accounts)
        logger.info(
            "OneZero scrape complete",
            extra={"accounts": len(accounts), "transactions": result.transaction_count},
        )
        return result

    async def _login(
        self, client: httpx.AsyncClient, creds: OneZeroCredentials, long_term_token: str
    ) -> str | None:
        id_data = await self._post_identity(
            client,
            "getIdToken",
            {
                "otpSmsToken": long_term_token,
                "email": creds.email,
                "password": creds.password,
                "pinCode": "",
            },
        )
        id_token = id_data.get("idToken")
        if not id_token:
            return None

        session = await self._post_identity(client, "sessions/token", {"idToken": id_token, "pass": creds.password})
        return session.get("accessToken")

    async def _fetch_accounts(
        self, client: httpx.AsyncClient, access_token: str, start_date: date
    ) -> list[ScrapedAccount]:
        headers = {"Authorization": f"Bearer {access_token}"}
        response = await client.get(f"{self.api_url}/v1/portfolios", headers=headers)
        response.raise_for_status()

        accounts: list[ScrapedAccount] = []
        for portfolio in response.json().get("portfolios", []):
            movements = await self._fetch_movements(client, headers, portfolio["portfolioId"], start_date)
            accounts.append(
                ScrapedAccount(
                    account_number=str(portfolio.get("portfolioNum") or portfolio["portfolioId"]),
                    balance=portfolio.get("balance"),
                    txns=[self._map_movement(m) for m in movements],
                )
            )
        return accounts

    async def _fetch_movements(
        self, client: httpx.AsyncClient, headers: dict, portfolio_id: str, start_date: date
    ) -> list[dict]:
        movements: list[dict] = []
        cursor = None
        while True:
            params = {"from": start_date.isoformat()}
            if cursor:
                params["cursor"] = cursor
            response = await client.get(
                f"{self.api_url}/v1/portfolios/{portfolio_id}/movements", headers=headers, params=params
            )
            response.raise_for_status()
            body = response.json()
            movements.extend(body.get("movements", []))

            pagination = body.get("pagination") or {}
            cursor = pagination.get("cursor")
            if not pagination.get("hasMore") or not cursor:
                return movements

    @staticmethod
    def _map_movement(movement: dict) -> ScrapedTransaction:
        amount = abs(float(movement["movementAmount"]))
        if movement.get("creditDebit") == "DEBIT":
            amount = -amount
        value_date = _parse_date(movement.get("valueDate"))
        return ScrapedTransaction(
            identifier=movement.get("movementId"),
            date=_parse_date(movement.get("movementTimestamp")) or value_date,
            processed_date=value_date,
            original_amount=amount,
            original_currency=movement.get("movementCurrency") or "ILS",
            charged_amount=amount,
            charged_currency=movement.get("movementCurrency"),
            description=movement.get("description") or "",
            memo=movement.get("memo"),
            status="pending" if movement.get("isPending") else "completed",
        )

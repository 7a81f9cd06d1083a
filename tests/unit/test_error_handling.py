"""Unit tests for error handling middleware and PII filtering."""

import json
import logging
from unittest.mock import Mock

import pytest
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from finsync.api.middleware.error_handler import (
    handle_finance_sync_error,
    handle_generic_error,
    handle_integrity_error,
    handle_validation_error,
)
from finsync.api.middleware.logging import filter_pii
from finsync.core.errors import ERROR_CATALOG, get_error, get_suggestion, get_user_message, is_retryable
from finsync.core.exceptions import (
    AuthRequiredError,
    FinanceSyncError,
    TwoFactorSessionExpiredError,
)


def _request(path: str = "/api/v1/connections") -> Mock:
    request = Mock(spec=Request)
    request.url.path = path
    request.method = "POST"
    return request


class TestErrorCatalog:
    def test_every_entry_is_complete(self):
        for code, entry in ERROR_CATALOG.items():
            assert entry["code"] == code
            for key in ("message", "user_message", "suggestion", "retry_allowed"):
                assert key in entry

    def test_lookup_helpers(self):
        assert get_error("AUTH_002")["retry_allowed"] is True
        assert is_retryable("AUTH_001") is False
        assert get_user_message("DOES_NOT_EXIST")
        assert get_suggestion("PROV_001") == ERROR_CATALOG["PROV_001"]["suggestion"]

    def test_exception_defaults(self):
        exc = TwoFactorSessionExpiredError()

        assert exc.error_code == "AUTH_002"
        assert exc.http_status == 410
        assert exc.details == {}


class TestFinanceSyncErrorHandler:
    """Test custom exception handling."""

    @pytest.mark.asyncio
    async def test_catalog_fields_are_returned(self):
        exc = AuthRequiredError(details={"provider": "onezero"})

        response = await handle_finance_sync_error(_request(), exc)
        body = json.loads(response.body)

        assert response.status_code == 401
        assert body["error_code"] == "AUTH_001"
        assert body["user_message"] == ERROR_CATALOG["AUTH_001"]["user_message"]
        assert body["retry_allowed"] is False
        assert "provider" not in json.dumps(body)

    @pytest.mark.asyncio
    async def test_unknown_code_uses_generic_text(self):
        exc = FinanceSyncError(error_code="NOPE_999", http_status=418)

        response = await handle_finance_sync_error(_request(), exc)
        body = json.loads(response.body)

        assert response.status_code == 418
        assert body["error_code"] == "NOPE_999"
        assert body["user_message"] == "An error occurred"

    @pytest.mark.asyncio
    async def test_log_level_follows_status(self, caplog):
        with caplog.at_level(logging.WARNING, logger="finsync.api.middleware.error_handler"):
            await handle_finance_sync_error(_request(), AuthRequiredError())
            await handle_finance_sync_error(_request(), FinanceSyncError(error_code="SYS_001", http_status=503))

        levels = [record.levelname for record in caplog.records]
        assert levels == ["WARNING", "ERROR"]
        assert caplog.records[0].error_code == "AUTH_001"

    @pytest.mark.asyncio
    async def test_validation_error_does_not_log_input(self, caplog):
        exc = RequestValidationError(
            [{"loc": ("body", "password"), "msg": "too short", "type": "value_error", "input": "hunter2"}]
        )

        with caplog.at_level(logging.WARNING, logger="finsync.api.middleware.error_handler"):
            await handle_validation_error(_request(), exc)

        assert caplog.records[0].fields == 1
        assert "hunter2" not in caplog.text


class TestGenericHandlers:
    @pytest.mark.asyncio
    async def test_validation_error(self):
        exc = RequestValidationError(
            [{"loc": ("body", "credentials", "password"), "msg": "Field required", "type": "missing"}]
        )

        response = await handle_validation_error(_request(), exc)
        body = json.loads(response.body)

        assert response.status_code == 400
        assert body["error_code"] == "VAL_000"
        assert "body.credentials.password: Field required" in body["message"]

    @pytest.mark.asyncio
    async def test_unique_violation_is_conflict(self):
        exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        response = await handle_integrity_error(_request(), exc)

        assert response.status_code == 409
        assert json.loads(response.body)["error_code"] == "DB_002"

    @pytest.mark.asyncio
    async def test_other_integrity_error(self):
        exc = IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed"))

        response = await handle_integrity_error(_request(), exc)

        assert response.status_code == 500
        assert json.loads(response.body)["error_code"] == "DB_001"

    @pytest.mark.asyncio
    async def test_generic_error_hides_details(self):
        response = await handle_generic_error(_request(), RuntimeError("password=hunter2"))
        body = json.loads(response.body)

        assert response.status_code == 500
        assert body["error_code"] == "SYS_001"
        assert "hunter2" not in response.body.decode()


class TestPIIFilter:
    """Test PII filtering in logs."""

    def test_card_number(self):
        assert filter_pii("card 4580 1234 5678 9012 declined") == "card [CARD] declined"

    def test_email(self):
        assert filter_pii("login for dana@example.com") == "login for [EMAIL]"

    def test_phone_numbers(self):
        assert "[PHONE]" in filter_pii("sms to +972-50-123-4567")
        assert filter_pii("sms to 050-123-4567") == "sms to [PHONE]"

    def test_national_id(self):
        assert filter_pii("id 123456782") == "id [ID]"

    def test_query_secrets(self):
        assert filter_pii("/verify?code=123456&x=1") == "/verify?code=[REDACTED]&x=1"

    def test_empty(self):
        assert filter_pii("") == ""

    def test_plain_text_unchanged(self):
        assert filter_pii("/api/v1/rules") == "/api/v1/rules"

"""Map raw provider transactions to importable records."""

import hashlib
import re
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from finsync.config import settings
from finsync.providers.base import ScrapedAccount, ScrapedTransaction

# Bank prefixes that precede the actual merchant name: charge, payment,
# transfer, standing order, withdrawal.
_MERCHANT_PREFIX_RE = re.compile(r"^(חיוב|תשלום|העברה|הוראת קבע|משיכה)\s*", re.IGNORECASE)
MIN_MERCHANT_LENGTH = 3
MAX_MERCHANT_LENGTH = 100


@dataclass
class MappedTransaction:
    external_id: str
    external_account_id: str
    txn_date: date
    description: str
    merchant: str | None
    amount: int
    direction: str
    notes: str | None = None
    external_category: str | None = None


def to_minor_units(value: float, minor_unit: int | None = None) -> int:
    """Convert a major-unit amount to a positive integer of minor units."""
    digits = settings.currency_minor_unit if minor_unit is None else minor_unit
    scaled = Decimal(str(abs(value))) * (Decimal(10) ** digits)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def extract_merchant(description: str | None) -> str | None:
    """Best-effort merchant name from a bank description.

    Strips a leading transaction-type prefix and a trailing " - CITY" part.
    Returns None for very short results.
    """
    cleaned = _MERCHANT_PREFIX_RE.sub("", (description or "").strip()).strip()
    if len(cleaned) < MIN_MERCHANT_LENGTH:
        return None

    dash = cleaned.find(" - ")
    if dash > 0:
        cleaned = cleaned[:dash]
    return cleaned[:MAX_MERCHANT_LENGTH]


def build_external_id(account_number: str, txn: ScrapedTransaction) -> str:
    """Stable deduplication key for a transaction.

    Uses the provider's identifier when present, otherwise a digest of the
    transaction's content.
    """
    if txn.identifier:
        return f"{account_number}_{txn.identifier}"

    installments = f"{txn.installments.number}/{txn.installments.total}" if txn.installments else ""
    data = "|".join(
        [
            account_number,
            txn.date.isoformat(),
            f"{txn.charged_amount:.2f}",
            txn.description,
            installments,
        ]
    )
    digest = hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]
    return f"{account_number}_{digest}"


def _build_notes(txn: ScrapedTransaction) -> str | None:
    parts: list[str] = []
    if txn.type == "installments" and txn.installments:
        parts.append(f"תשלום {txn.installments.number}/{txn.installments.total}")
    if txn.memo:
        parts.append(txn.memo)
    if txn.original_currency and txn.original_currency != settings.currency:
        parts.append(f"{txn.original_amount} {txn.original_currency}")
    return " | ".join(parts) if parts else None


def map_transaction(txn: ScrapedTransaction, account_number: str) -> MappedTransaction:
    return MappedTransaction(
        external_id=build_external_id(account_number, txn),
        external_account_id=account_number,
        txn_date=txn.date,
        description=txn.description,
        merchant=extract_merchant(txn.description),
        amount=to_minor_units(txn.charged_amount),
        direction="income" if txn.charged_amount >= 0 else "expense",
        notes=_build_notes(txn),
        external_category=(txn.category or None),
    )


def map_account_transactions(accounts: list[ScrapedAccount]) -> list[MappedTransaction]:
    """Map every completed transaction of every account. Pending rows are skipped."""
    mapped: list[MappedTransaction] = []
    for account in accounts:
        for txn in account.txns:
            if txn.status == "pending":
                continue
            mapped.append(map_transaction(txn, account.account_number))
    return mapped

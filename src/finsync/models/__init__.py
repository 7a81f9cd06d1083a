"""Database models."""
from finsync.models.household import Household
from finsync.models.connection import BankConnection
from finsync.models.sync_job import SyncJob
from finsync.models.account import Account
from finsync.models.category import Category
from finsync.models.category_rule import CategoryRule
from finsync.models.transaction import Transaction

__all__ = [
    "Household",
    "BankConnection",
    "SyncJob",
    "Account",
    "Category",
    "CategoryRule",
    "Transaction",
]

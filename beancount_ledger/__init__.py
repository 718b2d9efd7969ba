"""Public interface for the ``beancount_ledger`` package.

This module exposes the ledger store, the parser/serializer entry points and
the public models as the stable import surface. There is no runtime logic
here, only symbol re-exports.
"""

from .accounts import classify_account, resolve_account_type
from .config import LedgerConfig
from .errors import LedgerError, LedgerFileNotFoundError, TransactionValidationError
from .export import export_transactions
from .ledger import Ledger
from .models import (
    Account,
    AccountType,
    Amount,
    Balance,
    BalanceEntry,
    BalanceSheet,
    CategorySummary,
    CloseEntry,
    Entry,
    FileStats,
    IncomeStatement,
    MonthlySummary,
    NetWorth,
    OpenEntry,
    ParseDiagnostic,
    ParseResult,
    Posting,
    Transaction,
    TransactionEntry,
    ValidationReport,
    ValidationResult,
)
from .parser import parse, parse_postings
from .search import Page, paginate, search_transactions
from .serializer import serialize
from .validation import validate_transaction

__all__ = [
    # Store
    "Ledger",
    "LedgerConfig",
    # Core functions
    "parse",
    "parse_postings",
    "serialize",
    "validate_transaction",
    "classify_account",
    "resolve_account_type",
    "search_transactions",
    "paginate",
    "export_transactions",
    # Errors
    "LedgerError",
    "LedgerFileNotFoundError",
    "TransactionValidationError",
    # Models / types
    "Account",
    "AccountType",
    "Amount",
    "Balance",
    "BalanceEntry",
    "BalanceSheet",
    "CategorySummary",
    "CloseEntry",
    "Entry",
    "FileStats",
    "IncomeStatement",
    "MonthlySummary",
    "NetWorth",
    "OpenEntry",
    "Page",
    "ParseDiagnostic",
    "ParseResult",
    "Posting",
    "Transaction",
    "TransactionEntry",
    "ValidationReport",
    "ValidationResult",
]

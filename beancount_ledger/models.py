"""Data models and type aliases for ``beancount_ledger``.

Parsed ledger content is a sequence of :data:`Entry` values, a tagged union of
four frozen dataclasses (one per directive). Everything the ledger reports
(accounts, transactions, balances, statements) is a read-only projection
computed on demand from that sequence.

Amounts use :class:`decimal.Decimal` throughout; dates are
:class:`datetime.date` (the ledger grammar has day granularity only).
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, NamedTuple


def new_entry_id() -> str:
    """Return a fresh transaction identifier (uuid4 hex)."""

    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Amount:
    """A monetary quantity: a finite decimal number in a currency."""

    number: Decimal
    currency: str

    def __post_init__(self) -> None:
        if not isinstance(self.number, Decimal):
            object.__setattr__(self, "number", Decimal(str(self.number)))
        if not self.number.is_finite():
            raise ValueError(f"Amount.number must be finite, got {self.number!r}")

    def __str__(self) -> str:
        return f"{self.number} {self.currency}"


class AccountType(enum.Enum):
    """Account category derived from the first segment of an account name."""

    ASSETS = "ASSETS"
    LIABILITIES = "LIABILITIES"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSES = "EXPENSES"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True, slots=True)
class Posting:
    """One leg of a transaction.

    ``units`` is ``None`` for a placeholder leg written without an amount; such
    legs are not auto-balanced and are ignored by the balance check.
    """

    account: str
    units: Amount | None = None
    meta: Mapping[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True, slots=True)
class Transaction:
    """A dated, balanced movement between accounts.

    This is both the input accepted by :meth:`Ledger.add_transaction` and the
    projection returned by :meth:`Ledger.get_transactions`. ``id`` is filled in
    by the ledger; callers creating new transactions leave it as ``None``.
    """

    date: date | None
    narration: str
    postings: tuple[Posting, ...] = ()
    payee: str | None = None
    flag: str = "*"
    tags: tuple[str, ...] = ()
    links: tuple[str, ...] = ()
    meta: Mapping[str, Any] = field(default_factory=dict, compare=False)
    id: str | None = field(default=None, compare=False)


@dataclass(frozen=True, slots=True)
class Account:
    """An account as declared by an ``open`` directive."""

    name: str
    type: AccountType
    open_date: date
    meta: Mapping[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True, slots=True)
class Balance:
    """A balance assertion data point (not a running total)."""

    account: str
    amount: Amount
    date: date


# ---------------------------------------------------------------------------
# Entries (parser output; owned by the ledger)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TransactionEntry:
    date: date
    narration: str
    flag: str = "*"
    payee: str | None = None
    postings: tuple[Posting, ...] = ()
    tags: tuple[str, ...] = ()
    links: tuple[str, ...] = ()
    meta: Mapping[str, Any] = field(default_factory=dict, compare=False)
    # The ledger replaces this with a content fingerprint; never compared.
    id: str = field(default_factory=new_entry_id, compare=False)


@dataclass(frozen=True, slots=True)
class OpenEntry:
    date: date
    account: str
    meta: Mapping[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True, slots=True)
class CloseEntry:
    date: date
    account: str
    meta: Mapping[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True, slots=True)
class BalanceEntry:
    date: date
    account: str
    amount: Amount | None = None
    meta: Mapping[str, Any] = field(default_factory=dict, compare=False)


type Entry = TransactionEntry | OpenEntry | CloseEntry | BalanceEntry
"""A single parsed directive. Consumers dispatch with ``match``."""


@dataclass(frozen=True, slots=True)
class ParseDiagnostic:
    """A line the parser skipped, or parsed only partially."""

    lineno: int
    line: str
    message: str

    def __str__(self) -> str:
        return f"line {self.lineno}: {self.message}"


class ParseResult(NamedTuple):
    """Entries in file order plus diagnostics for skipped/partial lines."""

    entries: list[Entry]
    diagnostics: list[ParseDiagnostic]


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NetWorth:
    date: date
    total_assets: Decimal
    total_liabilities: Decimal
    net_worth: Decimal


@dataclass(frozen=True, slots=True)
class IncomeStatement:
    start_date: date
    end_date: date
    total_income: Decimal
    total_expenses: Decimal
    net_income: Decimal


@dataclass(frozen=True, slots=True)
class BalanceSheet:
    """Latest asserted balance per account, split by account type.

    A later balance assertion for the same account replaces an earlier one.
    """

    date: date
    assets: dict[str, Decimal]
    liabilities: dict[str, Decimal]
    equity: dict[str, Decimal]


@dataclass(frozen=True, slots=True)
class MonthlySummary:
    """Income and expense totals for one calendar month.

    ``balance_changes`` sums every posting by the root segment of its account
    (``Assets``, ``Expenses``, ...).
    """

    year: int
    month: int
    total_income: Decimal
    total_expenses: Decimal
    net_income: Decimal
    transaction_count: int
    balance_changes: dict[str, Decimal]


@dataclass(frozen=True, slots=True)
class CategorySummary:
    """Posting statistics for one ``Root:Category`` account prefix.

    Amounts are absolute posting numbers; ``percentage`` is this category's
    share of all categories in the same summary.
    """

    category: str
    total: Decimal
    posting_count: int
    average: Decimal
    largest: Decimal
    smallest: Decimal
    percentage: Decimal


@dataclass(frozen=True, slots=True)
class FileStats:
    total_accounts: int
    total_transactions: int
    total_balances: int
    total_errors: int
    file_path: str


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of validating a single transaction."""

    errors: tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """Ledger-wide validation outcome returned by :meth:`Ledger.validate`."""

    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


__all__ = [
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
    "ParseDiagnostic",
    "ParseResult",
    "Posting",
    "Transaction",
    "TransactionEntry",
    "ValidationReport",
    "ValidationResult",
    "new_entry_id",
]

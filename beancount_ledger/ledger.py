"""In-memory ledger store backed by a single plain-text file.

The :class:`Ledger` owns the ordered entry list parsed from its file (file
order, never re-sorted). Accounts, transactions, balances and the statements
are projections recomputed on every call. Mutations validate first, change the
entry list, and then rewrite the whole file. Transaction ids are short
fingerprints of their content, recomputed after every change, so an unchanged
file yields the same ids on every load.

The store is synchronous and keeps no lock: two processes writing the same
file race, and the last write wins.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import os
from collections import Counter
from collections.abc import Iterable
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from os import PathLike
from pathlib import Path
from typing import Any

from . import search as _search
from .accounts import resolve_account_type
from .config import LedgerConfig
from .errors import LedgerFileNotFoundError, TransactionValidationError
from .logging_setup import get_logger
from .models import (
    Account,
    AccountType,
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
    Transaction,
    TransactionEntry,
    ValidationReport,
    ValidationResult,
)
from .parser import parse
from .reports import category_summary, monthly_summary
from .serializer import format_number, serialize
from .validation import validate_transaction

_logger = get_logger("beancount_ledger.ledger")


def _as_date(value: date | datetime) -> date:
    # ``datetime`` is a ``date`` subclass; compare at day granularity.
    if isinstance(value, datetime):
        return value.date()
    return value


def _content_key(entry: TransactionEntry, *, header_only: bool) -> str:
    """Canonical JSON of the parts of ``entry`` that survive a write."""

    payload: dict[str, Any] = {
        "date": entry.date.isoformat(),
        "flag": entry.flag,
        "payee": entry.payee,
        "narration": entry.narration,
    }
    if not header_only:
        payload["postings"] = [
            [
                p.account,
                format_number(p.units.number) if p.units is not None else None,
                p.units.currency if p.units is not None else None,
            ]
            for p in entry.postings
        ]
        payload["tags"] = list(entry.tags)
        payload["links"] = list(entry.links)
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _fingerprint(key: str, occurrence: int) -> str:
    data = f"{key}#{occurrence}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:12]


def _assign_ids(entries: Iterable[Entry], *, header_only: bool) -> list[Entry]:
    """Give every transaction an id derived from its content.

    Identical transactions are told apart by how many came before them in
    file order, so ids stay the same across reloads of an unchanged file.
    """

    seen: Counter[str] = Counter()
    assigned: list[Entry] = []
    for entry in entries:
        if isinstance(entry, TransactionEntry):
            key = _content_key(entry, header_only=header_only)
            entry = replace(entry, id=_fingerprint(key, seen[key]))
            seen[key] += 1
        assigned.append(entry)
    return assigned


class Ledger:
    """Query and mutate a ledger file.

    Parameters
    ----------
    file_path:
        Path to the ledger file. It must exist; the constructor loads it.
    config:
        Behavior switches; defaults to :class:`LedgerConfig()`.

    Raises
    ------
    LedgerFileNotFoundError
        When ``file_path`` does not exist.
    """

    def __init__(
        self,
        file_path: str | PathLike[str],
        *,
        config: LedgerConfig | None = None,
    ) -> None:
        self.file_path = os.fspath(file_path)
        self.config = config if config is not None else LedgerConfig()
        self._entries: list[Entry] = []
        self._errors: list[str] = []
        self._diagnostics: list[ParseDiagnostic] = []
        self.reload()

    # ------------------------------------------------------------------
    # Loading and persistence
    # ------------------------------------------------------------------

    def reload(self) -> None:
        """Re-read the file, replacing entries, diagnostics and load errors.

        Validation failures are recorded in :attr:`errors` and logged; they
        do not make loading fail.
        """

        path = Path(self.file_path)
        if not path.exists():
            raise LedgerFileNotFoundError(path)

        content = path.read_text(encoding=self.config.encoding)
        entries, diagnostics = parse(content)

        # Replace rather than mutate so earlier snapshots stay intact.
        self._entries = self._with_ids(entries)
        self._diagnostics = diagnostics
        self._errors = self._validate_entries()

        _logger.debug("Loaded %d entries from %s", len(entries), self.file_path)
        if diagnostics:
            _logger.warning(
                "Skipped or partially parsed %d line(s) in %s", len(diagnostics), self.file_path
            )
        if self._errors:
            _logger.warning(
                "Found %d validation error(s) while loading %s", len(self._errors), self.file_path
            )

    def _save(self) -> None:
        path = Path(self.file_path)
        tmp = path.with_name(path.name + ".tmp")
        text = serialize(self._entries, header_only=self.config.header_only_writes)
        try:
            tmp.write_text(text, encoding=self.config.encoding)
            os.replace(tmp, path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise
        _logger.info("Wrote %d entries to %s", len(self._entries), self.file_path)

    def _with_ids(self, entries: Iterable[Entry]) -> list[Entry]:
        return _assign_ids(entries, header_only=self.config.header_only_writes)

    def _to_transaction(self, entry: TransactionEntry) -> Transaction:
        # Header-only files never carry tags or links, so none are reported.
        header_only = self.config.header_only_writes
        return Transaction(
            date=entry.date,
            narration=entry.narration,
            postings=entry.postings,
            payee=entry.payee,
            flag=entry.flag,
            tags=() if header_only else entry.tags,
            links=() if header_only else entry.links,
            meta=dict(entry.meta),
            id=entry.id,
        )

    def _entry_from(self, tx: Transaction, when: date) -> TransactionEntry:
        if self.config.header_only_writes:
            return TransactionEntry(
                date=when,
                narration=tx.narration,
                flag=tx.flag or "*",
                payee=tx.payee,
                meta={**tx.meta, "tags": list(tx.tags), "links": list(tx.links)},
            )
        return TransactionEntry(
            date=when,
            narration=tx.narration,
            flag=tx.flag or "*",
            payee=tx.payee,
            postings=tuple(tx.postings),
            tags=tuple(tx.tags),
            links=tuple(tx.links),
            meta=dict(tx.meta),
        )

    def _checked_entry(self, tx: Transaction) -> TransactionEntry:
        result = self._validate(tx)
        if not result.valid or tx.date is None:
            _logger.info("Rejected transaction %r: %s", tx.narration, "; ".join(result.errors))
            raise TransactionValidationError(result.errors)
        return self._entry_from(tx, _as_date(tx.date))

    def _validate_entries(self) -> list[str]:
        errors: list[str] = []
        for entry in self._entries:
            if not isinstance(entry, TransactionEntry):
                continue
            result = self._validate(self._to_transaction(entry))
            lineno = entry.meta.get("lineno")
            prefix = f"line {lineno}: " if lineno is not None else ""
            errors.extend(prefix + msg for msg in result.errors)
        return errors

    def _validate(self, tx: Transaction) -> ValidationResult:
        return validate_transaction(
            tx,
            tolerance=self.config.tolerance,
            per_currency=self.config.per_currency_balance,
        )

    def _account_type(self, name: str) -> AccountType:
        return resolve_account_type(
            name, unknown_as_assets=self.config.unknown_accounts_as_assets
        )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    @property
    def entries(self) -> tuple[Entry, ...]:
        return tuple(self._entries)

    @property
    def errors(self) -> list[str]:
        """Validation messages collected at the last load."""

        return list(self._errors)

    @property
    def parse_diagnostics(self) -> list[ParseDiagnostic]:
        return list(self._diagnostics)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_accounts(self) -> list[Account]:
        """One :class:`Account` per ``open`` entry, in file order.

        Repeated ``open`` lines for the same account yield repeated records.
        """

        accounts: list[Account] = []
        for entry in self._entries:
            match entry:
                case OpenEntry(date=d, account=name) if name:
                    accounts.append(
                        Account(
                            name=name,
                            type=self._account_type(name),
                            open_date=d,
                            meta=dict(entry.meta),
                        )
                    )
        return accounts

    def get_transactions(
        self,
        start_date: date | datetime | None = None,
        end_date: date | datetime | None = None,
    ) -> list[Transaction]:
        """Transactions dated within ``[start_date, end_date]`` (inclusive days)."""

        start = _as_date(start_date) if start_date is not None else None
        end = _as_date(end_date) if end_date is not None else None

        transactions: list[Transaction] = []
        for entry in self._entries:
            if not isinstance(entry, TransactionEntry):
                continue
            if start is not None and entry.date < start:
                continue
            if end is not None and entry.date > end:
                continue
            transactions.append(self._to_transaction(entry))
        return transactions

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        for entry in self._entries:
            if isinstance(entry, TransactionEntry) and entry.id == transaction_id:
                return self._to_transaction(entry)
        return None

    def get_balances(
        self,
        account: str | None = None,
        balance_date: date | datetime | None = None,
    ) -> list[Balance]:
        """Balance assertions dated on or before ``balance_date`` (default today).

        Each assertion is its own data point; nothing is accumulated.
        Assertions without an amount are left out.
        """

        target = _as_date(balance_date) if balance_date is not None else date.today()

        balances: list[Balance] = []
        for entry in self._entries:
            match entry:
                case BalanceEntry(date=d, account=name, amount=amount) if amount is not None:
                    if account is not None and name != account:
                        continue
                    if d > target:
                        continue
                    balances.append(Balance(account=name, amount=amount, date=d))
        return balances

    def get_net_worth(self, target_date: date | datetime | None = None) -> NetWorth:
        """Sum asserted asset and liability balances up to ``target_date``.

        Liability balances are subtracted as written (no sign flip), and
        numbers are summed regardless of currency.
        """

        when = _as_date(target_date) if target_date is not None else date.today()
        total_assets = Decimal(0)
        total_liabilities = Decimal(0)
        for balance in self.get_balances(None, when):
            kind = self._account_type(balance.account)
            if kind is AccountType.ASSETS:
                total_assets += balance.amount.number
            elif kind is AccountType.LIABILITIES:
                total_liabilities += balance.amount.number
        return NetWorth(
            date=when,
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            net_worth=total_assets - total_liabilities,
        )

    def get_income_statement(
        self, start_date: date | datetime, end_date: date | datetime
    ) -> IncomeStatement:
        """Sum income and expense postings of transactions in the date range."""

        total_income = Decimal(0)
        total_expenses = Decimal(0)
        for tx in self.get_transactions(start_date, end_date):
            for posting in tx.postings:
                if posting.units is None:
                    continue
                kind = self._account_type(posting.account)
                if kind is AccountType.INCOME:
                    total_income += posting.units.number
                elif kind is AccountType.EXPENSES:
                    total_expenses += posting.units.number
        return IncomeStatement(
            start_date=_as_date(start_date),
            end_date=_as_date(end_date),
            total_income=total_income,
            total_expenses=total_expenses,
            net_income=total_income - total_expenses,
        )

    def get_balance_sheet(self, target_date: date | datetime | None = None) -> BalanceSheet:
        when = _as_date(target_date) if target_date is not None else date.today()
        buckets: dict[AccountType, dict[str, Decimal]] = {
            AccountType.ASSETS: {},
            AccountType.LIABILITIES: {},
            AccountType.EQUITY: {},
        }
        for balance in self.get_balances(None, when):
            bucket = buckets.get(self._account_type(balance.account))
            if bucket is not None:
                # Last write wins per account.
                bucket[balance.account] = balance.amount.number
        return BalanceSheet(
            date=when,
            assets=buckets[AccountType.ASSETS],
            liabilities=buckets[AccountType.LIABILITIES],
            equity=buckets[AccountType.EQUITY],
        )

    def get_file_stats(self) -> FileStats:
        return FileStats(
            total_accounts=len(self.get_accounts()),
            total_transactions=len(self.get_transactions()),
            total_balances=len(self.get_balances()),
            total_errors=len(self._errors),
            file_path=self.file_path,
        )

    def get_monthly_summary(self, year: int, month: int | None = None) -> list[MonthlySummary]:
        """Per-month income and expense totals for ``year``.

        Returns one summary for ``month``, or twelve when it is omitted.
        """

        return monthly_summary(
            self.get_transactions(date(year, 1, 1), date(year, 12, 31)),
            year,
            month,
            resolve=self._account_type,
        )

    def get_category_summary(
        self,
        start_date: date | datetime | None = None,
        end_date: date | datetime | None = None,
        account_type: AccountType | None = None,
    ) -> list[CategorySummary]:
        return category_summary(
            self.get_transactions(start_date, end_date),
            account_type=account_type,
            resolve=self._account_type,
        )

    def search_transactions(self, **filters: Any) -> list[Transaction]:
        """Filter and sort transactions; see :func:`search.search_transactions`."""

        return _search.search_transactions(self.get_transactions(), **filters)

    def validate(self) -> ValidationReport:
        """Report load-time errors plus consistency warnings.

        Warnings cover parse diagnostics, postings to accounts that were never
        opened, and transactions dated after their account was closed.
        """

        opened: set[str] = set()
        closed: dict[str, date] = {}
        for entry in self._entries:
            match entry:
                case OpenEntry(account=name) if name:
                    opened.add(name)
                case CloseEntry(date=d, account=name) if name:
                    closed[name] = d

        warnings: list[str] = [str(d) for d in self._diagnostics]
        for entry in self._entries:
            if not isinstance(entry, TransactionEntry):
                continue
            for posting in entry.postings:
                lineno = posting.meta.get("lineno", entry.meta.get("lineno"))
                prefix = f"line {lineno}: " if lineno is not None else ""
                if posting.account not in opened:
                    warnings.append(f"{prefix}account {posting.account} is not opened")
                closed_on = closed.get(posting.account)
                if closed_on is not None and entry.date > closed_on:
                    warnings.append(
                        f"{prefix}account {posting.account} is used after it was closed "
                        f"on {closed_on.isoformat()}"
                    )

        return ValidationReport(errors=tuple(self._errors), warnings=tuple(warnings))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_transaction(self, tx: Transaction) -> Transaction:
        """Validate ``tx``, append it and rewrite the file.

        Returns the stored transaction, carrying its assigned ``id``.

        Raises
        ------
        TransactionValidationError
            When ``tx`` fails validation; nothing is changed.
        OSError
            When writing fails. The transaction stays appended in memory.
        """

        entry = self._checked_entry(tx)
        self._entries = self._with_ids([*self._entries, entry])
        self._save()
        return self._transaction_at(len(self._entries) - 1)

    def update_transaction(self, transaction_id: str, tx: Transaction) -> Transaction | None:
        """Replace the transaction ``transaction_id`` with ``tx`` in place.

        The replacement keeps the old one's position in the file. Its id is
        recomputed from the new content. Returns ``None`` when no transaction
        has that id.

        Raises
        ------
        TransactionValidationError
            When ``tx`` fails validation; nothing is changed.
        OSError
            When writing fails. The replacement stays in memory.
        """

        index = self._index_of(transaction_id)
        if index is None:
            return None
        entry = self._checked_entry(tx)
        entries = list(self._entries)
        entries[index] = entry
        self._entries = self._with_ids(entries)
        self._save()
        return self._transaction_at(index)

    def delete_transaction(self, transaction_date: date | datetime, narration: str) -> bool:
        """Remove the first transaction matching ``transaction_date`` and ``narration``.

        Transactions sharing a date and narration cannot be told apart here;
        only the first is removed. Prefer :meth:`delete_transaction_by_id`.
        """

        when = _as_date(transaction_date)
        return self._delete_first(
            e
            for e in self._entries
            if isinstance(e, TransactionEntry) and e.date == when and e.narration == narration
        )

    def delete_transaction_by_id(self, transaction_id: str) -> bool:
        return self._delete_first(
            e for e in self._entries if isinstance(e, TransactionEntry) and e.id == transaction_id
        )

    def _delete_first(self, candidates: Iterable[TransactionEntry]) -> bool:
        target = next(iter(candidates), None)
        if target is None:
            return False
        # Identity, not equality: equal entries may appear more than once.
        self._entries = self._with_ids(e for e in self._entries if e is not target)
        self._save()
        return True

    def _index_of(self, transaction_id: str) -> int | None:
        for i, entry in enumerate(self._entries):
            if isinstance(entry, TransactionEntry) and entry.id == transaction_id:
                return i
        return None

    def _transaction_at(self, index: int) -> Transaction:
        entry = self._entries[index]
        if not isinstance(entry, TransactionEntry):
            raise TypeError(f"entry {index} is a {type(entry).__name__}, not a transaction")
        return self._to_transaction(entry)


__all__ = ["Ledger"]

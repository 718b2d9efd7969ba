"""Transaction search, sorting and pagination helpers.

These are pure functions over already-projected :class:`Transaction` values;
the ledger exposes them through :meth:`Ledger.search_transactions`.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from .models import Transaction

SORT_KEYS: tuple[str, ...] = ("date", "amount", "narration", "payee")


def transaction_amount(tx: Transaction, currency: str | None = None) -> Decimal:
    """Absolute value of the summed posting numbers, optionally for one currency."""

    total = Decimal(0)
    for posting in tx.postings:
        if posting.units is None:
            continue
        if currency is None or posting.units.currency == currency:
            total += posting.units.number
    return abs(total)


def _day(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _matches_query(tx: Transaction, needle: str) -> bool:
    haystack = [tx.narration, tx.payee or "", *tx.tags, *tx.links]
    haystack.extend(p.account for p in tx.postings)
    return any(needle in s.lower() for s in haystack)


def _sort_key(sort_by: str, currency: str | None) -> Callable[[Transaction], Any]:
    match sort_by:
        case "date":
            return lambda tx: tx.date or date.min
        case "amount":
            return lambda tx: transaction_amount(tx, currency)
        case "narration":
            return lambda tx: tx.narration
        case "payee":
            return lambda tx: tx.payee or ""
    raise ValueError(f"unknown sort key {sort_by!r}; expected one of {', '.join(SORT_KEYS)}")


def search_transactions(
    transactions: Iterable[Transaction],
    *,
    query: str | None = None,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    accounts: Sequence[str] | None = None,
    tags: Sequence[str] | None = None,
    min_amount: Decimal | int | None = None,
    max_amount: Decimal | int | None = None,
    currency: str | None = None,
    sort_by: str | None = None,
    descending: bool = False,
) -> list[Transaction]:
    """Filter ``transactions`` and optionally sort them.

    - ``query``: case-insensitive substring of narration, payee, a tag, a
      link, or a posting account.
    - ``start``/``end``: inclusive day bounds.
    - ``accounts``: any posting account containing any of the fragments.
    - ``tags``: carries at least one of the tags.
    - ``min_amount``/``max_amount``: bounds on :func:`transaction_amount`
      (restricted to ``currency`` when given).
    - ``sort_by``: one of ``date``, ``amount``, ``narration``, ``payee``.
      Sorting is stable.
    """

    # Resolve the sort key up front so a bad key fails before any work.
    key = _sort_key(sort_by, currency) if sort_by is not None else None
    lo = _day(start) if start is not None else None
    hi = _day(end) if end is not None else None
    needle = query.lower() if query else None

    selected: list[Transaction] = []
    for tx in transactions:
        if needle is not None and not _matches_query(tx, needle):
            continue
        if tx.date is not None:
            if lo is not None and tx.date < lo:
                continue
            if hi is not None and tx.date > hi:
                continue
        if accounts and not any(
            fragment in p.account for p in tx.postings for fragment in accounts
        ):
            continue
        if tags and not any(t in tx.tags for t in tags):
            continue
        if min_amount is not None or max_amount is not None:
            amount = transaction_amount(tx, currency)
            if min_amount is not None and amount < Decimal(min_amount):
                continue
            if max_amount is not None and amount > Decimal(max_amount):
                continue
        selected.append(tx)

    if key is not None:
        selected.sort(key=key, reverse=descending)
    return selected


@dataclass(frozen=True)
class Page[T]:
    """One page of results plus navigation details."""

    items: list[T]
    current_page: int
    page_size: int
    total_records: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.current_page > 1


def paginate[T](items: Sequence[T], page: int = 1, page_size: int = 20) -> Page[T]:
    """Return page ``page`` (1-based, clamped to the valid range) of ``items``."""

    if page_size < 1:
        raise ValueError("page_size must be a positive integer")

    total = len(items)
    total_pages = math.ceil(total / page_size)
    current = max(1, min(page, total_pages))
    offset = (current - 1) * page_size
    return Page(
        items=list(items[offset : offset + page_size]),
        current_page=current,
        page_size=page_size,
        total_records=total,
        total_pages=total_pages,
    )


__all__ = ["SORT_KEYS", "Page", "paginate", "search_transactions", "transaction_amount"]

"""Monthly and category summaries over transactions.

Posting numbers are summed as written, bucketed by account type, the same way
:meth:`Ledger.get_income_statement` does it. Income postings are therefore
usually negative.
"""

from __future__ import annotations

import calendar
from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from .accounts import resolve_account_type
from .models import AccountType, CategorySummary, MonthlySummary, Transaction

_CENT = Decimal("0.01")

type AccountResolver = Callable[[str], AccountType]


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def monthly_summary(
    transactions: Iterable[Transaction],
    year: int,
    month: int | None = None,
    *,
    resolve: AccountResolver = resolve_account_type,
) -> list[MonthlySummary]:
    """Summaries for ``month`` of ``year``, or for all twelve months.

    Months without transactions are still reported, with zero totals.

    Raises
    ------
    ValueError
        When ``month`` is outside ``1..12``.
    """

    if month is not None and not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month}")
    months = [month] if month is not None else list(range(1, 13))
    dated = [tx for tx in transactions if tx.date is not None]

    summaries: list[MonthlySummary] = []
    for m in months:
        first, last = _month_bounds(year, m)
        income = Decimal(0)
        expenses = Decimal(0)
        changes: dict[str, Decimal] = defaultdict(Decimal)
        count = 0
        for tx in dated:
            if not first <= tx.date <= last:
                continue
            count += 1
            for posting in tx.postings:
                if posting.units is None:
                    continue
                number = posting.units.number
                changes[posting.account.split(":", 1)[0]] += number
                match resolve(posting.account):
                    case AccountType.INCOME:
                        income += number
                    case AccountType.EXPENSES:
                        expenses += number
        summaries.append(
            MonthlySummary(
                year=year,
                month=m,
                total_income=income,
                total_expenses=expenses,
                net_income=income - expenses,
                transaction_count=count,
                balance_changes=dict(changes),
            )
        )
    return summaries


def category_summary(
    transactions: Iterable[Transaction],
    *,
    account_type: AccountType | None = None,
    resolve: AccountResolver = resolve_account_type,
) -> list[CategorySummary]:
    """Group posting amounts by their ``Root:Category`` prefix.

    Only postings with units on accounts that have at least two segments are
    counted; ``account_type`` limits them further. Results are ordered by
    total, largest first. ``percentage`` is rounded to two places.
    """

    amounts: dict[str, list[Decimal]] = defaultdict(list)
    for tx in transactions:
        for posting in tx.postings:
            if posting.units is None:
                continue
            root, _, rest = posting.account.partition(":")
            if not rest:
                continue
            if account_type is not None and resolve(posting.account) is not account_type:
                continue
            category = f"{root}:{rest.split(':', 1)[0]}"
            amounts[category].append(abs(posting.units.number))

    grand_total = sum((sum(values, Decimal(0)) for values in amounts.values()), Decimal(0))

    summaries: list[CategorySummary] = []
    for category, values in amounts.items():
        total = sum(values, Decimal(0))
        share = total * 100 / grand_total if grand_total else Decimal(0)
        summaries.append(
            CategorySummary(
                category=category,
                total=total,
                posting_count=len(values),
                average=total / len(values),
                largest=max(values),
                smallest=min(values),
                percentage=share.quantize(_CENT, rounding=ROUND_HALF_UP),
            )
        )
    summaries.sort(key=lambda s: s.total, reverse=True)
    return summaries


__all__ = ["category_summary", "monthly_summary"]

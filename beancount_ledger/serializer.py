"""Render entries back into ledger text.

Output is written the way :mod:`beancount_ledger.parser` reads it, one entry
per block with blocks separated by a single blank line. Balance assertions
without an amount are omitted. With ``header_only=True`` transactions are
reduced to their header line (no postings, tags or links), which is how older
releases wrote files.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from .models import (
    Amount,
    BalanceEntry,
    CloseEntry,
    Entry,
    OpenEntry,
    Transaction,
    TransactionEntry,
)


def format_number(number: Decimal) -> str:
    # Fixed-point; never scientific notation.
    return f"{number:f}"


def format_amount(amount: Amount) -> str:
    return f"{format_number(amount.number)} {amount.currency}"


def format_transaction(tx: TransactionEntry | Transaction, *, header_only: bool = False) -> str:
    """Return the header line and, unless ``header_only``, its posting lines."""

    if tx.date is None:
        raise ValueError("cannot format a transaction without a date")

    header = f"{tx.date.isoformat()} {tx.flag or '*'}"
    if tx.payee:
        header += f" {tx.payee}"
    if tx.narration:
        header += f' "{tx.narration}"'
    if header_only:
        return header

    if tx.tags:
        header += " " + " ".join(f"#{t}" for t in tx.tags)
    if tx.links:
        header += " " + " ".join(f"^{link}" for link in tx.links)

    lines = [header]
    for posting in tx.postings:
        line = f"  {posting.account}"
        if posting.units is not None:
            line += f" {format_amount(posting.units)}"
        lines.append(line)
    return "\n".join(lines)


def format_entry(entry: Entry, *, header_only: bool = False) -> str | None:
    """Render one entry, or ``None`` when it has nothing to write."""

    match entry:
        case TransactionEntry():
            return format_transaction(entry, header_only=header_only)
        case OpenEntry(date=d, account=account):
            return f"{d.isoformat()} open {account}"
        case CloseEntry(date=d, account=account):
            return f"{d.isoformat()} close {account}"
        case BalanceEntry(date=d, account=account, amount=amount):
            if amount is None:
                return None
            return f"{d.isoformat()} balance {account} {format_amount(amount)}"
    raise TypeError(f"unsupported entry type: {type(entry).__name__}")


def serialize(entries: Iterable[Entry], *, header_only: bool = False) -> str:
    """Render ``entries`` in order as ledger text ending with a newline."""

    blocks = [
        text
        for text in (format_entry(e, header_only=header_only) for e in entries)
        if text is not None
    ]
    if not blocks:
        return ""
    return "\n\n".join(blocks) + "\n"


__all__ = ["format_amount", "format_entry", "format_number", "format_transaction", "serialize"]

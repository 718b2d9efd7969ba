"""Double-entry validation of a single transaction.

A transaction is valid when it has a date, a non-empty narration, at least one
posting, and its present posting amounts sum to zero within a tolerance. Text
fields must also be writable: no quotes or line breaks in the narration or
payee, and one-word accounts, currencies, tags and links.
Postings without units are ignored by the sum (they are not auto-balanced).

By default the sum runs over every posting regardless of currency, matching
ledgers written by older releases. ``per_currency=True`` checks each currency
group on its own.
"""

from __future__ import annotations

import re
from collections import defaultdict
from decimal import Decimal

from .models import Transaction, ValidationResult

DEFAULT_TOLERANCE = Decimal("0.01")
FLAGS = ("*", "!")

_DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")


def _posting_sums(tx: Transaction, *, per_currency: bool) -> dict[str | None, Decimal]:
    sums: dict[str | None, Decimal] = defaultdict(Decimal)
    for posting in tx.postings:
        if posting.units is None:
            continue
        key = posting.units.currency if per_currency else None
        sums[key] += posting.units.number
    return sums


def _has_space(text: str) -> bool:
    return any(ch.isspace() for ch in text)


def _format_errors(tx: Transaction) -> list[str]:
    # Values the ledger text format cannot carry without being misread.
    errors: list[str] = []
    if (tx.flag or "*") not in FLAGS:
        errors.append(f"transaction flag must be one of {' '.join(FLAGS)}, got {tx.flag!r}")
    for label, text in (("narration", tx.narration), ("payee", tx.payee or "")):
        if '"' in text or "\n" in text or "\r" in text:
            errors.append(f"transaction {label} must not contain quotes or line breaks")
    for posting in tx.postings:
        account = posting.account
        if not account or _has_space(account) or ";" in account:
            errors.append(f"posting account {account!r} must be one word without ';'")
        elif _DATE_PREFIX_RE.match(account):
            errors.append(f"posting account {account!r} must not start with a date")
        if posting.units is not None:
            currency = posting.units.currency
            if not currency or _has_space(currency) or ";" in currency:
                errors.append(f"posting currency {currency!r} must be one word without ';'")
    for label, values in (("tag", tx.tags), ("link", tx.links)):
        for value in values:
            if not value or _has_space(value) or '"' in value:
                errors.append(f"{label} {value!r} must be one word without quotes")
    return errors


def validate_transaction(
    tx: Transaction,
    *,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    per_currency: bool = False,
) -> ValidationResult:
    """Check ``tx`` and return every violation as a human-readable message."""

    errors: list[str] = []

    if tx.date is None:
        errors.append("transaction date is required")
    if not tx.narration or not tx.narration.strip():
        errors.append("transaction narration must be non-empty")
    if not tx.postings:
        errors.append("transaction needs at least one posting")

    errors.extend(_format_errors(tx))

    for currency, total in sorted(
        _posting_sums(tx, per_currency=per_currency).items(), key=lambda kv: kv[0] or ""
    ):
        if abs(total) > tolerance:
            where = f" in {currency}" if currency else ""
            errors.append(
                f"transaction is unbalanced{where}: postings sum to {total} "
                f"(tolerance {tolerance})"
            )

    return ValidationResult(errors=tuple(errors))


__all__ = ["DEFAULT_TOLERANCE", "FLAGS", "validate_transaction"]

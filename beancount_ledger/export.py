"""Export transactions as CSV, JSON, or ledger text.

The JSON document is described by pydantic models so its on-disk shape is
explicit and versioned (``schema_version``). Decimal numbers are written as
strings to keep them exact.
"""

from __future__ import annotations

import csv
from collections.abc import Iterable
from datetime import UTC, datetime
from io import StringIO

from pydantic import BaseModel, ConfigDict

from .models import Transaction
from .search import transaction_amount
from .serializer import format_number, format_transaction

# Bump only when the JSON document shape changes.
SCHEMA_VERSION: int = 1

EXPORT_FORMATS: tuple[str, ...] = ("csv", "json", "beancount")

CSV_COLUMNS: tuple[str, ...] = (
    "date",
    "payee",
    "narration",
    "amount",
    "currency",
    "accounts",
    "tags",
    "links",
)


# ---------------------------------------------------------------------------
# JSON document schema
# ---------------------------------------------------------------------------


class ExportedPosting(BaseModel):
    model_config = ConfigDict(extra="forbid")

    account: str
    number: str | None = None
    currency: str | None = None


class ExportedTransaction(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    date: str
    flag: str
    payee: str | None = None
    narration: str
    tags: list[str]
    links: list[str]
    postings: list[ExportedPosting]


class TransactionExport(BaseModel):
    """Top-level schema for a JSON export file."""

    model_config = ConfigDict(extra="forbid")

    schema_version: int
    generated_at: str
    transactions: list[ExportedTransaction]


def _to_exported(tx: Transaction) -> ExportedTransaction:
    return ExportedTransaction(
        id=tx.id,
        date=tx.date.isoformat() if tx.date else "",
        flag=tx.flag,
        payee=tx.payee,
        narration=tx.narration,
        tags=list(tx.tags),
        links=list(tx.links),
        postings=[
            ExportedPosting(
                account=p.account,
                number=format_number(p.units.number) if p.units else None,
                currency=p.units.currency if p.units else None,
            )
            for p in tx.postings
        ],
    )


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def _first_currency(tx: Transaction) -> str:
    for posting in tx.postings:
        if posting.units is not None:
            return posting.units.currency
    return ""


def _to_csv(transactions: Iterable[Transaction]) -> str:
    buf = StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for tx in transactions:
        writer.writerow(
            [
                tx.date.isoformat() if tx.date else "",
                tx.payee or "",
                tx.narration,
                f"{transaction_amount(tx):.2f}",
                _first_currency(tx),
                "; ".join(p.account for p in tx.postings),
                "; ".join(tx.tags),
                "; ".join(tx.links),
            ]
        )
    return buf.getvalue()


def _to_json(transactions: Iterable[Transaction], *, now: datetime | None) -> str:
    doc = TransactionExport(
        schema_version=SCHEMA_VERSION,
        generated_at=(now or datetime.now(UTC)).isoformat(),
        transactions=[_to_exported(tx) for tx in transactions],
    )
    return doc.model_dump_json(indent=2)


def _to_beancount(transactions: Iterable[Transaction]) -> str:
    blocks = [format_transaction(tx) for tx in transactions]
    return "\n\n".join(blocks) + "\n" if blocks else ""


def export_transactions(
    transactions: Iterable[Transaction],
    fmt: str,
    *,
    now: datetime | None = None,
) -> str:
    """Render ``transactions`` in ``fmt`` (``csv``, ``json`` or ``beancount``).

    ``now`` pins the JSON ``generated_at`` timestamp (defaults to the current
    UTC time).
    """

    match fmt.lower():
        case "csv":
            return _to_csv(transactions)
        case "json":
            return _to_json(transactions, now=now)
        case "beancount":
            return _to_beancount(transactions)
    raise ValueError(
        f"unsupported export format {fmt!r}; expected one of {', '.join(EXPORT_FORMATS)}"
    )


__all__ = [
    "EXPORT_FORMATS",
    "SCHEMA_VERSION",
    "ExportedPosting",
    "ExportedTransaction",
    "TransactionExport",
    "export_transactions",
]

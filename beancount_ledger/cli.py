"""Typer console interface for ``beancount_ledger``.

A thin, non-interactive wrapper over :class:`~beancount_ledger.ledger.Ledger`.
Environment variables (``BEANCOUNT_LEDGER_FILE`` and the
``BEANCOUNT_LEDGER_*`` configuration switches) are loaded from a local ``.env``
using ``python-dotenv`` before any command runs. Output is plain
tab-separated text, one record per line; errors go to stderr with exit code 1.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from pydantic import ValidationError

from .config import LedgerConfig, default_ledger_path
from .errors import LedgerFileNotFoundError, TransactionValidationError
from .export import EXPORT_FORMATS, export_transactions
from .ledger import Ledger
from .logging_setup import configure_logging
from .models import AccountType, ParseDiagnostic, Posting, Transaction
from .parser import parse_postings
from .serializer import format_amount, format_number

_DATE_FORMATS = ["%Y-%m-%d"]

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Query and update a plain-text double-entry ledger file.",
)


# ---- Small module-level helpers used by CLI commands -------------------------


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def _open_ledger(ctx: typer.Context) -> Ledger:
    """Load the ledger named by ``--file`` or ``BEANCOUNT_LEDGER_FILE``."""

    file_path: str | None = ctx.obj.get("file") if ctx.obj else None
    if not file_path:
        raise _fail("no ledger file given; pass --file or set BEANCOUNT_LEDGER_FILE")
    try:
        config = LedgerConfig.from_env()
    except ValidationError as e:
        raise _fail(f"invalid configuration: {e}") from e
    try:
        return Ledger(file_path, config=config)
    except LedgerFileNotFoundError as e:
        raise _fail(str(e)) from e
    except PermissionError as e:
        raise _fail(f"Permission denied: {file_path}") from e


def _parse_posting_arg(text: str) -> list[Posting]:
    """Parse ``ACCOUNT [NUMBER CURRENCY]`` as written on a posting line."""

    problems: list[ParseDiagnostic] = []
    postings = parse_postings(["  " + text], 1, diagnostics=problems)
    if problems or not postings:
        detail = problems[0].message if problems else "empty posting"
        raise typer.BadParameter(f"{text!r}: {detail}", param_hint="--posting")
    return postings


# ---- Queries -----------------------------------------------------------------


@app.command("accounts")
def accounts_cmd(ctx: typer.Context) -> None:
    """List accounts declared with ``open``."""

    for account in _open_ledger(ctx).get_accounts():
        typer.echo(f"{account.name}\t{account.type.value}\t{account.open_date.isoformat()}")


@app.command("transactions")
def transactions_cmd(
    ctx: typer.Context,
    start: Annotated[datetime | None, typer.Option(formats=_DATE_FORMATS)] = None,
    end: Annotated[datetime | None, typer.Option(formats=_DATE_FORMATS)] = None,
) -> None:
    """List transactions, optionally limited to an inclusive date range."""

    for tx in _open_ledger(ctx).get_transactions(start, end):
        date_str = tx.date.isoformat() if tx.date else ""
        typer.echo(f"{tx.id}\t{date_str}\t{tx.flag}\t{tx.payee or ''}\t{tx.narration}")
        for posting in tx.postings:
            units = format_amount(posting.units) if posting.units else ""
            typer.echo(f"\t{posting.account}\t{units}")


@app.command("balances")
def balances_cmd(
    ctx: typer.Context,
    account: Annotated[str | None, typer.Option(help="Only this account.")] = None,
    date: Annotated[datetime | None, typer.Option(formats=_DATE_FORMATS)] = None,
) -> None:
    """List balance assertions dated on or before ``--date`` (default today)."""

    for balance in _open_ledger(ctx).get_balances(account, date):
        typer.echo(
            f"{balance.date.isoformat()}\t{balance.account}\t{format_amount(balance.amount)}"
        )


@app.command("networth")
def networth_cmd(
    ctx: typer.Context,
    date: Annotated[datetime | None, typer.Option(formats=_DATE_FORMATS)] = None,
) -> None:
    """Show total assets, total liabilities and net worth."""

    nw = _open_ledger(ctx).get_net_worth(date)
    typer.echo(f"date\t{nw.date.isoformat()}")
    typer.echo(f"total_assets\t{format_number(nw.total_assets)}")
    typer.echo(f"total_liabilities\t{format_number(nw.total_liabilities)}")
    typer.echo(f"net_worth\t{format_number(nw.net_worth)}")


@app.command("income")
def income_cmd(
    ctx: typer.Context,
    start: Annotated[datetime, typer.Option(formats=_DATE_FORMATS)],
    end: Annotated[datetime, typer.Option(formats=_DATE_FORMATS)],
) -> None:
    """Show the income statement for an inclusive date range."""

    stmt = _open_ledger(ctx).get_income_statement(start, end)
    typer.echo(f"total_income\t{format_number(stmt.total_income)}")
    typer.echo(f"total_expenses\t{format_number(stmt.total_expenses)}")
    typer.echo(f"net_income\t{format_number(stmt.net_income)}")


@app.command("balance-sheet")
def balance_sheet_cmd(
    ctx: typer.Context,
    date: Annotated[datetime | None, typer.Option(formats=_DATE_FORMATS)] = None,
) -> None:
    """Show the latest asserted balance per account, grouped by type."""

    sheet = _open_ledger(ctx).get_balance_sheet(date)
    for section, values in (
        ("assets", sheet.assets),
        ("liabilities", sheet.liabilities),
        ("equity", sheet.equity),
    ):
        for account, number in values.items():
            typer.echo(f"{section}\t{account}\t{format_number(number)}")


@app.command("stats")
def stats_cmd(ctx: typer.Context) -> None:
    """Show entry counts for the ledger file."""

    stats = _open_ledger(ctx).get_file_stats()
    typer.echo(f"file_path\t{stats.file_path}")
    typer.echo(f"total_accounts\t{stats.total_accounts}")
    typer.echo(f"total_transactions\t{stats.total_transactions}")
    typer.echo(f"total_balances\t{stats.total_balances}")
    typer.echo(f"total_errors\t{stats.total_errors}")


@app.command("validate")
def validate_cmd(ctx: typer.Context) -> None:
    """Report validation errors and warnings; exit 1 when there are errors."""

    report = _open_ledger(ctx).validate()
    for message in report.errors:
        typer.echo(f"error\t{message}")
    for message in report.warnings:
        typer.echo(f"warning\t{message}")
    if not report.ok:
        raise typer.Exit(1)
    typer.echo("ok")


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    fmt: Annotated[str, typer.Option("--format", help="csv, json or beancount")] = "csv",
    start: Annotated[datetime | None, typer.Option(formats=_DATE_FORMATS)] = None,
    end: Annotated[datetime | None, typer.Option(formats=_DATE_FORMATS)] = None,
    output: Annotated[Path | None, typer.Option(dir_okay=False)] = None,
) -> None:
    """Export transactions to stdout or ``--output``."""

    if fmt.lower() not in EXPORT_FORMATS:
        raise _fail(f"unsupported export format {fmt!r}")
    text = export_transactions(_open_ledger(ctx).get_transactions(start, end), fmt)
    if output is None:
        typer.echo(text, nl=False)
        return
    output.write_text(text, encoding="utf-8")
    typer.echo(f"wrote\t{output}")


# ---- Mutations ---------------------------------------------------------------


@app.command("add")
def add_cmd(
    ctx: typer.Context,
    date: Annotated[datetime, typer.Option(formats=_DATE_FORMATS)],
    narration: Annotated[str, typer.Option()],
    posting: Annotated[
        list[str], typer.Option(help='Posting as "ACCOUNT [NUMBER CURRENCY]"; repeatable.')
    ],
    payee: Annotated[str | None, typer.Option()] = None,
    flag: Annotated[str, typer.Option()] = "*",
    tag: Annotated[list[str] | None, typer.Option()] = None,
    link: Annotated[list[str] | None, typer.Option()] = None,
) -> None:
    """Append a transaction and rewrite the ledger file."""

    postings = [p for text in posting for p in _parse_posting_arg(text)]
    ledger = _open_ledger(ctx)
    tx = Transaction(
        date=date.date(),
        narration=narration,
        postings=tuple(postings),
        payee=payee,
        flag=flag,
        tags=tuple(tag or ()),
        links=tuple(link or ()),
    )
    try:
        stored = ledger.add_transaction(tx)
    except TransactionValidationError as e:
        raise _fail(str(e)) from e
    except OSError as e:
        raise _fail(f"failed to write {ledger.file_path}: {e}") from e
    typer.echo(f"added\t{stored.id}")


@app.command("delete")
def delete_cmd(
    ctx: typer.Context,
    date: Annotated[datetime | None, typer.Option(formats=_DATE_FORMATS)] = None,
    narration: Annotated[str | None, typer.Option()] = None,
    transaction_id: Annotated[str | None, typer.Option("--id")] = None,
) -> None:
    """Delete one transaction by ``--id``, or the first match of ``--date`` + ``--narration``."""

    ledger = _open_ledger(ctx)
    try:
        if transaction_id is not None:
            removed = ledger.delete_transaction_by_id(transaction_id)
        elif date is not None and narration is not None:
            removed = ledger.delete_transaction(date, narration)
        else:
            raise _fail("pass --id, or both --date and --narration")
    except OSError as e:
        raise _fail(f"failed to write {ledger.file_path}: {e}") from e
    if not removed:
        raise _fail("no matching transaction")
    typer.echo("deleted")


@app.command("edit")
def edit_cmd(
    ctx: typer.Context,
    transaction_id: Annotated[str, typer.Option("--id")],
    date: Annotated[datetime | None, typer.Option(formats=_DATE_FORMATS)] = None,
    narration: Annotated[str | None, typer.Option()] = None,
    posting: Annotated[
        list[str] | None,
        typer.Option(help='Replaces all postings when given; "ACCOUNT [NUMBER CURRENCY]".'),
    ] = None,
    payee: Annotated[str | None, typer.Option()] = None,
    flag: Annotated[str | None, typer.Option()] = None,
    tag: Annotated[list[str] | None, typer.Option(help="Replaces all tags when given.")] = None,
    link: Annotated[list[str] | None, typer.Option(help="Replaces all links when given.")] = None,
) -> None:
    """Change fields of the transaction ``--id``; fields not given are kept."""

    postings = [p for text in posting for p in _parse_posting_arg(text)] if posting else None
    ledger = _open_ledger(ctx)
    current = ledger.get_transaction(transaction_id)
    if current is None:
        raise _fail("no matching transaction")

    tx = replace(
        current,
        date=date.date() if date is not None else current.date,
        narration=narration if narration is not None else current.narration,
        postings=tuple(postings) if postings is not None else current.postings,
        payee=payee if payee is not None else current.payee,
        flag=flag if flag is not None else current.flag,
        tags=tuple(tag) if tag else current.tags,
        links=tuple(link) if link else current.links,
        meta={},
        id=None,
    )
    try:
        stored = ledger.update_transaction(transaction_id, tx)
    except TransactionValidationError as e:
        raise _fail(str(e)) from e
    except OSError as e:
        raise _fail(f"failed to write {ledger.file_path}: {e}") from e
    if stored is None:
        raise _fail("no matching transaction")
    typer.echo(f"updated\t{stored.id}")


# ---- Reports -----------------------------------------------------------------


@app.command("monthly")
def monthly_cmd(
    ctx: typer.Context,
    year: Annotated[int, typer.Option()],
    month: Annotated[int | None, typer.Option(min=1, max=12)] = None,
) -> None:
    """Show income, expenses and net income per month of ``--year``."""

    for summary in _open_ledger(ctx).get_monthly_summary(year, month):
        typer.echo(
            f"{summary.year:04d}-{summary.month:02d}\t{summary.transaction_count}\t"
            f"{format_number(summary.total_income)}\t"
            f"{format_number(summary.total_expenses)}\t"
            f"{format_number(summary.net_income)}"
        )


@app.command("categories")
def categories_cmd(
    ctx: typer.Context,
    start: Annotated[datetime | None, typer.Option(formats=_DATE_FORMATS)] = None,
    end: Annotated[datetime | None, typer.Option(formats=_DATE_FORMATS)] = None,
    account_type: Annotated[
        str | None, typer.Option("--type", help="Only one account type, e.g. expenses.")
    ] = None,
) -> None:
    """Show posting totals per ``Root:Category``, largest first."""

    kind: AccountType | None = None
    if account_type is not None:
        try:
            kind = AccountType(account_type.upper())
        except ValueError as e:
            raise _fail(f"unknown account type {account_type!r}") from e
    for summary in _open_ledger(ctx).get_category_summary(start, end, kind):
        typer.echo(
            f"{summary.category}\t{format_number(summary.total)}\t{summary.posting_count}\t"
            f"{format_number(summary.percentage)}%"
        )


@app.callback()
def _root(
    ctx: typer.Context,
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="Ledger file (falls back to BEANCOUNT_LEDGER_FILE)."),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log at DEBUG level.")] = False,
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging("DEBUG" if verbose else None)
    ctx.obj = {"file": str(file) if file is not None else default_ledger_path()}


if __name__ == "__main__":  # pragma: no cover
    app()

"""Line-oriented parser for plain-text ledger files.

Grammar (informal)::

    DATE open ACCOUNT
    DATE close ACCOUNT
    DATE balance ACCOUNT NUMBER CURRENCY
    DATE FLAG [PAYEE] ["NARRATION"] [#tag ...] [^link ...]
      ACCOUNT [NUMBER CURRENCY]      ; indented posting lines
    ; comment

``DATE`` is ``YYYY-MM-DD``. The directive is chosen by substring, in this
order: a line containing ``*`` or ``!`` is a transaction header; else one
containing ``open``/``close`` is an account directive; else one containing
``balance`` is a balance assertion. Anything else is skipped.

Parsing is total: :func:`parse` never raises. Lines that are skipped, or only
partly understood, are reported as :class:`ParseDiagnostic` values alongside
the entries.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal, InvalidOperation

from .models import (
    Amount,
    BalanceEntry,
    CloseEntry,
    Entry,
    OpenEntry,
    ParseDiagnostic,
    ParseResult,
    Posting,
    TransactionEntry,
)

_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_QUOTED_RE = re.compile(r'"([^"]+)"')
_INDENT = (" ", "\t")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def parse_amount(number: str | None, currency: str | None) -> Amount | None:
    """Return an :class:`Amount` or ``None`` when either part is unusable."""

    if not number or not currency:
        return None
    try:
        value = Decimal(number)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return Amount(value, currency)


def _is_indented(raw: str) -> bool:
    return raw.startswith(_INDENT)


def _in_block(raw: str) -> bool:
    # Indented lines belong to the open transaction unless they start a new entry.
    text = raw.strip()
    return not text or (_is_indented(raw) and not _DATE_RE.match(text))


def _split_header_tail(text: str) -> tuple[tuple[str, ...], tuple[str, ...]]:
    tags: list[str] = []
    links: list[str] = []
    for token in text.split():
        if token.startswith("#") and len(token) > 1:
            tags.append(token[1:])
        elif token.startswith("^") and len(token) > 1:
            links.append(token[1:])
    return tuple(tags), tuple(links)


# ---------------------------------------------------------------------------
# Directive parsers
# ---------------------------------------------------------------------------


def _parse_transaction(line: str, when: date, lineno: int) -> TransactionEntry:
    parts = line.split()
    flag = parts[1] if len(parts) > 1 else ""
    remaining = line[len(parts[0]) :].strip()
    if flag:
        remaining = remaining[len(flag) :].strip()

    payee: str | None = None
    narration = ""
    quoted = _QUOTED_RE.findall(remaining)
    if len(quoted) >= 2 and remaining.startswith('"'):
        # Two leading strings: "PAYEE" "NARRATION"
        payee, narration = quoted[0], quoted[1]
    elif quoted:
        narration = quoted[0]
        before = remaining[: remaining.index('"')].strip()
        if before:
            payee = before

    tail = remaining[remaining.rindex('"') + 1 :] if '"' in remaining else remaining
    tags, links = _split_header_tail(tail)

    return TransactionEntry(
        date=when,
        narration=narration,
        flag=flag or "*",
        payee=payee,
        tags=tags,
        links=links,
        meta={"lineno": lineno},
    )


def _parse_account_directive(
    line: str, when: date, lineno: int, diagnostics: list[ParseDiagnostic]
) -> OpenEntry | CloseEntry | None:
    parts = line.split()
    action = parts[1] if len(parts) > 1 else ""
    account = parts[2] if len(parts) > 2 else ""

    if action not in ("open", "close"):
        diagnostics.append(ParseDiagnostic(lineno, line, f"unrecognized directive {action!r}"))
        return None
    if not account:
        # Kept with an empty account name; reported so it can be fixed.
        diagnostics.append(ParseDiagnostic(lineno, line, f"{action} without an account name"))

    meta = {"lineno": lineno}
    if action == "open":
        return OpenEntry(date=when, account=account, meta=meta)
    return CloseEntry(date=when, account=account, meta=meta)


def _parse_balance(
    line: str, when: date, lineno: int, diagnostics: list[ParseDiagnostic]
) -> BalanceEntry | None:
    parts = line.split()
    if len(parts) < 2 or parts[1] != "balance":
        action = parts[1] if len(parts) > 1 else ""
        diagnostics.append(ParseDiagnostic(lineno, line, f"unrecognized directive {action!r}"))
        return None

    account = parts[2] if len(parts) > 2 else ""
    number = parts[3] if len(parts) > 3 else None
    currency = parts[4] if len(parts) > 4 else None
    amount = parse_amount(number, currency)
    if amount is None:
        diagnostics.append(
            ParseDiagnostic(lineno, line, "balance assertion without a usable amount")
        )
    return BalanceEntry(date=when, account=account, amount=amount, meta={"lineno": lineno})


def _parse_line(line: str, lineno: int, diagnostics: list[ParseDiagnostic]) -> Entry | None:
    m = _DATE_RE.match(line)
    if not m:
        diagnostics.append(ParseDiagnostic(lineno, line, "no leading YYYY-MM-DD date"))
        return None
    try:
        when = date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        diagnostics.append(ParseDiagnostic(lineno, line, f"invalid date {m.group(0)!r}"))
        return None

    if "*" in line or "!" in line:
        return _parse_transaction(line, when, lineno)
    if "open" in line or "close" in line:
        return _parse_account_directive(line, when, lineno, diagnostics)
    if "balance" in line:
        return _parse_balance(line, when, lineno, diagnostics)

    diagnostics.append(ParseDiagnostic(lineno, line, "no recognized directive"))
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_postings(
    lines: Sequence[str],
    start_line_offset: int,
    *,
    diagnostics: list[ParseDiagnostic] | None = None,
) -> list[Posting]:
    """Parse the posting lines of a transaction block.

    Each indented, non-blank, non-comment line yields one :class:`Posting`:
    the first token is the account; with at least three tokens, tokens two and
    three are the number and currency. An unparseable number leaves ``units``
    unset (and is reported to ``diagnostics`` when given). Blank and ``;``
    lines are skipped without ending the scan; the caller decides where the
    block ends. ``start_line_offset`` is the 1-based line number of
    ``lines[0]``.
    """

    postings: list[Posting] = []
    for i, raw in enumerate(lines):
        text = raw.strip()
        if not text or text.startswith(";") or not _is_indented(raw):
            continue
        lineno = start_line_offset + i
        parts = text.split(";", 1)[0].split()

        units: Amount | None = None
        if len(parts) >= 3:
            units = parse_amount(parts[1], parts[2])
            if units is None and diagnostics is not None:
                diagnostics.append(
                    ParseDiagnostic(lineno, raw, f"posting amount {parts[1]!r} is not a number")
                )
        elif len(parts) == 2 and diagnostics is not None:
            diagnostics.append(ParseDiagnostic(lineno, raw, "posting amount without a currency"))

        postings.append(Posting(account=parts[0], units=units, meta={"lineno": lineno}))
    return postings


def parse(content: str) -> ParseResult:
    """Parse ledger text into entries (file order) and diagnostics.

    A transaction header owns the indented lines that follow it (blank lines
    inside the block are allowed); the block ends at the next non-blank line
    starting in column one, or at an indented line that starts with a date.
    Such a line is read as a directive of its own.
    """

    lines = content.splitlines()
    entries: list[Entry] = []
    diagnostics: list[ParseDiagnostic] = []

    i = 0
    while i < len(lines):
        raw = lines[i]
        lineno = i + 1
        i += 1

        line = raw.strip()
        if not line or line.startswith(";"):
            continue
        if _is_indented(raw) and not _DATE_RE.match(line):
            diagnostics.append(
                ParseDiagnostic(lineno, line, "indented line outside a transaction block")
            )
            continue

        entry = _parse_line(line, lineno, diagnostics)
        if entry is None:
            continue

        if isinstance(entry, TransactionEntry):
            start = i
            while i < len(lines) and _in_block(lines[i]):
                i += 1
            postings = parse_postings(lines[start:i], start + 1, diagnostics=diagnostics)
            if postings:
                entry = replace(entry, postings=tuple(postings))

        entries.append(entry)

    return ParseResult(entries, diagnostics)


__all__ = ["parse", "parse_amount", "parse_postings"]

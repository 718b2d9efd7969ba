"""Account-type classification by account-name prefix."""

from __future__ import annotations

from .logging_setup import get_logger
from .models import AccountType

_logger = get_logger("beancount_ledger.accounts")

_ROOTS: dict[str, AccountType] = {
    "ASSETS": AccountType.ASSETS,
    "LIABILITIES": AccountType.LIABILITIES,
    "EQUITY": AccountType.EQUITY,
    "INCOME": AccountType.INCOME,
    "EXPENSES": AccountType.EXPENSES,
}


def classify_account(name: str) -> AccountType:
    """Return the type named by the first ``:``-segment of ``name``.

    Matching is case-insensitive. Unrecognized roots (including the empty
    name) return :attr:`AccountType.UNKNOWN` rather than guessing.
    """

    root = name.split(":", 1)[0].strip().upper()
    return _ROOTS.get(root, AccountType.UNKNOWN)


def resolve_account_type(name: str, *, unknown_as_assets: bool = True) -> AccountType:
    """Classify ``name``, optionally folding ``UNKNOWN`` into ``ASSETS``.

    The fold keeps older ledgers working where any unrecognized root was
    reported as an asset account.
    """

    kind = classify_account(name)
    if kind is AccountType.UNKNOWN:
        _logger.debug("Account %r has an unrecognized root segment", name)
        if unknown_as_assets:
            return AccountType.ASSETS
    return kind


__all__ = ["classify_account", "resolve_account_type"]

"""Exception types raised by the ledger core."""

from __future__ import annotations

from collections.abc import Iterable
from os import PathLike


class LedgerError(Exception):
    """Base class for ``beancount_ledger`` errors."""


class LedgerFileNotFoundError(LedgerError, FileNotFoundError):
    """The ledger file does not exist at load or reload time."""

    def __init__(self, path: str | PathLike[str]) -> None:
        self.path = str(path)
        super().__init__(f"Ledger file not found: {self.path}")


class TransactionValidationError(LedgerError, ValueError):
    """A transaction was rejected; ``errors`` holds the human-readable reasons."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors: list[str] = list(errors)
        super().__init__("; ".join(self.errors))


__all__ = ["LedgerError", "LedgerFileNotFoundError", "TransactionValidationError"]

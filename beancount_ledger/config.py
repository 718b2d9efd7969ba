"""Ledger configuration passed explicitly into :class:`~beancount_ledger.ledger.Ledger`.

There is no process-wide configuration object. Callers build a
:class:`LedgerConfig` (directly, or from ``BEANCOUNT_LEDGER_*`` environment
variables via :meth:`LedgerConfig.from_env`) and hand it to the ledger.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator

ENV_PREFIX = "BEANCOUNT_LEDGER_"

# Field name -> environment variable suffix
_ENV_FIELDS: dict[str, str] = {
    "tolerance": "TOLERANCE",
    "per_currency_balance": "PER_CURRENCY_BALANCE",
    "header_only_writes": "HEADER_ONLY_WRITES",
    "unknown_accounts_as_assets": "UNKNOWN_AS_ASSETS",
    "encoding": "ENCODING",
}


class LedgerConfig(BaseModel):
    """Behavior switches for validation, persistence and classification.

    Attributes
    ----------
    tolerance:
        Maximum absolute posting sum still considered balanced.
    per_currency_balance:
        When ``True`` the balance check runs per currency; otherwise all
        present posting numbers are summed regardless of currency.
    header_only_writes:
        When ``True`` added transactions keep only their header (date, payee,
        narration) and the file is written without postings, tags or links.
        This matches files produced by older releases.
    unknown_accounts_as_assets:
        When ``True`` accounts with an unrecognized root are reported as
        assets; otherwise they keep :attr:`AccountType.UNKNOWN`.
    encoding:
        Text encoding used to read and write the ledger file.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    tolerance: Decimal = Decimal("0.01")
    per_currency_balance: bool = False
    header_only_writes: bool = False
    unknown_accounts_as_assets: bool = True
    encoding: str = "utf-8"

    @field_validator("tolerance")
    @classmethod
    def _tolerance_non_negative(cls, v: Decimal) -> Decimal:
        if not v.is_finite() or v < 0:
            raise ValueError("tolerance must be a finite, non-negative number")
        return v

    @field_validator("encoding")
    @classmethod
    def _encoding_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("encoding must be non-empty")
        return v

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> LedgerConfig:
        """Build a config from ``BEANCOUNT_LEDGER_*`` variables.

        Unset or blank variables keep their defaults. Values are coerced by
        pydantic (``"1"``/``"true"``/``"yes"`` for booleans, decimal strings
        for the tolerance); invalid values raise ``pydantic.ValidationError``.
        """

        env = os.environ if environ is None else environ
        values: dict[str, str] = {}
        for field_name, suffix in _ENV_FIELDS.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()
        return cls.model_validate(values)


def default_ledger_path(environ: Mapping[str, str] | None = None) -> str | None:
    """Return ``BEANCOUNT_LEDGER_FILE`` when set to a non-blank value."""

    env = os.environ if environ is None else environ
    raw = env.get(ENV_PREFIX + "FILE")
    return raw.strip() if raw and raw.strip() else None


__all__ = ["ENV_PREFIX", "LedgerConfig", "default_ledger_path"]

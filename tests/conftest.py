"""Pytest configuration for test isolation.

The CLI reads ``BEANCOUNT_LEDGER_*`` variables from the environment and from a
``.env`` file in the current working directory, and configures package logging
on every invocation. Any of these leaking between tests (or in from the
developer's shell) changes ledger behavior, so each test starts from a clean
environment inside its own temporary directory.
"""

from __future__ import annotations

import os
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear ledger env vars, run in ``tmp_path`` and keep logging unconfigured.

    ``configure_logging`` disables propagation on the package logger, which
    would hide records from ``caplog`` in later tests.
    """

    for key in list(os.environ):
        if key.startswith("BEANCOUNT_LEDGER_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)

    from beancount_ledger import cli

    monkeypatch.setattr(cli, "configure_logging", lambda *a, **k: None)


@pytest.fixture
def write_ledger(tmp_path: Path) -> Callable[[str], Path]:
    """Return a helper that writes dedented ledger text to ``tmp_path``."""

    def _write(content: str, name: str = "main.beancount") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return path

    return _write

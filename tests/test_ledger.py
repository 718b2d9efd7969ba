import logging
from datetime import date, datetime
from decimal import Decimal

import pytest

from beancount_ledger import (
    AccountType,
    Amount,
    Ledger,
    LedgerConfig,
    LedgerFileNotFoundError,
    Posting,
    Transaction,
    TransactionValidationError,
)

LEDGER = """
2024-01-01 open Assets:Checking
2024-01-01 open Expenses:Food
2024-01-01 open Income:Salary
2024-01-01 balance Assets:Checking 1000 USD

2024-01-01 * Employer "Salary"
  Assets:Checking  3000 USD
  Income:Salary  -3000 USD

2024-01-15 * Cafe "Coffee" #food
  Expenses:Food  4.50 USD
  Assets:Checking  -4.50 USD

2024-01-31 * "Groceries"
  Expenses:Food  60 USD
  Assets:Checking  -60 USD
"""


def _usd(number: str) -> Amount:
    return Amount(Decimal(number), "USD")


def _lunch(narration: str = "Lunch", when: date = date(2024, 2, 1)) -> Transaction:
    return Transaction(
        date=when,
        narration=narration,
        postings=(
            Posting("Expenses:Food", _usd("12")),
            Posting("Assets:Checking", _usd("-12")),
        ),
    )


# ---- Loading ---------------------------------------------------------------


def test_missing_file_raises(tmp_path):
    with pytest.raises(LedgerFileNotFoundError) as excinfo:
        Ledger(tmp_path / "absent.beancount")

    assert isinstance(excinfo.value, FileNotFoundError)
    assert "absent.beancount" in str(excinfo.value)


def test_load_records_validation_errors_without_failing(write_ledger):
    path = write_ledger(
        """
        2024-01-15 * "Dinner"
          Expenses:Food  25 CNY
        """
    )

    ledger = Ledger(path)

    assert ledger.errors == [
        "line 1: transaction is unbalanced: postings sum to 25 (tolerance 0.01)"
    ]
    assert ledger.get_file_stats().total_errors == 1
    assert len(ledger.get_transactions()) == 1


def test_load_logs_skipped_lines(write_ledger, caplog):
    path = write_ledger("not a directive\n2024-01-01 open Assets:Cash\n")
    caplog.set_level(logging.WARNING, logger="beancount_ledger")

    ledger = Ledger(path)

    assert len(ledger.parse_diagnostics) == 1
    assert any("Skipped or partially parsed 1 line" in r.getMessage() for r in caplog.records)


def test_reload_is_idempotent(write_ledger):
    ledger = Ledger(write_ledger(LEDGER))
    before = ledger.entries

    ledger.reload()

    assert ledger.entries == before


def test_reload_picks_up_external_changes(write_ledger):
    path = write_ledger(LEDGER)
    ledger = Ledger(path)

    path.write_text("2024-01-01 open Assets:Cash\n", encoding="utf-8")
    ledger.reload()

    assert [a.name for a in ledger.get_accounts()] == ["Assets:Cash"]
    assert ledger.get_transactions() == []


def test_reload_after_file_removed_raises(write_ledger):
    path = write_ledger(LEDGER)
    ledger = Ledger(path)
    path.unlink()

    with pytest.raises(LedgerFileNotFoundError):
        ledger.reload()


# ---- Queries ---------------------------------------------------------------


def test_get_accounts_in_file_order(write_ledger):
    accounts = Ledger(write_ledger(LEDGER)).get_accounts()

    assert [(a.name, a.type) for a in accounts] == [
        ("Assets:Checking", AccountType.ASSETS),
        ("Expenses:Food", AccountType.EXPENSES),
        ("Income:Salary", AccountType.INCOME),
    ]
    assert all(a.open_date == date(2024, 1, 1) for a in accounts)


def test_get_transactions_date_range_is_inclusive(write_ledger):
    ledger = Ledger(write_ledger(LEDGER))

    assert len(ledger.get_transactions()) == 3
    assert len(ledger.get_transactions(date(2024, 1, 1), date(2024, 1, 31))) == 3
    assert [t.narration for t in ledger.get_transactions(date(2024, 1, 2), date(2024, 1, 30))] == [
        "Coffee"
    ]
    assert len(ledger.get_transactions(end_date=datetime(2024, 1, 31, 23, 59))) == 3
    assert len(ledger.get_transactions(start_date=date(2024, 2, 1))) == 0


def test_transactions_carry_payee_tags_and_postings(write_ledger):
    coffee = Ledger(write_ledger(LEDGER)).get_transactions()[1]

    assert coffee.payee == "Cafe"
    assert coffee.tags == ("food",)
    assert coffee.postings[0] == Posting("Expenses:Food", _usd("4.50"))
    assert coffee.id


def test_get_transaction_by_id(write_ledger):
    ledger = Ledger(write_ledger(LEDGER))
    coffee = ledger.get_transactions()[1]

    assert ledger.get_transaction(coffee.id) == coffee
    assert ledger.get_transaction("missing") is None


def test_get_balances_filters_by_account_and_date(write_ledger):
    path = write_ledger(
        """
        2024-01-01 balance Assets:Cash 100 USD
        2024-02-01 balance Assets:Cash 150 USD
        2024-01-10 balance Liabilities:Card -20 USD
        """
    )
    ledger = Ledger(path)

    assert len(ledger.get_balances()) == 3
    assert [b.amount for b in ledger.get_balances("Assets:Cash", date(2024, 1, 31))] == [
        _usd("100")
    ]
    assert ledger.get_balances(balance_date=date(2023, 12, 31)) == []


def test_net_worth_does_not_negate_liabilities(write_ledger):
    path = write_ledger(
        """
        2024-01-01 balance Assets:Cash 1000 CNY
        2024-01-01 balance Liabilities:Credit -500 CNY
        """
    )

    nw = Ledger(path).get_net_worth(date(2024, 1, 1))

    assert nw.date == date(2024, 1, 1)
    assert nw.total_assets == Decimal(1000)
    assert nw.total_liabilities == Decimal(-500)
    assert nw.net_worth == Decimal(1500)


def test_net_worth_ignores_later_balances(write_ledger):
    path = write_ledger(
        """
        2024-01-01 balance Assets:Cash 1000 CNY
        2024-03-01 balance Assets:Cash 2000 CNY
        """
    )

    assert Ledger(path).get_net_worth(date(2024, 2, 1)).total_assets == Decimal(1000)


def test_unknown_roots_count_as_assets_unless_configured(write_ledger):
    path = write_ledger("2024-01-01 balance Crypto:Wallet 50 USD\n")

    assert Ledger(path).get_net_worth(date(2024, 1, 1)).total_assets == Decimal(50)

    strict = Ledger(path, config=LedgerConfig(unknown_accounts_as_assets=False))
    assert strict.get_net_worth(date(2024, 1, 1)).total_assets == Decimal(0)
    assert strict.get_balance_sheet(date(2024, 1, 1)).assets == {}


def test_income_statement_sums_postings_as_written(write_ledger):
    stmt = Ledger(write_ledger(LEDGER)).get_income_statement(date(2024, 1, 1), date(2024, 1, 31))

    assert stmt.total_income == Decimal("-3000")
    assert stmt.total_expenses == Decimal("64.50")
    assert stmt.net_income == Decimal("-3064.50")


def test_income_statement_respects_range(write_ledger):
    stmt = Ledger(write_ledger(LEDGER)).get_income_statement(date(2024, 1, 2), date(2024, 1, 20))

    assert stmt.total_income == 0
    assert stmt.total_expenses == Decimal("4.50")


def test_balance_sheet_keeps_latest_assertion_per_account(write_ledger):
    path = write_ledger(
        """
        2024-01-01 balance Assets:Cash 100 USD
        2024-02-01 balance Assets:Cash 150 USD
        2024-01-01 balance Liabilities:Card -20 USD
        2024-01-01 balance Equity:Opening -80 USD
        2024-01-01 balance Expenses:Food 5 USD
        """
    )
    ledger = Ledger(path)

    sheet = ledger.get_balance_sheet(date(2024, 3, 1))
    assert sheet.assets == {"Assets:Cash": Decimal(150)}
    assert sheet.liabilities == {"Liabilities:Card": Decimal(-20)}
    assert sheet.equity == {"Equity:Opening": Decimal(-80)}

    assert ledger.get_balance_sheet(date(2024, 1, 15)).assets == {"Assets:Cash": Decimal(100)}


def test_file_stats(write_ledger):
    path = write_ledger(LEDGER)

    stats = Ledger(path).get_file_stats()

    assert stats.total_accounts == 3
    assert stats.total_transactions == 3
    assert stats.total_balances == 1
    assert stats.total_errors == 0
    assert stats.file_path == str(path)


def test_search_transactions(write_ledger):
    ledger = Ledger(write_ledger(LEDGER))

    assert [t.narration for t in ledger.search_transactions(query="CAFE")] == ["Coffee"]
    found = ledger.search_transactions(accounts=["Expenses"], sort_by="narration", descending=True)
    assert [t.narration for t in found] == ["Groceries", "Coffee"]


def test_validate_reports_warnings(write_ledger):
    path = write_ledger(
        """
        2024-01-01 open Assets:Cash
        2024-01-31 close Assets:Cash
        2024-02-01 * "Late"
          Assets:Cash  -5 USD
          Expenses:Food  5 USD
        nonsense
        """
    )

    report = Ledger(path).validate()

    assert report.ok
    assert report.errors == ()
    assert report.warnings == (
        "line 6: no leading YYYY-MM-DD date",
        "line 4: account Assets:Cash is used after it was closed on 2024-01-31",
        "line 5: account Expenses:Food is not opened",
    )


# ---- Mutations -------------------------------------------------------------


def test_add_transaction_persists_full_block(write_ledger):
    path = write_ledger(LEDGER)
    ledger = Ledger(path)

    stored = ledger.add_transaction(_lunch())

    assert stored.id
    assert ledger.get_transaction(stored.id) == stored
    assert path.read_text(encoding="utf-8").endswith(
        '2024-02-01 * "Lunch"\n  Expenses:Food 12 USD\n  Assets:Checking -12 USD\n'
    )
    assert not path.with_name(path.name + ".tmp").exists()

    reopened = Ledger(path)
    assert reopened.get_transactions()[-1] == _lunch()
    assert reopened.errors == []


def test_add_keeps_earlier_snapshots_unchanged(write_ledger):
    ledger = Ledger(write_ledger(LEDGER))
    snapshot = ledger.entries

    ledger.add_transaction(_lunch())

    assert len(ledger.entries) == len(snapshot) + 1


def test_add_rejects_single_leg(write_ledger, caplog):
    path = write_ledger(LEDGER)
    original = path.read_text(encoding="utf-8")
    ledger = Ledger(path)
    caplog.set_level(logging.INFO, logger="beancount_ledger")
    single = Transaction(
        date=date(2024, 2, 1),
        narration="Dinner",
        postings=(Posting("Expenses:Food", Amount(Decimal(25), "CNY")),),
    )

    with pytest.raises(TransactionValidationError) as excinfo:
        ledger.add_transaction(single)

    assert "unbalanced" in str(excinfo.value)
    assert len(excinfo.value.errors) == 1
    assert len(ledger.get_transactions()) == 3
    assert path.read_text(encoding="utf-8") == original
    assert any("Rejected transaction" in r.getMessage() for r in caplog.records)


def test_add_in_header_only_mode_drops_postings(write_ledger):
    path = write_ledger(LEDGER)
    ledger = Ledger(path, config=LedgerConfig(header_only_writes=True))

    stored = ledger.add_transaction(_lunch())

    assert stored.postings == ()
    text = path.read_text(encoding="utf-8")
    assert '2024-02-01 * "Lunch"\n' in text
    assert "Expenses:Food 12 USD" not in text
    assert "  " not in text


def test_delete_transaction_removes_first_match_only(write_ledger):
    path = write_ledger(LEDGER)
    ledger = Ledger(path)
    ledger.add_transaction(_lunch())
    ledger.add_transaction(_lunch())

    assert ledger.delete_transaction(date(2024, 2, 1), "Lunch") is True

    assert [t.narration for t in Ledger(path).get_transactions()].count("Lunch") == 1


def test_delete_transaction_accepts_datetime(write_ledger):
    ledger = Ledger(write_ledger(LEDGER))

    assert ledger.delete_transaction(datetime(2024, 1, 15, 9, 30), "Coffee") is True
    assert [t.narration for t in ledger.get_transactions()] == ["Salary", "Groceries"]


def test_delete_without_match_leaves_file_alone(write_ledger):
    path = write_ledger(LEDGER)
    original = path.read_text(encoding="utf-8")
    ledger = Ledger(path)

    assert ledger.delete_transaction(date(2024, 1, 15), "Tea") is False
    assert ledger.delete_transaction_by_id("missing") is False
    assert path.read_text(encoding="utf-8") == original


def test_delete_transaction_by_id(write_ledger):
    path = write_ledger(LEDGER)
    ledger = Ledger(path)
    first = ledger.add_transaction(_lunch())
    second = ledger.add_transaction(_lunch())

    assert ledger.delete_transaction_by_id(second.id) is True

    remaining = [t for t in ledger.get_transactions() if t.narration == "Lunch"]
    assert [t.id for t in remaining] == [first.id]
    assert len(Ledger(path).get_transactions()) == 4


def test_add_transaction_with_datetime_is_stored_as_a_day(write_ledger):
    path = write_ledger(LEDGER)
    ledger = Ledger(path)

    stored = ledger.add_transaction(_lunch(when=datetime(2024, 2, 1, 10, 0)))

    assert stored.date == date(2024, 2, 1)
    assert type(stored.date) is date
    assert len(ledger.get_transactions(date(2024, 1, 1), date(2024, 12, 31))) == 4
    text = path.read_text(encoding="utf-8")
    assert '2024-02-01 * "Lunch"\n' in text
    assert "T10:00" not in text
    assert ledger.delete_transaction(date(2024, 2, 1), "Lunch") is True


def test_failed_write_keeps_file_and_memory_change(write_ledger, monkeypatch):
    path = write_ledger(LEDGER)
    original = path.read_text(encoding="utf-8")
    ledger = Ledger(path)
    before = len(ledger.entries)

    def _deny(src, dst):
        raise PermissionError(13, "Permission denied", str(dst))

    monkeypatch.setattr("beancount_ledger.ledger.os.replace", _deny)

    with pytest.raises(PermissionError):
        ledger.add_transaction(_lunch())

    assert len(ledger.entries) == before + 1
    assert path.read_text(encoding="utf-8") == original
    assert not path.with_name(path.name + ".tmp").exists()

    with pytest.raises(PermissionError):
        ledger.delete_transaction(date(2024, 1, 15), "Coffee")

    assert path.read_text(encoding="utf-8") == original
    assert not path.with_name(path.name + ".tmp").exists()


def test_added_payee_tags_and_links_survive_reload(write_ledger):
    path = write_ledger(LEDGER)
    tx = Transaction(
        date=date(2024, 2, 1),
        narration="Team lunch",
        payee="Corner Deli",
        flag="!",
        tags=("work", "food"),
        links=("receipt-7",),
        postings=(
            Posting("Expenses:Food", _usd("12.50")),
            Posting("Assets:Checking", _usd("-12.50")),
        ),
    )

    stored = Ledger(path).add_transaction(tx)

    reopened = Ledger(path)
    assert reopened.errors == []
    assert reopened.parse_diagnostics == []
    assert reopened.get_transactions()[-1] == tx
    assert reopened.get_transaction(stored.id) == tx


def test_add_rejects_text_the_file_cannot_hold(write_ledger):
    path = write_ledger(LEDGER)
    original = path.read_text(encoding="utf-8")
    ledger = Ledger(path)
    bad = Transaction(
        date=date(2024, 2, 1),
        narration='The "good" cafe',
        tags=("two words",),
        postings=(
            Posting("Expenses:Eating Out", _usd("3")),
            Posting("Assets:Checking", _usd("-3")),
        ),
    )

    with pytest.raises(TransactionValidationError) as excinfo:
        ledger.add_transaction(bad)

    assert len(excinfo.value.errors) == 3
    assert path.read_text(encoding="utf-8") == original


def test_header_only_mode_reports_no_tags_or_links(write_ledger):
    path = write_ledger(LEDGER)
    ledger = Ledger(path, config=LedgerConfig(header_only_writes=True))

    coffee = ledger.get_transactions()[1]
    stored = ledger.add_transaction(
        Transaction(
            date=date(2024, 2, 1),
            narration="Lunch",
            tags=("work",),
            links=("r-1",),
            postings=_lunch().postings,
        )
    )

    assert (coffee.tags, coffee.links) == ((), ())
    assert (stored.tags, stored.links) == ((), ())
    assert "#" not in path.read_text(encoding="utf-8")


# ---- Ids -------------------------------------------------------------------


def test_ids_are_stable_across_loads(write_ledger):
    path = write_ledger(LEDGER)

    first = [t.id for t in Ledger(path).get_transactions()]
    second = [t.id for t in Ledger(path).get_transactions()]

    assert first == second
    assert len(set(first)) == 3


def test_identical_transactions_get_distinct_ids(write_ledger):
    path = write_ledger(LEDGER)
    ledger = Ledger(path)

    a = ledger.add_transaction(_lunch())
    b = ledger.add_transaction(_lunch())

    assert a.id != b.id
    assert [t.id for t in Ledger(path).get_transactions()[-2:]] == [a.id, b.id]


# ---- Updates ---------------------------------------------------------------


def test_update_transaction_replaces_in_place(write_ledger):
    path = write_ledger(LEDGER)
    ledger = Ledger(path)
    coffee = ledger.get_transactions()[1]
    tea = Transaction(
        date=date(2024, 1, 16),
        narration="Tea",
        payee="Cafe",
        postings=(
            Posting("Expenses:Food", _usd("3")),
            Posting("Assets:Checking", _usd("-3")),
        ),
    )

    stored = ledger.update_transaction(coffee.id, tea)

    assert stored == tea
    assert ledger.get_transaction(coffee.id) is None
    assert ledger.get_transaction(stored.id) == tea
    reopened = Ledger(path).get_transactions()
    assert [t.narration for t in reopened] == ["Salary", "Tea", "Groceries"]
    assert reopened[1].id == stored.id


def test_update_transaction_unknown_id_returns_none(write_ledger):
    path = write_ledger(LEDGER)
    original = path.read_text(encoding="utf-8")

    assert Ledger(path).update_transaction("missing", _lunch()) is None
    assert path.read_text(encoding="utf-8") == original


def test_update_transaction_rejects_invalid_replacement(write_ledger):
    path = write_ledger(LEDGER)
    original = path.read_text(encoding="utf-8")
    ledger = Ledger(path)
    coffee = ledger.get_transactions()[1]
    unbalanced = Transaction(
        date=date(2024, 1, 15),
        narration="Coffee",
        postings=(Posting("Expenses:Food", _usd("4.50")),),
    )

    with pytest.raises(TransactionValidationError):
        ledger.update_transaction(coffee.id, unbalanced)

    assert ledger.get_transaction(coffee.id) == coffee
    assert path.read_text(encoding="utf-8") == original


# ---- Summaries -------------------------------------------------------------


def test_monthly_summary_for_one_month(write_ledger):
    (january,) = Ledger(write_ledger(LEDGER)).get_monthly_summary(2024, 1)

    assert (january.year, january.month, january.transaction_count) == (2024, 1, 3)
    assert january.total_income == Decimal("-3000")
    assert january.total_expenses == Decimal("64.50")
    assert january.net_income == Decimal("-3064.50")
    assert january.balance_changes == {
        "Assets": Decimal("2935.50"),
        "Income": Decimal("-3000"),
        "Expenses": Decimal("64.50"),
    }


def test_monthly_summary_for_whole_year(write_ledger):
    summaries = Ledger(write_ledger(LEDGER)).get_monthly_summary(2024)

    assert [s.month for s in summaries] == list(range(1, 13))
    assert [s.transaction_count for s in summaries[1:]] == [0] * 11


def test_category_summary_by_type(write_ledger):
    ledger = Ledger(write_ledger(LEDGER))

    (food,) = ledger.get_category_summary(account_type=AccountType.EXPENSES)

    assert food.category == "Expenses:Food"
    assert food.total == Decimal("64.50")
    assert food.posting_count == 2
    assert food.percentage == Decimal("100.00")
    assert [s.category for s in ledger.get_category_summary()] == [
        "Assets:Checking",
        "Income:Salary",
        "Expenses:Food",
    ]

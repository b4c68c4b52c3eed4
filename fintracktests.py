import io
import json
import math
import shutil
import tempfile
import unittest
from datetime import datetime, timedelta
from itertools import count
from pathlib import Path
from unittest.mock import patch

from fintrack.models import (
    Expense, Income, Budget, Account, Settings, UserProfile, parse_timestamp
)
from fintrack.analytics import (
    period_window, filter_by_period, group_totals, total, average, top_records,
    top_group, category_breakdown, summarize_period, evaluate_budget,
    evaluate_budgets, monthly_trend, monthly_overview
)
from fintrack.logic import (
    add_expense, add_income, update_expense, update_income, delete_record,
    upsert_record, search_records, recurring_total, set_budget, find_budget,
    add_account, update_settings, load_profile, export_data, clear_all_data
)
from fintrack.storage import RecordStore, list_saves, EXPENSES, INCOME, BUDGETS
from fintrack.cli import FinanceTrackerCLI


NOW = datetime(2024, 3, 15, 12, 0, 0)
_ids = count(1)


def expense(amount, category, when, description="", **kwargs):
    return Expense(
        id=f"e{next(_ids)}",
        amount=amount,
        category=category,
        description=description,
        date=when if isinstance(when, str) else when.isoformat(),
        **kwargs
    )


def income(amount, source, when, description="", **kwargs):
    return Income(
        id=f"i{next(_ids)}",
        amount=amount,
        source=source,
        description=description,
        date=when if isinstance(when, str) else when.isoformat(),
        **kwargs
    )


def budget(category, amount, period="monthly", alerts=True, spent=0.0):
    return Budget(id=f"b{next(_ids)}", category=category, amount=amount,
                  period=period, alerts=alerts, spent=spent)


class TestPeriodFilter(unittest.TestCase):
    def test_month_window_starts_at_first_of_month(self):
        start, end = period_window("month", NOW)
        self.assertEqual(start, datetime(2024, 3, 1, 0, 0))
        self.assertEqual(end, NOW)

    def test_year_window_starts_january_first(self):
        start, end = period_window("year", NOW)
        self.assertEqual(start, datetime(2024, 1, 1, 0, 0))
        self.assertEqual(end, NOW)

    def test_week_window_is_rolling_seven_days(self):
        start, _ = period_window("week", NOW)
        self.assertEqual(start, datetime(2024, 3, 8, 12, 0))

    def test_unknown_period(self):
        with self.assertRaises(ValueError):
            period_window("decade", NOW)

    def test_month_filter_is_inclusive_on_both_ends(self):
        records = [
            expense(1, "Food", datetime(2024, 2, 29, 23, 59)),
            expense(2, "Food", datetime(2024, 3, 1, 0, 0)),
            expense(3, "Food", NOW),
            expense(4, "Food", NOW + timedelta(seconds=1)),
        ]
        kept = filter_by_period(records, "month", NOW)
        self.assertEqual([r.amount for r in kept], [2, 3])

    def test_week_filter(self):
        records = [
            expense(1, "Food", NOW - timedelta(days=7)),
            expense(2, "Food", NOW - timedelta(days=7, seconds=1)),
            expense(3, "Food", NOW - timedelta(days=2)),
        ]
        kept = filter_by_period(records, "week", NOW)
        self.assertEqual([r.amount for r in kept], [1, 3])

    def test_unparsable_dates_are_excluded(self):
        records = [
            expense(1, "Food", "not a date"),
            expense(2, "Food", ""),
            expense(3, "Food", "2024-03-10"),
        ]
        kept = filter_by_period(records, "month", NOW)
        self.assertEqual([r.amount for r in kept], [3])

    def test_utc_timestamps_are_compared_in_local_time(self):
        records = [expense(5, "Food", "2024-03-10T10:00:00.000Z")]
        self.assertEqual(len(filter_by_period(records, "month", NOW)), 1)

    def test_filter_does_not_mutate_input(self):
        records = [expense(1, "Food", NOW), expense(2, "Food", "2023-01-01")]
        snapshot = list(records)
        filter_by_period(records, "year", NOW)
        self.assertEqual(records, snapshot)

    def test_total_of_filtered_equals_sum_over_window(self):
        records = [expense(float(n), "Food", NOW - timedelta(days=n * 3)) for n in range(20)]
        start, end = period_window("month", NOW)
        expected = sum(r.amount for r in records if start <= parse_timestamp(r.date) <= end)
        self.assertEqual(total(filter_by_period(records, "month", NOW)), expected)


class TestAggregator(unittest.TestCase):
    def test_this_month_only_scenario(self):
        records = [
            expense(100, "Food", datetime(2024, 3, 5)),
            expense(50, "Food", datetime(2024, 2, 20)),
        ]
        filtered = filter_by_period(records, "month", NOW)
        self.assertEqual(group_totals(filtered), {"Food": 100})
        self.assertEqual(total(filtered), 100)
        self.assertEqual(average(filtered), 100)

    def test_group_totals_keep_first_seen_order(self):
        records = [
            expense(10, "Travel", NOW),
            expense(5, "Food", NOW),
            expense(2, "Travel", NOW),
        ]
        totals = group_totals(records)
        self.assertEqual(list(totals), ["Travel", "Food"])
        self.assertEqual(totals["Travel"], 12)

    def test_income_groups_by_source(self):
        records = [income(1000, "Salary", NOW), income(200, "Freelance", NOW), income(50, "Salary", NOW)]
        self.assertEqual(group_totals(records), {"Salary": 1050, "Freelance": 200})

    def test_empty_collections(self):
        self.assertEqual(total([]), 0)
        self.assertEqual(average([]), 0)
        self.assertEqual(group_totals([]), {})
        self.assertIsNone(top_group({}))
        self.assertEqual(top_records([]), [])
        self.assertEqual(category_breakdown({}), [])

    def test_top_records_descending(self):
        records = [expense(a, "Food", NOW) for a in (5, 50, 1, 30, 7, 100, 2)]
        top = top_records(records)
        self.assertEqual([r.amount for r in top], [100, 50, 30, 7, 5])
        self.assertEqual(len(top_records(records, n=2)), 2)

    def test_top_group_first_seen_wins_ties(self):
        self.assertEqual(top_group({"A": 5.0, "B": 5.0}), ("A", 5.0))
        self.assertEqual(top_group({"A": 1.0, "B": 9.0, "C": 3.0}), ("B", 9.0))

    def test_category_breakdown_shares(self):
        shares = category_breakdown({"Food": 75.0, "Travel": 25.0})
        self.assertEqual(shares, [("Food", 75.0, 75.0), ("Travel", 25.0, 25.0)])
        self.assertEqual(category_breakdown({"Food": 0.0}), [])

    def test_summarize_period(self):
        expenses = [
            expense(40, "Food", datetime(2024, 3, 2)),
            expense(60, "Travel", datetime(2024, 3, 10)),
            expense(500, "Travel", datetime(2023, 12, 31)),
        ]
        earnings = [income(300, "Salary", datetime(2024, 3, 1)), income(20, "Other", datetime(2024, 1, 3))]

        summary = summarize_period(expenses, earnings, "month", NOW)

        self.assertEqual(summary.total_expenses, 100)
        self.assertEqual(summary.total_income, 300)
        self.assertEqual(summary.balance, 200)
        self.assertEqual(summary.average_expense, 50)
        self.assertEqual(summary.transaction_count, 3)
        self.assertEqual(summary.top_category, ("Travel", 60))
        self.assertEqual(summary.source_totals, {"Salary": 300})
        self.assertEqual([e.amount for e in summary.top_expenses], [60, 40])

        yearly = summarize_period(expenses, earnings, "year", NOW)
        self.assertEqual(yearly.total_income, 320)
        self.assertEqual(yearly.transaction_count, 4)

    def test_summarize_empty_period(self):
        summary = summarize_period([], [], "week", NOW)
        self.assertEqual(summary.total_expenses, 0)
        self.assertEqual(summary.average_expense, 0)
        self.assertIsNone(summary.top_category)


class TestBudgetEvaluator(unittest.TestCase):
    def test_near_limit_scenario(self):
        status = evaluate_budget(budget("Food", 100), [expense(90, "Food", datetime(2024, 3, 3))], NOW)
        self.assertEqual(status.spent, 90)
        self.assertAlmostEqual(status.percentage, 90)
        self.assertEqual(status.remaining, 10)
        self.assertTrue(status.is_near_limit)
        self.assertFalse(status.is_over_budget)

    def test_no_matching_expenses(self):
        status = evaluate_budget(budget("Food", 100), [], NOW)
        self.assertEqual(status.spent, 0)
        self.assertEqual(status.percentage, 0)
        self.assertFalse(status.is_over_budget)
        self.assertFalse(status.is_near_limit)

    def test_stored_spent_is_ignored(self):
        status = evaluate_budget(budget("Food", 100, spent=999), [], NOW)
        self.assertEqual(status.spent, 0)

    def test_thresholds(self):
        cases = [(80, False, False), (80.01, True, False), (100, True, False), (100.5, False, True)]
        for spent, near, over in cases:
            with self.subTest(spent=spent):
                status = evaluate_budget(budget("Food", 100), [expense(spent, "Food", NOW)], NOW)
                self.assertEqual(status.is_near_limit, near)
                self.assertEqual(status.is_over_budget, over)

    def test_flags_never_both_true_and_percentage_finite(self):
        for limit in (0, 1, 50, 100):
            for spent in (0, 0.5, 40, 80, 99, 100, 150):
                status = evaluate_budget(budget("Food", limit), [expense(spent, "Food", NOW)], NOW)
                self.assertFalse(status.is_near_limit and status.is_over_budget)
                self.assertGreaterEqual(status.percentage, 0)
                self.assertTrue(math.isfinite(status.percentage))

    def test_zero_amount_budget(self):
        status = evaluate_budget(budget("Food", 0), [expense(10, "Food", NOW)], NOW)
        self.assertEqual(status.percentage, 0)
        self.assertTrue(status.is_over_budget)

    def test_monthly_budget_ignores_other_months_and_categories(self):
        expenses = [
            expense(30, "Food", datetime(2024, 3, 1, 8)),
            expense(70, "Food", datetime(2024, 2, 28)),
            expense(25, "Travel", datetime(2024, 3, 2)),
        ]
        status = evaluate_budget(budget("Food", 100), expenses, NOW)
        self.assertEqual(status.spent, 30)

    def test_weekly_budget_uses_rolling_week(self):
        expenses = [
            expense(15, "Food", NOW - timedelta(days=3)),
            expense(40, "Food", NOW - timedelta(days=10)),
        ]
        status = evaluate_budget(budget("Food", 50, period="weekly"), expenses, NOW)
        self.assertEqual(status.spent, 15)

    def test_report_totals(self):
        budgets = [budget("Food", 100), budget("Travel", 200, alerts=False), budget("Rent", 500)]
        expenses = [
            expense(120, "Food", NOW),
            expense(250, "Travel", NOW),
            expense(100, "Rent", NOW),
        ]
        report = evaluate_budgets(budgets, expenses, NOW)

        self.assertEqual(report.total_budgeted, 800)
        self.assertEqual(report.total_spent, 470)
        self.assertEqual(report.over_budget_count, 2)
        self.assertEqual(report.alert_count, 1)
        self.assertEqual([s.budget.category for s in report.statuses], ["Food", "Travel", "Rent"])
        self.assertAlmostEqual(report.utilization, 470 / 800 * 100)

    def test_report_with_no_budgets(self):
        report = evaluate_budgets([], [expense(10, "Food", NOW)], NOW)
        self.assertEqual(report.total_budgeted, 0)
        self.assertEqual(report.total_spent, 0)
        self.assertEqual(report.over_budget_count, 0)
        self.assertEqual(report.utilization, 0)


class TestTrendBuilder(unittest.TestCase):
    def test_months_through_current_month(self):
        expenses = [
            expense(50, "Food", datetime(2024, 1, 5)),
            expense(20, "Food", datetime(2024, 3, 2)),
            expense(999, "Food", datetime(2023, 3, 2)),
            expense(7, "Food", "garbage"),
        ]
        earnings = [income(1000, "Salary", datetime(2024, 2, 1))]

        trend = monthly_trend(expenses, earnings, NOW)

        self.assertEqual(trend.year, 2024)
        self.assertEqual(trend.labels, ["Jan", "Feb", "Mar"])
        self.assertEqual(trend.expenses, [50, 0, 20])
        self.assertEqual(trend.income, [0, 1000, 0])

    def test_never_includes_future_months(self):
        expenses = [expense(10, "Food", datetime(2024, 6, 1))]
        trend = monthly_trend(expenses, [], NOW)
        self.assertEqual(len(trend.expenses), 3)
        self.assertEqual(sum(trend.expenses), 0)

    def test_january_and_december(self):
        self.assertEqual(monthly_trend([], [], datetime(2024, 1, 1)).labels, ["Jan"])
        december = monthly_trend([], [], datetime(2024, 12, 31, 23, 59))
        self.assertEqual(len(december.labels), 12)
        self.assertEqual(december.labels[-1], "Dec")


class TestMonthlyOverview(unittest.TestCase):
    def test_overview(self):
        expenses = [expense(90, "Food", datetime(2024, 3, 3)), expense(60, "Food", datetime(2024, 2, 3))]
        earnings = [income(500, "Salary", datetime(2024, 3, 1))]
        overview = monthly_overview(expenses, earnings, [budget("Food", 100)], NOW)

        self.assertEqual(overview.monthly_expenses, 90)
        self.assertEqual(overview.monthly_income, 500)
        self.assertEqual(overview.balance, 410)
        self.assertEqual(overview.daily_average, 90 / 15)
        self.assertEqual(overview.budget_alerts, 1)


class StoreTestCase(unittest.TestCase):
    def setUp(self):
        self.saves_dir = Path(tempfile.mkdtemp())
        self.store = RecordStore("test", saves_dir=self.saves_dir)

    def tearDown(self):
        shutil.rmtree(self.saves_dir, ignore_errors=True)

    def write_raw(self, key, text):
        self.store.path.mkdir(parents=True, exist_ok=True)
        (self.store.path / f"{key}.json").write_text(text, encoding="utf-8")


class TestRecordStore(StoreTestCase):
    def test_round_trip(self):
        expenses = [
            expense(12.5, "Food & Dining", NOW, "Lunch", location="Cafe",
                    recurring=True, recurring_freq="weekly"),
            expense(3, "Other", NOW),
        ]
        earnings = [income(1000, "Salary", NOW, "March pay", recurring=True, recurring_freq="monthly")]
        budgets = [budget("Food & Dining", 300, period="weekly", alerts=False, spent=12.5)]
        accounts = [Account(id="a1", name="Wallet", type="wallet", balance=40.0)]
        profile = UserProfile(id="user_1", name="Sam", date_joined="2024-01-01T00:00:00.000",
                              phone="555-0100")

        self.assertTrue(self.store.save_expenses(expenses))
        self.assertTrue(self.store.save_income(earnings))
        self.assertTrue(self.store.save_budgets(budgets))
        self.assertTrue(self.store.save_accounts(accounts))
        self.assertTrue(self.store.save_user_profile(profile))

        self.assertEqual(self.store.load_expenses(), expenses)
        self.assertEqual(self.store.load_income(), earnings)
        self.assertEqual(self.store.load_budgets(), budgets)
        self.assertEqual(self.store.load_accounts(), accounts)
        self.assertEqual(self.store.load_user_profile(), profile)

    def test_persisted_layout_uses_record_keys(self):
        self.store.save_expenses([expense(1, "Food", NOW, payment_method="UPI")])
        data = json.loads((self.store.path / "expenses.json").read_text(encoding="utf-8"))
        self.assertIsInstance(data, list)
        self.assertEqual(data[0]["paymentMethod"], "UPI")
        self.assertNotIn("recurringFreq", data[0])

    def test_missing_documents_use_defaults(self):
        self.assertEqual(self.store.load_expenses(), [])
        self.assertEqual(self.store.load_budgets(), [])
        self.assertEqual(self.store.load_settings(), Settings())
        self.assertIsNone(self.store.load_user_profile())

    def test_malformed_json_degrades_to_default(self):
        self.write_raw("expenses", "{not json")
        with self.assertLogs("fintrack.storage", level="ERROR"):
            self.assertEqual(self.store.load_expenses(), [])

    def test_wrong_shape_degrades_to_default(self):
        self.write_raw("income", '{"id": "x"}')
        self.write_raw("settings", "[1, 2]")
        with self.assertLogs("fintrack.storage", level="WARNING"):
            self.assertEqual(self.store.load_income(), [])
            self.assertEqual(self.store.load_settings(), Settings())

    def test_invalid_records_are_skipped(self):
        self.write_raw("expenses", json.dumps([
            {"id": "1", "amount": 5, "category": "Food", "description": "", "date": "2024-03-01"},
            {"id": "2", "category": "Food"},
            "junk",
        ]))
        with self.assertLogs("fintrack.storage", level="WARNING"):
            loaded = self.store.load_expenses()
        self.assertEqual([e.id for e in loaded], ["1"])

    def test_non_finite_and_negative_amounts_are_skipped(self):
        self.write_raw("expenses", json.dumps([
            {"id": "1", "amount": 5, "category": "Food", "description": "", "date": "2024-03-01"},
            {"id": "2", "amount": float("nan"), "category": "Food", "description": "", "date": "2024-03-01"},
            {"id": "3", "amount": float("inf"), "category": "Food", "description": "", "date": "2024-03-01"},
            {"id": "4", "amount": -3, "category": "Food", "description": "", "date": "2024-03-01"},
        ]))
        self.write_raw("income", json.dumps([
            {"id": "5", "amount": "NaN", "source": "Salary", "description": "", "date": "2024-03-01"},
            {"id": "6", "amount": 10, "source": "Salary", "description": "", "date": "2024-03-01"},
        ]))
        with self.assertLogs("fintrack.storage", level="WARNING") as logs:
            self.assertEqual([e.id for e in self.store.load_expenses()], ["1"])
            self.assertEqual([i.id for i in self.store.load_income()], ["6"])
        self.assertEqual(sum("Skipping invalid" in line for line in logs.output), 4)

    def test_invalid_budgets_are_skipped(self):
        self.write_raw("budgets", json.dumps([
            {"id": "1", "category": "Food", "amount": 100, "period": "monthly"},
            {"id": "2", "category": "Rent", "amount": 0, "period": "monthly"},
            {"id": "3", "category": "Fuel", "amount": -20, "period": "weekly"},
            {"id": "4", "category": "Gym", "amount": 30, "period": "daily"},
            {"id": "5", "category": "Toys", "amount": float("nan")},
        ]))
        with self.assertLogs("fintrack.storage", level="WARNING") as logs:
            loaded = self.store.load_budgets()
        self.assertEqual([b.id for b in loaded], ["1"])
        self.assertEqual(sum("Skipping invalid budgets" in line for line in logs.output), 4)

    def test_settings_default_independently(self):
        self.write_raw("settings", json.dumps({"currency": "$", "notifications": True}))
        settings = self.store.load_settings()
        self.assertFalse(settings.dark_mode)
        self.assertEqual(settings.currency, "$")
        self.assertEqual(settings.to_dict()["notifications"], True)

        self.write_raw("settings", json.dumps({"darkMode": True, "currency": 7}))
        settings = self.store.load_settings()
        self.assertTrue(settings.dark_mode)
        self.assertEqual(settings.currency, "₹")

    def test_save_failure_returns_false(self):
        self.saves_dir.mkdir(exist_ok=True)
        self.store.path.write_text("in the way")
        with self.assertLogs("fintrack.storage", level="ERROR"):
            self.assertFalse(self.store.save_expenses([]))

    def test_unknown_key(self):
        with self.assertRaises(KeyError):
            self.store.load("transactions")

    def test_list_saves(self):
        self.store.save_expenses([])
        RecordStore("other", saves_dir=self.saves_dir).save_income([])
        self.assertEqual(list_saves(self.saves_dir), ["other", "test"])
        self.assertEqual(list_saves(self.saves_dir / "missing"), [])


class TestRecordOperations(StoreTestCase):
    def test_add_expense(self):
        created = add_expense(self.store, 25.0, "Groceries", NOW, description="Veg")
        stored = self.store.load_expenses()
        self.assertEqual(stored, [created])
        self.assertEqual(parse_timestamp(created.date), NOW)

        second = add_expense(self.store, 5.0, "Groceries", NOW)
        self.assertNotEqual(created.id, second.id)
        self.assertEqual(len(self.store.load_expenses()), 2)

    def test_add_expense_validation(self):
        with self.assertRaises(ValueError):
            add_expense(self.store, -1, "Food", NOW)
        with self.assertRaises(ValueError):
            add_expense(self.store, 1, "", NOW)
        with self.assertRaises(ValueError):
            add_expense(self.store, 1, "Food", NOW, recurring=True, recurring_freq="hourly")
        self.assertEqual(self.store.load_expenses(), [])

    def test_add_income(self):
        item = add_income(self.store, 1000, "Salary", NOW, recurring=True, recurring_freq="monthly")
        self.assertEqual(self.store.load_income(), [item])

    def test_update_keeps_id_and_date(self):
        created = add_expense(self.store, 25.0, "Groceries", NOW)
        updated = update_expense(self.store, created.id, amount=30.0, category="Food & Dining",
                                 date="2020-01-01")
        self.assertEqual(updated.id, created.id)
        self.assertEqual(updated.date, created.date)
        self.assertEqual(self.store.load_expenses(), [updated])
        self.assertEqual(updated.amount, 30.0)

    def test_non_finite_amounts_are_rejected(self):
        for bad in (float("nan"), float("inf"), -float("inf")):
            with self.subTest(amount=bad):
                with self.assertRaises(ValueError):
                    add_expense(self.store, bad, "Food", NOW)
                with self.assertRaises(ValueError):
                    add_income(self.store, bad, "Salary", NOW)
                with self.assertRaises(ValueError):
                    set_budget(self.store, "Food", bad)
        self.assertEqual(self.store.load_expenses(), [])
        self.assertEqual(self.store.load_income(), [])
        self.assertEqual(self.store.load_budgets(), [])

        created = add_expense(self.store, 90, "Food", NOW)
        with self.assertRaises(ValueError):
            update_expense(self.store, created.id, amount=float("nan"))
        set_budget(self.store, "Food", 100)
        status = evaluate_budget(self.store.load_budgets()[0], self.store.load_expenses(), NOW)
        self.assertTrue(math.isfinite(status.percentage))

    def test_update_checks_field_types(self):
        created = add_expense(self.store, 10, "Food", NOW, recurring=True, recurring_freq="monthly")
        with self.assertRaises(ValueError):
            update_expense(self.store, created.id, recurring="false")
        with self.assertRaises(ValueError):
            update_expense(self.store, created.id, amount="12")
        with self.assertRaises(ValueError):
            update_expense(self.store, created.id, category=None)
        with self.assertRaises(ValueError):
            update_expense(self.store, created.id, description=5)
        self.assertEqual(self.store.load_expenses(), [created])

    def test_turning_off_recurrence_clears_frequency(self):
        created = add_income(self.store, 1000, "Salary", NOW, recurring=True, recurring_freq="monthly")
        updated = update_income(self.store, created.id, recurring=False)
        self.assertFalse(updated.recurring)
        self.assertIsNone(updated.recurring_freq)
        reloaded = self.store.load_income()
        self.assertEqual(reloaded, [updated])
        self.assertEqual(recurring_total(reloaded), 0)

    def test_update_errors(self):
        created = add_income(self.store, 10, "Other", NOW)
        with self.assertRaises(KeyError):
            update_income(self.store, "missing", amount=1.0)
        with self.assertRaises(ValueError):
            update_income(self.store, created.id, amount=-5.0)
        with self.assertRaises(ValueError):
            update_income(self.store, created.id, colour="red")

    def test_delete_record(self):
        created = add_expense(self.store, 1, "Food", NOW)
        self.assertTrue(delete_record(self.store, EXPENSES, created.id))
        self.assertFalse(delete_record(self.store, EXPENSES, created.id))
        self.assertEqual(self.store.load_expenses(), [])

    def test_upsert_replaces_or_appends(self):
        first = expense(1, "Food", NOW)
        self.assertTrue(upsert_record(self.store, EXPENSES, first))
        changed = Expense(id=first.id, amount=9, category="Food", description="", date=first.date)
        upsert_record(self.store, EXPENSES, changed)
        upsert_record(self.store, EXPENSES, expense(2, "Travel", NOW))
        self.assertEqual([e.amount for e in self.store.load_expenses()], [9, 2])

    def test_set_budget(self):
        created = set_budget(self.store, "Food", 300)
        self.assertEqual(find_budget(self.store, "Food"), created)

        with self.assertRaises(ValueError):
            set_budget(self.store, "Food", 100)
        with self.assertRaises(ValueError):
            set_budget(self.store, "Travel", 0)
        with self.assertRaises(ValueError):
            set_budget(self.store, "Travel", 10, period="daily")

        edited = set_budget(self.store, "Food", 450, period="weekly", budget_id=created.id)
        self.assertEqual(edited.id, created.id)
        self.assertEqual(self.store.load_budgets(), [edited])

        with self.assertRaises(KeyError):
            set_budget(self.store, "Rent", 10, budget_id="missing")

    def test_search_records(self):
        records = [
            expense(1, "Food & Dining", NOW, "Pizza night"),
            expense(2, "Travel", NOW, "Train to work"),
            expense(3, "Food & Dining", NOW, "Coffee"),
        ]
        self.assertEqual([r.amount for r in search_records(records, "PIZZA")], [1])
        self.assertEqual([r.amount for r in search_records(records, "food")], [1, 3])
        self.assertEqual([r.amount for r in search_records(records, "", "Travel")], [2])
        self.assertEqual(len(search_records(records, "", "all")), 3)
        self.assertEqual([r.amount for r in search_records([income(5, "Salary", NOW)], "sal")], [5])

    def test_recurring_total(self):
        records = [income(1000, "Salary", NOW, recurring=True, recurring_freq="monthly"),
                   income(50, "Other", NOW)]
        self.assertEqual(recurring_total(records), 1000)
        self.assertEqual(recurring_total([]), 0)

    def test_add_account(self):
        account = add_account(self.store, "Wallet", "wallet", 20)
        self.assertEqual(self.store.load_accounts(), [account])
        with self.assertRaises(ValueError):
            add_account(self.store, "Vault", "gold")

    def test_settings_and_profile(self):
        settings = update_settings(self.store, currency="$")
        self.assertEqual(self.store.load_settings(), settings)
        self.assertFalse(settings.dark_mode)
        with self.assertRaises(ValueError):
            update_settings(self.store, currency="  ")

        profile = load_profile(self.store, NOW)
        self.assertEqual(profile.name, "User")
        self.assertTrue(profile.id.startswith("user_"))
        self.assertIsNone(self.store.load_user_profile())

    def test_export_and_clear(self):
        add_expense(self.store, 10, "Food", NOW)
        add_income(self.store, 20, "Salary", NOW)
        set_budget(self.store, "Food", 100)

        data = export_data(self.store, NOW)
        self.assertEqual(len(data["expenses"]), 1)
        self.assertEqual(len(data["income"]), 1)
        self.assertEqual(data["version"], "1.0")
        self.assertEqual(parse_timestamp(data["exportDate"]), NOW)

        self.assertTrue(clear_all_data(self.store))
        self.assertEqual(self.store.load_expenses(), [])
        self.assertEqual(self.store.load_income(), [])
        self.assertEqual(self.store.load(BUDGETS), [])


class TestCLI(StoreTestCase):
    def setUp(self):
        super().setUp()
        self.cli = FinanceTrackerCLI(self.store, clock=lambda: NOW, saves_dir=self.saves_dir)

    def run_command(self, line):
        with patch("sys.stdout", new_callable=io.StringIO) as out:
            self.cli.onecmd(line)
        return out.getvalue()

    def test_add_and_report(self):
        self.assertIn("Added expense", self.run_command("expense 40 Food & Dining --desc Dinner out"))
        self.assertIn("Added income", self.run_command("income 500 Salary"))

        output = self.run_command("report --month --categories")
        self.assertIn("Food & Dining", output)
        self.assertIn("₹500.00", output)
        self.assertIn("Surplus", output)
        self.assertEqual(self.store.load_expenses()[0].description, "Dinner out")

    def test_invalid_input_keeps_running(self):
        self.assertIn("Invalid input", self.run_command("expense abc Food"))
        self.assertIn("Invalid input", self.run_command("expense -5 Food"))
        self.assertIn("Invalid input", self.run_command("income 5 Salary --recur hourly"))
        self.assertEqual(self.store.load_expenses(), [])

    def test_budget_commands(self):
        self.assertIn("Created monthly budget", self.run_command("budget set Food 100"))
        output = self.run_command("expense 120 Food")
        self.assertIn("Over budget", output)

        listing = self.run_command("budget list")
        self.assertIn("OVER BUDGET", listing)
        self.assertIn("1 over budget", listing)

        self.assertIn("Invalid input", self.run_command("budget set Travel -4"))
        self.assertIn("Deleted budget", self.run_command("budget delete Food"))
        self.assertEqual(self.store.load_budgets(), [])

    def test_trend_and_overview(self):
        self.run_command("expense 10 Food")
        trend = self.run_command("trend")
        self.assertIn("Mar", trend)
        self.assertNotIn("Apr", trend)
        self.assertIn("Daily average", self.run_command("overview"))

    def test_currency_and_edit(self):
        self.run_command("currency $")
        self.run_command("expense 10 Food")
        record = self.store.load_expenses()[0]
        self.assertIn("Updated expense", self.run_command(f"edit expense {record.id[:8]} amount=12"))
        self.assertIn("$12.00", self.run_command("list expenses"))

    def test_non_finite_amounts_from_the_shell(self):
        self.assertIn("Invalid input", self.run_command("expense nan Food"))
        self.assertIn("Invalid input", self.run_command("income inf Salary"))
        self.assertIn("Invalid input", self.run_command("budget set Food nan"))
        self.assertEqual(self.store.load_expenses(), [])
        self.assertEqual(self.store.load_income(), [])
        self.assertEqual(self.store.load_budgets(), [])

        self.run_command("budget set Food 100")
        self.run_command("expense 10 Food")
        record = self.store.load_expenses()[0]
        self.assertIn("Invalid input", self.run_command(f"edit expense {record.id[:8]} amount=nan"))
        self.assertIn("(10%)", self.run_command("budget list"))

    def test_edit_recurring_flag(self):
        self.run_command("expense 30 Bills & Utilities --recur monthly")
        record = self.store.load_expenses()[0]
        self.assertTrue(record.recurring)

        output = self.run_command(f"edit expense {record.id[:8]} amount=5 recurring=false")
        self.assertIn("Updated expense", output)
        reloaded = self.store.load_expenses()[0]
        self.assertFalse(reloaded.recurring)
        self.assertIsNone(reloaded.recurring_freq)
        self.assertEqual(reloaded.amount, 5)
        self.assertEqual(recurring_total(self.store.load_expenses()), 0)

        self.assertIn("Invalid input", self.run_command(f"edit expense {record.id[:8]} recurring=maybe"))
        self.run_command(f"edit expense {record.id[:8]} recurring=true recurring_freq=weekly")
        self.assertEqual(self.store.load_expenses()[0].recurring_freq, "weekly")

    def test_edit_clears_optional_fields(self):
        self.run_command("expense 12 Food --at Cafe --recur daily")
        record = self.store.load_expenses()[0]
        self.run_command(f"edit expense {record.id[:8]} location= recurring_freq=none")
        reloaded = self.store.load_expenses()[0]
        self.assertIsNone(reloaded.location)
        self.assertIsNone(reloaded.recurring_freq)
        self.assertTrue(reloaded.recurring)
        self.assertIn("Invalid input", self.run_command(f"edit expense {record.id[:8]} category="))

    def test_delete_unknown_record(self):
        self.assertIn("not found", self.run_command("delete expense nope"))


if __name__ == "__main__":
    unittest.main()

"""Derived views over expense, income and budget records.

Every function here is pure: it takes record snapshots plus an explicit
``now`` and returns a fresh result. Nothing reads the clock and nothing
mutates the records it is given.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Literal, Optional, Sequence, TypeVar

from dateutil.relativedelta import relativedelta

from .models import Budget, Expense, Income, parse_timestamp


logger = logging.getLogger(__name__)

Period = Literal["week", "month", "year"]
PERIODS = ("week", "month", "year")

BUDGET_PERIOD_WINDOWS = {
    "weekly": "week",
    "monthly": "month",
}

NEAR_LIMIT_RATIO = 0.8
TOP_N = 5

MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

R = TypeVar("R", Expense, Income)


# ===== PERIOD FILTER =====

def period_window(period: Period, now: datetime) -> tuple[datetime, datetime]:
    """Return the ``[start, now]`` window for a period selector.

    ``week`` is a rolling seven days; ``month`` and ``year`` start at midnight
    on the first day of the current calendar month or year.
    """
    now = parse_timestamp(now)
    if period == "week":
        start = now - timedelta(days=7)
    elif period == "month":
        start = now + relativedelta(day=1, hour=0, minute=0, second=0, microsecond=0)
    elif period == "year":
        start = now + relativedelta(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    else:
        raise ValueError(f"Unknown period '{period}', use: {'/'.join(PERIODS)}")
    return start, now


def in_window(record, start: datetime, end: datetime) -> bool:
    moment = parse_timestamp(record.date)
    if moment is None:
        logger.debug("Excluding record %s with unparsable date %r", record.id, record.date)
        return False
    return start <= moment <= end


def filter_by_period(records: Iterable[R], period: Period, now: datetime) -> list[R]:
    start, end = period_window(period, now)
    return [r for r in records if in_window(r, start, end)]


# ===== AGGREGATOR =====

def group_key(record) -> str:
    return record.source if isinstance(record, Income) else record.category


def group_totals(records: Iterable[R], key: Optional[str] = None) -> dict[str, float]:
    """Sum amounts per category (expenses) or source (income).

    Groups keep the order in which they first appear in ``records``.
    """
    totals: dict[str, float] = {}
    for r in records:
        name = getattr(r, key) if key else group_key(r)
        totals[name] = totals.get(name, 0.0) + r.amount
    return totals


def total(records: Iterable[R]) -> float:
    return sum((r.amount for r in records), 0.0)


def average(records: Sequence[R]) -> float:
    if not records:
        return 0.0
    return total(records) / len(records)


def top_records(records: Iterable[R], n: int = TOP_N) -> list[R]:
    return sorted(records, key=lambda r: r.amount, reverse=True)[:n]


def top_group(totals: dict[str, float]) -> Optional[tuple[str, float]]:
    """Largest group as ``(name, total)``; the first one seen wins a tie."""
    best = None
    for name, amount in totals.items():
        if best is None or amount > best[1]:
            best = (name, amount)
    return best


def category_breakdown(totals: dict[str, float]) -> list[tuple[str, float, float]]:
    grand_total = sum(totals.values())
    if grand_total == 0:
        return []
    return [(name, amount, amount / grand_total * 100) for name, amount in totals.items()]


@dataclass
class PeriodSummary:
    period: Period
    start: datetime
    end: datetime
    total_expenses: float
    total_income: float
    balance: float
    average_expense: float
    transaction_count: int
    top_category: Optional[tuple[str, float]]
    category_totals: dict[str, float] = field(default_factory=dict)
    source_totals: dict[str, float] = field(default_factory=dict)
    top_expenses: list[Expense] = field(default_factory=list)


def summarize_period(
        expenses: Sequence[Expense],
        income: Sequence[Income],
        period: Period,
        now: datetime,
) -> PeriodSummary:
    start, end = period_window(period, now)
    period_expenses = [e for e in expenses if in_window(e, start, end)]
    period_income = [i for i in income if in_window(i, start, end)]

    category_totals = group_totals(period_expenses, "category")
    total_expenses = total(period_expenses)
    total_income = total(period_income)

    return PeriodSummary(
        period=period,
        start=start,
        end=end,
        total_expenses=total_expenses,
        total_income=total_income,
        balance=total_income - total_expenses,
        average_expense=average(period_expenses),
        transaction_count=len(period_expenses) + len(period_income),
        top_category=top_group(category_totals),
        category_totals=category_totals,
        source_totals=group_totals(period_income, "source"),
        top_expenses=top_records(period_expenses),
    )


# ===== BUDGET EVALUATOR =====

@dataclass
class BudgetStatus:
    budget: Budget
    spent: float
    remaining: float
    percentage: float
    is_over_budget: bool
    is_near_limit: bool

    @property
    def needs_alert(self) -> bool:
        return self.budget.alerts and (self.is_near_limit or self.is_over_budget)


@dataclass
class BudgetReport:
    statuses: list[BudgetStatus]
    total_budgeted: float
    total_spent: float
    over_budget_count: int
    alert_count: int

    @property
    def utilization(self) -> float:
        if self.total_budgeted <= 0:
            return 0.0
        return self.total_spent / self.total_budgeted * 100


def budget_window(budget: Budget, now: datetime) -> tuple[datetime, datetime]:
    return period_window(BUDGET_PERIOD_WINDOWS.get(budget.period, "month"), now)


def evaluate_budget(budget: Budget, expenses: Iterable[Expense], now: datetime) -> BudgetStatus:
    # budget.spent is a stale cache; always recompute from expenses
    start, end = budget_window(budget, now)
    spent = total(
        e for e in expenses
        if e.category == budget.category and in_window(e, start, end)
    )
    limit = budget.amount

    return BudgetStatus(
        budget=budget,
        spent=spent,
        remaining=limit - spent,
        percentage=spent / limit * 100 if limit > 0 else 0.0,
        is_over_budget=spent > limit,
        is_near_limit=limit * NEAR_LIMIT_RATIO < spent <= limit,
    )


def evaluate_budgets(
        budgets: Sequence[Budget],
        expenses: Sequence[Expense],
        now: datetime,
) -> BudgetReport:
    statuses = [evaluate_budget(b, expenses, now) for b in budgets]
    return BudgetReport(
        statuses=statuses,
        total_budgeted=sum((b.amount for b in budgets), 0.0),
        total_spent=sum((s.spent for s in statuses), 0.0),
        over_budget_count=sum(1 for s in statuses if s.is_over_budget),
        alert_count=sum(1 for s in statuses if s.needs_alert),
    )


# ===== TREND BUILDER =====

@dataclass
class MonthlyTrend:
    year: int
    labels: list[str]
    expenses: list[float]
    income: list[float]


def monthly_totals(records: Iterable[R], year: int, last_month: int) -> list[float]:
    totals = [0.0] * last_month
    for r in records:
        moment = parse_timestamp(r.date)
        if moment is None or moment.year != year or moment.month > last_month:
            continue
        totals[moment.month - 1] += r.amount
    return totals


def monthly_trend(
        expenses: Iterable[Expense],
        income: Iterable[Income],
        now: datetime,
) -> MonthlyTrend:
    """Expense and income totals per month, January through now's month."""
    now = parse_timestamp(now)
    return MonthlyTrend(
        year=now.year,
        labels=list(MONTH_LABELS[:now.month]),
        expenses=monthly_totals(expenses, now.year, now.month),
        income=monthly_totals(income, now.year, now.month),
    )


# ===== OVERVIEW =====

@dataclass
class MonthlyOverview:
    monthly_expenses: float
    monthly_income: float
    balance: float
    daily_average: float
    budget_alerts: int


def monthly_overview(
        expenses: Sequence[Expense],
        income: Sequence[Income],
        budgets: Sequence[Budget],
        now: datetime,
) -> MonthlyOverview:
    now = parse_timestamp(now)
    monthly_expenses = total(filter_by_period(expenses, "month", now))
    monthly_income = total(filter_by_period(income, "month", now))
    report = evaluate_budgets(budgets, expenses, now)

    return MonthlyOverview(
        monthly_expenses=monthly_expenses,
        monthly_income=monthly_income,
        balance=monthly_income - monthly_expenses,
        daily_average=monthly_expenses / now.day,
        budget_alerts=report.alert_count,
    )

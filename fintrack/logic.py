import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Optional
from uuid import uuid4

from fintrack.models import (
    Expense, Income, Budget, Account, Settings, UserProfile,
    RECURRING_FREQUENCIES, BUDGET_PERIODS, ACCOUNT_KINDS,
    PAYMENT_METHODS, ACCOUNT_TYPES, format_timestamp
)
from fintrack.storage import RecordStore, EXPENSES, INCOME, BUDGETS, ACCOUNTS, SETTINGS


logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"


def new_record_id() -> str:
    return uuid4().hex


def _persist(store: RecordStore, key: str, records: list) -> None:
    if not store.save(key, records):
        raise OSError(f"Failed to save {key} to {store.path}")


def _check_amount(amount: float) -> None:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValueError(f"Amount must be a number, got {amount!r}")
    if not math.isfinite(amount):
        raise ValueError("Amount must be a finite number")
    if amount < 0:
        raise ValueError("Amount cannot be negative")


def _check_recurrence(recurring: bool, recurring_freq: Optional[str]) -> None:
    if recurring_freq is not None and recurring_freq not in RECURRING_FREQUENCIES:
        raise ValueError(f"Invalid interval, use: {'/'.join(RECURRING_FREQUENCIES)}")
    if recurring_freq and not recurring:
        raise ValueError("Recurrence interval given for a non-recurring record")


def _check_field_types(record, changes: dict) -> None:
    fields = record.__dataclass_fields__
    for name, value in changes.items():
        declared = fields[name].type
        if name == "amount":
            _check_amount(value)
        elif declared == "bool":
            if not isinstance(value, bool):
                raise ValueError(f"{name} must be true or false, got {value!r}")
        elif value is None:
            if not declared.startswith("Optional"):
                raise ValueError(f"{name} cannot be empty")
        elif not isinstance(value, str):
            raise ValueError(f"{name} must be text, got {value!r}")


# ===== GENERIC COLLECTION OPS =====

def upsert_record(store: RecordStore, key: str, record) -> bool:
    """Replace the record with the same id, or append it. Saves the whole collection."""
    records = store.load(key)
    for i, existing in enumerate(records):
        if existing.id == record.id:
            records[i] = record
            break
    else:
        records.append(record)
    return store.save(key, records)


def delete_record(store: RecordStore, key: str, record_id: str) -> bool:
    records = store.load(key)
    remaining = [r for r in records if r.id != record_id]
    if len(remaining) == len(records):
        return False
    _persist(store, key, remaining)
    return True


def find_record(store: RecordStore, key: str, record_id: str):
    for r in store.load(key):
        if r.id == record_id:
            return r
    return None


# ===== EXPENSES & INCOME =====

def add_expense(
        store: RecordStore,
        amount: float,
        category: str,
        now: datetime,
        description: str = "",
        payment_method: str = PAYMENT_METHODS[0],
        account: str = ACCOUNT_TYPES[0],
        location: Optional[str] = None,
        recurring: bool = False,
        recurring_freq: Optional[str] = None,
) -> Expense:
    _check_amount(amount)
    if not category:
        raise ValueError("Category is required")
    _check_recurrence(recurring, recurring_freq)

    expense = Expense(
        id=new_record_id(),
        amount=amount,
        category=category,
        description=description,
        date=format_timestamp(now),
        payment_method=payment_method,
        account=account,
        location=location or None,
        recurring=recurring,
        recurring_freq=recurring_freq,
    )
    expenses = store.load_expenses()
    expenses.append(expense)
    _persist(store, EXPENSES, expenses)
    return expense


def add_income(
        store: RecordStore,
        amount: float,
        source: str,
        now: datetime,
        description: str = "",
        account: str = ACCOUNT_TYPES[0],
        recurring: bool = False,
        recurring_freq: Optional[str] = None,
) -> Income:
    _check_amount(amount)
    if not source:
        raise ValueError("Source is required")
    _check_recurrence(recurring, recurring_freq)

    item = Income(
        id=new_record_id(),
        amount=amount,
        source=source,
        description=description,
        date=format_timestamp(now),
        account=account,
        recurring=recurring,
        recurring_freq=recurring_freq,
    )
    income = store.load_income()
    income.append(item)
    _persist(store, INCOME, income)
    return item


def _update(store: RecordStore, key: str, record_id: str, changes: dict):
    records = store.load(key)
    for i, existing in enumerate(records):
        if existing.id == record_id:
            break
    else:
        raise KeyError(f"No {key} record with id {record_id}")

    changes.pop("id", None)
    changes.pop("date", None)  # edits keep the original timestamp
    unknown = set(changes) - set(existing.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")
    _check_field_types(existing, changes)
    if changes.get("recurring") is False and "recurring_freq" not in changes:
        changes["recurring_freq"] = None
    updated = replace(existing, **changes)
    _check_recurrence(updated.recurring, updated.recurring_freq)

    records[i] = updated
    _persist(store, key, records)
    return updated


def update_expense(store: RecordStore, expense_id: str, **changes) -> Expense:
    return _update(store, EXPENSES, expense_id, changes)


def update_income(store: RecordStore, income_id: str, **changes) -> Income:
    return _update(store, INCOME, income_id, changes)


def search_records(records: list, query: str = "", group: Optional[str] = None) -> list:
    """Case-insensitive match on description or category/source."""
    needle = query.lower()
    found = []
    for r in records:
        name = r.source if isinstance(r, Income) else r.category
        if group is not None and group != "all" and name != group:
            continue
        if needle in r.description.lower() or needle in name.lower():
            found.append(r)
    return found


def recurring_total(records: list) -> float:
    return sum((r.amount for r in records if r.recurring), 0.0)


# ===== BUDGETS =====

def set_budget(
        store: RecordStore,
        category: str,
        amount: float,
        period: str = "monthly",
        alerts: bool = True,
        budget_id: Optional[str] = None,
) -> Budget:
    """Create a budget, or replace the one with ``budget_id``."""
    if not category:
        raise ValueError("Category is required")
    _check_amount(amount)
    if amount == 0:
        raise ValueError("Budget amount must be positive")
    if period not in BUDGET_PERIODS:
        raise ValueError(f"Invalid period, use: {'/'.join(BUDGET_PERIODS)}")

    budgets = store.load_budgets()
    for b in budgets:
        if b.category == category and b.id != budget_id:
            raise ValueError("Budget already exists for this category")

    existing = next((b for b in budgets if b.id == budget_id), None) if budget_id else None
    if budget_id and existing is None:
        raise KeyError(f"No budget with id {budget_id}")

    budget = Budget(
        id=budget_id or new_record_id(),
        category=category,
        amount=amount,
        period=period,
        alerts=alerts,
        spent=existing.spent if existing else 0.0,
    )
    if existing:
        budgets[budgets.index(existing)] = budget
    else:
        budgets.append(budget)
    _persist(store, BUDGETS, budgets)
    return budget


def find_budget(store: RecordStore, category: str) -> Optional[Budget]:
    return next((b for b in store.load_budgets() if b.category == category), None)


# ===== ACCOUNTS =====

def add_account(store: RecordStore, name: str, kind: str, balance: float = 0.0) -> Account:
    if not name:
        raise ValueError("Account name is required")
    if kind not in ACCOUNT_KINDS:
        raise ValueError(f"Invalid account type, use: {'/'.join(ACCOUNT_KINDS)}")

    account = Account(id=new_record_id(), name=name, type=kind, balance=balance)
    accounts = store.load_accounts()
    accounts.append(account)
    _persist(store, ACCOUNTS, accounts)
    return account


# ===== SETTINGS, PROFILE & DATA MANAGEMENT =====

def update_settings(store: RecordStore, dark_mode: Optional[bool] = None,
                    currency: Optional[str] = None) -> Settings:
    settings = store.load_settings()
    if dark_mode is not None:
        settings.dark_mode = dark_mode
    if currency is not None:
        if not currency.strip():
            raise ValueError("Currency symbol cannot be empty")
        settings.currency = currency.strip()
    _persist(store, SETTINGS, settings)
    return settings


def load_profile(store: RecordStore, now: datetime) -> UserProfile:
    """Stored profile, or a default one (not persisted) on first use."""
    profile = store.load_user_profile()
    if profile is None:
        logger.info("No user profile in %s, using defaults", store.path)
        profile = UserProfile.default(now)
    return profile


def export_data(store: RecordStore, now: datetime) -> dict:
    return {
        "expenses": [e.to_dict() for e in store.load_expenses()],
        "income": [i.to_dict() for i in store.load_income()],
        "exportDate": format_timestamp(now),
        "version": EXPORT_VERSION,
    }


def clear_all_data(store: RecordStore) -> bool:
    results = [store.save(key, []) for key in (EXPENSES, INCOME, BUDGETS)]
    return all(results)

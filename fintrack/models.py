from __future__ import annotations
import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Literal, Any

from dateutil.parser import isoparse


RecurringFreq = Literal["daily", "weekly", "monthly", "yearly"]
BudgetPeriod = Literal["weekly", "monthly"]
AccountType = Literal["cash", "bank", "credit", "wallet", "upi"]

RECURRING_FREQUENCIES = ("daily", "weekly", "monthly", "yearly")
BUDGET_PERIODS = ("weekly", "monthly")
ACCOUNT_KINDS = ("cash", "bank", "credit", "wallet", "upi")

EXPENSE_CATEGORIES = [
    "Food & Dining",
    "Transportation",
    "Shopping",
    "Entertainment",
    "Bills & Utilities",
    "Healthcare",
    "Education",
    "Travel",
    "Groceries",
    "Personal Care",
    "Other",
]

INCOME_SOURCES = [
    "Salary",
    "Freelance",
    "Business",
    "Investments",
    "Rental",
    "Other",
]

PAYMENT_METHODS = [
    "Cash",
    "Debit Card",
    "Credit Card",
    "UPI",
    "Net Banking",
    "Wallet",
]

ACCOUNT_TYPES = [
    "Cash",
    "Savings Account",
    "Current Account",
    "Credit Card",
    "Digital Wallet",
    "UPI Account",
    "Other",
]

DEFAULT_CURRENCY = "₹"


def parse_amount(value: Any, positive: bool = False) -> float:
    """Convert a stored amount to float, rejecting NaN, infinities and negatives."""
    if isinstance(value, bool):
        raise TypeError(f"Amount must be a number, got {value!r}")
    amount = float(value)
    if not math.isfinite(amount):
        raise ValueError(f"Amount must be finite, got {value!r}")
    if amount < 0 or (positive and amount == 0):
        raise ValueError(f"Amount must be {'positive' if positive else 'non-negative'}, got {value!r}")
    return amount


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into a naive local datetime.

    Returns None for anything that is not a parsable timestamp. Values with a
    UTC offset (e.g. ``2024-03-15T10:00:00.000Z``) are converted to local time.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = isoparse(value)
        except (ValueError, OverflowError):
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def format_timestamp(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds")


@dataclass
class Expense:
    id: str
    amount: float
    category: str
    description: str
    date: str
    payment_method: str = PAYMENT_METHODS[0]
    account: str = ACCOUNT_TYPES[0]
    location: Optional[str] = None
    receipt: Optional[str] = None
    recurring: bool = False
    recurring_freq: Optional[RecurringFreq] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "amount": self.amount,
            "category": self.category,
            "description": self.description,
            "date": self.date,
            "paymentMethod": self.payment_method,
            "account": self.account,
            "recurring": self.recurring,
        }
        if self.location is not None:
            data["location"] = self.location
        if self.receipt is not None:
            data["receipt"] = self.receipt
        if self.recurring_freq is not None:
            data["recurringFreq"] = self.recurring_freq
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Expense:
        return cls(
            id=str(data["id"]),
            amount=parse_amount(data["amount"]),
            category=data["category"],
            description=data.get("description", ""),
            date=data["date"],
            payment_method=data.get("paymentMethod", PAYMENT_METHODS[0]),
            account=data.get("account", ACCOUNT_TYPES[0]),
            location=data.get("location"),
            receipt=data.get("receipt"),
            recurring=bool(data.get("recurring", False)),
            recurring_freq=data.get("recurringFreq"),
        )


@dataclass
class Income:
    id: str
    amount: float
    source: str
    description: str
    date: str
    account: str = ACCOUNT_TYPES[0]
    recurring: bool = False
    recurring_freq: Optional[RecurringFreq] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "amount": self.amount,
            "source": self.source,
            "description": self.description,
            "date": self.date,
            "account": self.account,
            "recurring": self.recurring,
        }
        if self.recurring_freq is not None:
            data["recurringFreq"] = self.recurring_freq
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Income:
        return cls(
            id=str(data["id"]),
            amount=parse_amount(data["amount"]),
            source=data["source"],
            description=data.get("description", ""),
            date=data["date"],
            account=data.get("account", ACCOUNT_TYPES[0]),
            recurring=bool(data.get("recurring", False)),
            recurring_freq=data.get("recurringFreq"),
        )


@dataclass
class Budget:
    id: str
    category: str
    amount: float
    period: BudgetPeriod = "monthly"
    alerts: bool = True
    # Display cache only. Spend is always recomputed from expenses.
    spent: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Budget:
        period = data.get("period", "monthly")
        if period not in BUDGET_PERIODS:
            raise ValueError(f"Unknown budget period {period!r}")
        return cls(
            id=str(data["id"]),
            category=data["category"],
            amount=parse_amount(data["amount"], positive=True),
            period=period,
            alerts=bool(data.get("alerts", True)),
            spent=float(data.get("spent") or 0.0),
        )


@dataclass
class Account:
    id: str
    name: str
    type: AccountType
    balance: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Account:
        return cls(
            id=str(data["id"]),
            name=data["name"],
            type=data["type"],
            balance=float(data.get("balance", 0.0)),
        )


@dataclass
class Settings:
    dark_mode: bool = False
    currency: str = DEFAULT_CURRENCY
    # Keys written by other clients; kept so a save does not drop them.
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data["darkMode"] = self.dark_mode
        data["currency"] = self.currency
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Settings:
        dark_mode = data.get("darkMode")
        currency = data.get("currency")
        return cls(
            dark_mode=dark_mode if isinstance(dark_mode, bool) else False,
            currency=currency if isinstance(currency, str) and currency else DEFAULT_CURRENCY,
            extra={k: v for k, v in data.items() if k not in ("darkMode", "currency")},
        )


@dataclass
class UserProfile:
    id: str
    name: str
    date_joined: str
    email: Optional[str] = None
    profile_image: Optional[str] = None
    phone: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "dateJoined": self.date_joined,
        }
        for key, value in (("email", self.email),
                           ("profileImage", self.profile_image),
                           ("phone", self.phone)):
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> UserProfile:
        return cls(
            id=str(data["id"]),
            name=data["name"],
            date_joined=data["dateJoined"],
            email=data.get("email"),
            profile_image=data.get("profileImage"),
            phone=data.get("phone"),
        )

    @classmethod
    def default(cls, now: datetime) -> UserProfile:
        return cls(
            id=f"user_{int(now.timestamp() * 1000)}",
            name="User",
            email="",
            date_joined=format_timestamp(now),
        )

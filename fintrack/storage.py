import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Optional

from .models import Expense, Income, Budget, Account, Settings, UserProfile


logger = logging.getLogger(__name__)

SAVES_DIR = Path("saves")
DEFAULT_STORE = "default"

EXPENSES = "expenses"
INCOME = "income"
BUDGETS = "budgets"
ACCOUNTS = "accounts"
SETTINGS = "settings"
USER_PROFILE = "userProfile"

COLLECTION_TYPES = {
    EXPENSES: Expense,
    INCOME: Income,
    BUDGETS: Budget,
    ACCOUNTS: Account,
}
KEYS = (*COLLECTION_TYPES, SETTINGS, USER_PROFILE)


class EnhancedJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, date):
            return obj.isoformat()
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        return super().default(obj)


def list_saves(saves_dir: Path = SAVES_DIR) -> list[str]:
    if not saves_dir.exists():
        return []
    return sorted(d.name for d in saves_dir.iterdir() if d.is_dir())


class RecordStore:
    """Key-value store of whole record collections, one JSON file per key.

    Reads never raise: a missing or corrupt document yields the key's default
    value. Writes replace the whole document and report success as a bool.
    """

    def __init__(self, name: str = DEFAULT_STORE, saves_dir: Path = SAVES_DIR):
        self.name = name
        self.path = Path(saves_dir) / name

    def __repr__(self) -> str:
        return f"RecordStore({self.path})"

    def _file(self, key: str) -> Path:
        if key not in KEYS:
            raise KeyError(f"Unknown record key: {key}")
        return self.path / f"{key}.json"

    @staticmethod
    def default(key: str) -> Any:
        if key == SETTINGS:
            return Settings()
        if key == USER_PROFILE:
            return None
        return []

    def load(self, key: str) -> Any:
        filepath = self._file(key)
        if not filepath.exists():
            logger.debug("No '%s' document in %s, using default", key, self.path)
            return self.default(key)

        try:
            data = json.loads(filepath.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Error reading '%s' from %s: %s", key, self.path, e)
            return self.default(key)

        if key == SETTINGS:
            if not isinstance(data, dict):
                logger.warning("Ignoring malformed settings document in %s", self.path)
                return self.default(key)
            return Settings.from_dict(data)

        if key == USER_PROFILE:
            if data is None:
                return None
            try:
                return UserProfile.from_dict(data)
            except (KeyError, TypeError, AttributeError) as e:
                logger.warning("Ignoring malformed user profile in %s: %s", self.path, e)
                return None

        if not isinstance(data, list):
            logger.warning("Expected a list for '%s' in %s, got %s",
                           key, self.path, type(data).__name__)
            return self.default(key)

        record_type = COLLECTION_TYPES[key]
        records = []
        for item in data:
            try:
                records.append(record_type.from_dict(item))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                item_id = item.get("id") if isinstance(item, dict) else None
                logger.warning("Skipping invalid %s record %s: %s", key, item_id, e)
        return records

    def save(self, key: str, value: Any) -> bool:
        filepath = self._file(key)
        try:
            json_str = json.dumps(value, cls=EnhancedJSONEncoder, indent=2, ensure_ascii=False)
            self.path.mkdir(parents=True, exist_ok=True)
            filepath.write_text(json_str, encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error saving '%s' to %s: %s", key, self.path, e)
            return False

        count = len(value) if isinstance(value, list) else 1
        logger.debug("Saved %d '%s' item(s) to %s", count, key, self.path)
        return True

    # Typed accessors

    def load_expenses(self) -> list[Expense]:
        return self.load(EXPENSES)

    def save_expenses(self, expenses: list[Expense]) -> bool:
        return self.save(EXPENSES, expenses)

    def load_income(self) -> list[Income]:
        return self.load(INCOME)

    def save_income(self, income: list[Income]) -> bool:
        return self.save(INCOME, income)

    def load_budgets(self) -> list[Budget]:
        return self.load(BUDGETS)

    def save_budgets(self, budgets: list[Budget]) -> bool:
        return self.save(BUDGETS, budgets)

    def load_accounts(self) -> list[Account]:
        return self.load(ACCOUNTS)

    def save_accounts(self, accounts: list[Account]) -> bool:
        return self.save(ACCOUNTS, accounts)

    def load_settings(self) -> Settings:
        return self.load(SETTINGS)

    def save_settings(self, settings: Settings) -> bool:
        return self.save(SETTINGS, settings)

    def load_user_profile(self) -> Optional[UserProfile]:
        return self.load(USER_PROFILE)

    def save_user_profile(self, profile: UserProfile) -> bool:
        return self.save(USER_PROFILE, profile)

import cmd
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable

from fintrack.analytics import (
    PERIODS, summarize_period, category_breakdown, evaluate_budgets,
    monthly_trend, monthly_overview
)
from fintrack.logic import (
    add_expense, add_income, update_expense, update_income, delete_record,
    search_records, recurring_total, set_budget, find_budget,
    add_account, update_settings, load_profile, export_data, clear_all_data
)
from fintrack.models import RECURRING_FREQUENCIES, BUDGET_PERIODS
from fintrack.storage import RecordStore, list_saves, EXPENSES, INCOME, BUDGETS, SAVES_DIR


logger = logging.getLogger(__name__)

OPTIONAL_EDIT_FIELDS = ("recurring_freq", "location", "receipt")


class FinanceTrackerCLI(cmd.Cmd):
    prompt = "(fintrack) "

    def __init__(self, store: RecordStore = None, clock: Callable[[], datetime] = datetime.now,
                 saves_dir: Path = SAVES_DIR, **kwargs):
        super().__init__(**kwargs)
        self.saves_dir = saves_dir
        self.store = store or RecordStore(saves_dir=saves_dir)
        self.clock = clock
        self.settings = self.store.load_settings()
        profile = load_profile(self.store, self.clock())
        self.intro = f"Welcome to fintrack, {profile.name}. Type 'help' for commands."

    def money(self, amount: float) -> str:
        return f"{self.settings.currency}{amount:,.2f}"

    def _report_error(self, action: str, e: Exception) -> None:
        logger.debug("Error while %s", action, exc_info=e)
        message = e.args[0] if isinstance(e, KeyError) and e.args else e
        print(f"Error {action}: {message}")

    # ===== RECORDS =====
    def do_expense(self, arg):
        """Add an expense: expense <amount> <category> [--pay METHOD] [--account NAME] [--at LOCATION] [--recur <daily|weekly|monthly|yearly>] [--desc "description"]"""
        try:
            args = self._parse_record_args(arg, ("--pay", "--account", "--at"))
            expense = add_expense(
                self.store,
                amount=args["amount"],
                category=args["group"],
                now=self.clock(),
                description=args["desc"],
                recurring=bool(args["recur"]),
                recurring_freq=args["recur"],
                **{k: v for k, v in (("payment_method", args.get("--pay")),
                                     ("account", args.get("--account")),
                                     ("location", args.get("--at"))) if v}
            )
            confirmation = f"✓ Added expense {expense.id[:8]} of {self.money(expense.amount)} ({expense.category})"
            if expense.recurring_freq:
                confirmation += f" (recurring {expense.recurring_freq})"
            print(confirmation)
            self._warn_budget(expense.category)
        except ValueError as e:
            print(f"Invalid input: {e}")
        except OSError as e:
            self._report_error("adding expense", e)

    def do_income(self, arg):
        """Add income: income <amount> <source> [--account NAME] [--recur <daily|weekly|monthly|yearly>] [--desc "description"]"""
        try:
            args = self._parse_record_args(arg, ("--account",))
            item = add_income(
                self.store,
                amount=args["amount"],
                source=args["group"],
                now=self.clock(),
                description=args["desc"],
                recurring=bool(args["recur"]),
                recurring_freq=args["recur"],
                **({"account": args["--account"]} if args.get("--account") else {})
            )
            print(f"✓ Added income {item.id[:8]} of {self.money(item.amount)} ({item.source})")
        except ValueError as e:
            print(f"Invalid input: {e}")
        except OSError as e:
            self._report_error("adding income", e)

    def do_edit(self, arg):
        """Edit a record: edit <expense|income> <ID> field=value [field=value ...] (recurring=true|false, recurring_freq= clears)"""
        args = arg.split()
        if len(args) < 3 or args[0] not in ("expense", "income"):
            print("Usage: edit <expense|income> <ID> amount=12.5 category=Travel description=...")
            return
        kind, record_id = args[0], self._resolve_id(EXPENSES if args[0] == "expense" else INCOME, args[1])
        try:
            changes = {}
            for pair in args[2:]:
                name, sep, value = pair.partition("=")
                if not sep or not name:
                    raise ValueError(f"Expected field=value, got '{pair}'")
                changes[name] = self._parse_edit_value(name, value)
            if kind == "expense":
                updated = update_expense(self.store, record_id, **changes)
            else:
                updated = update_income(self.store, record_id, **changes)
            print(f"✓ Updated {kind} {updated.id[:8]}")
        except ValueError as e:
            print(f"Invalid input: {e}")
        except (KeyError, OSError) as e:
            self._report_error(f"editing {kind}", e)

    def do_delete(self, arg):
        """Delete a record: delete <expense|income|budget> <ID|category>"""
        args = arg.split(maxsplit=1)
        keys = {"expense": EXPENSES, "income": INCOME, "budget": BUDGETS}
        if len(args) < 2 or args[0] not in keys:
            print("Usage:\n  delete expense <ID>\n  delete income <ID>\n  delete budget <category>")
            return

        try:
            if args[0] == "budget":
                budget = find_budget(self.store, args[1])
                record_id = budget.id if budget else args[1]
            else:
                record_id = self._resolve_id(keys[args[0]], args[1])
            if delete_record(self.store, keys[args[0]], record_id):
                print(f"✓ Deleted {args[0]} {args[1]}")
            else:
                print(f"{args[0].capitalize()} not found")
        except OSError as e:
            self._report_error(f"deleting {args[0]}", e)

    def do_list(self, arg):
        """List records: list <expenses|income> [--category NAME]"""
        args = arg.split()
        kind = args[0] if args else "expenses"
        group = None
        if "--category" in args:
            idx = args.index("--category")
            group = " ".join(args[idx + 1:]) or None
        self._print_records(kind, "", group)

    def do_search(self, arg):
        """Search descriptions and categories: search <expenses|income> <text>"""
        args = arg.split(maxsplit=1)
        if len(args) < 2:
            print("Usage: search <expenses|income> <text>")
            return
        self._print_records(args[0], args[1], None)

    # ===== BUDGETS =====
    def do_budget(self, arg):
        """Manage budgets: budget set <category> <amount> [weekly|monthly] [--no-alerts] | budget list | budget delete <category>"""
        args = arg.split()
        if not args:
            self.help_budget()
            return

        try:
            if args[0] == "set":
                self._set_budget(args[1:])
            elif args[0] == "list":
                self._list_budgets()
            elif args[0] == "delete":
                self.do_delete("budget " + " ".join(args[1:]))
            else:
                self.help_budget()
        except ValueError as e:
            print(f"Invalid input: {e}")
        except (KeyError, OSError) as e:
            self._report_error("updating budget", e)

    def help_budget(self):
        print(self.do_budget.__doc__)

    def _set_budget(self, args):
        alerts = "--no-alerts" not in args
        args = [a for a in args if a != "--no-alerts"]
        period = "monthly"
        if args and args[-1] in BUDGET_PERIODS:
            period = args.pop()
        if len(args) < 2:
            raise ValueError("Missing required arguments (category and amount)")
        category, amount = " ".join(args[:-1]), float(args[-1])

        existing = find_budget(self.store, category)
        budget = set_budget(self.store, category, amount, period, alerts,
                            budget_id=existing.id if existing else None)
        print(f"✓ {'Updated' if existing else 'Created'} {budget.period} budget for "
              f"{budget.category}: {self.money(budget.amount)}")

    def _list_budgets(self):
        report = evaluate_budgets(self.store.load_budgets(), self.store.load_expenses(), self.clock())
        if not report.statuses:
            print("No budgets defined")
            return

        print("\nBudgets:")
        for status in report.statuses:
            flag = ""
            if status.is_over_budget:
                flag = "  OVER BUDGET"
            elif status.is_near_limit:
                flag = "  near limit"
            print(f"  {status.budget.category} ({status.budget.period}): "
                  f"{self.money(status.spent)} / {self.money(status.budget.amount)} "
                  f"({round(status.percentage)}%){flag}")
        print(f"\nTotal: {self.money(report.total_spent)} of {self.money(report.total_budgeted)} "
              f"({round(report.utilization)}%), {report.over_budget_count} over budget")

    def _warn_budget(self, category: str):
        budget = find_budget(self.store, category)
        if budget is None or not budget.alerts:
            return
        status = evaluate_budgets([budget], self.store.load_expenses(), self.clock()).statuses[0]
        if status.is_over_budget:
            print(f"! Over budget for {category}: {self.money(status.spent)} of {self.money(budget.amount)}")
        elif status.is_near_limit:
            print(f"! {round(status.percentage)}% of the {category} budget used")

    # ===== REPORTS =====
    def do_report(self, arg):
        """
        Generate a spending report:
        report [--week|--month|--year] [--categories]

        Timeframes:
            --week      Last 7 days
            --month     This calendar month (default)
            --year      Year to date
        """
        args = arg.split()
        period = "month"
        for a in args:
            if a.startswith("--") and a[2:] in PERIODS:
                period = a[2:]
            elif a != "--categories":
                print(f"Unknown option: {a}")
                return

        summary = summarize_period(self.store.load_expenses(), self.store.load_income(),
                                   period, self.clock())

        print(f"\n{' ' + period.capitalize() + ' Report ':-^50}")
        print(f"Period: {summary.start:%Y-%m-%d} to {summary.end:%Y-%m-%d}")
        if summary.transaction_count == 0:
            print("\nNo transactions in this period")
            return

        print("\nTotals:")
        print(f"  Income:   {self.money(summary.total_income)}")
        print(f"  Expenses: {self.money(summary.total_expenses)}")
        print(f"  {'Surplus' if summary.balance >= 0 else 'Deficit'}:  {self.money(abs(summary.balance))}")
        print(f"  Average expense: {self.money(summary.average_expense)}")
        print(f"  Transactions: {summary.transaction_count}")
        if summary.top_category:
            name, amount = summary.top_category
            print(f"  Top category: {name} ({self.money(amount)})")

        if "--categories" in args:
            print("\nBy Category:")
            for name, amount, share in category_breakdown(summary.category_totals):
                print(f"  {name}: {self.money(amount)} ({share:.1f}%)")

        if summary.top_expenses:
            print("\nTop Expenses:")
            for e in summary.top_expenses:
                print(f"  {self.money(e.amount)}  {e.category}  {e.description}")

    def do_trend(self, arg):
        """Show monthly income vs expenses for the current year: trend"""
        trend = monthly_trend(self.store.load_expenses(), self.store.load_income(), self.clock())
        print(f"\n{' ' + str(trend.year) + ' Trend ':-^50}")
        print(f"  {'Month':<6}{'Income':>18}{'Expenses':>18}")
        for label, income, spent in zip(trend.labels, trend.income, trend.expenses):
            print(f"  {label:<6}{self.money(income):>18}{self.money(spent):>18}")

    def do_overview(self, arg):
        """Show this month's balance, daily spend and budget alerts: overview"""
        now = self.clock()
        income = self.store.load_income()
        overview = monthly_overview(self.store.load_expenses(), income, self.store.load_budgets(), now)

        print(f"\nBalance this month: {self.money(abs(overview.balance))} "
              f"({'Surplus' if overview.balance >= 0 else 'Deficit'})")
        print(f"  Income:        {self.money(overview.monthly_income)}")
        print(f"  Expenses:      {self.money(overview.monthly_expenses)}")
        print(f"  Daily average: {self.money(overview.daily_average)}")
        print(f"  Recurring income: {self.money(recurring_total(income))}")
        print(f"  Budget alerts: {overview.budget_alerts}")

    # ===== SETTINGS & DATA MANAGEMENT =====
    def do_currency(self, arg):
        """Show or set the currency symbol: currency [SYMBOL]"""
        if not arg.strip():
            print(f"Currency: {self.settings.currency}")
            return
        try:
            self.settings = update_settings(self.store, currency=arg)
            print(f"✓ Currency set to {self.settings.currency}")
        except ValueError as e:
            print(f"Invalid input: {e}")
        except OSError as e:
            self._report_error("saving settings", e)

    def do_account(self, arg):
        """Manage accounts: account add <name> <cash|bank|credit|wallet|upi> [balance] | account list"""
        args = arg.split()
        try:
            if args and args[0] == "add" and len(args) >= 3:
                balance = float(args[3]) if len(args) > 3 else 0.0
                account = add_account(self.store, args[1], args[2], balance)
                print(f"✓ Added account: {account.name} ({account.type})")
            elif args and args[0] == "list":
                accounts = self.store.load_accounts()
                if not accounts:
                    print("No accounts defined")
                for a in accounts:
                    print(f"  {a.name} ({a.type}): {self.money(a.balance)}")
            else:
                print(self.do_account.__doc__)
        except ValueError as e:
            print(f"Invalid input: {e}")
        except OSError as e:
            self._report_error("adding account", e)

    def do_export(self, arg):
        """Export expenses and income to JSON: export [file=fintrack-export.json]"""
        path = Path(arg.strip() or "fintrack-export.json")
        data = export_data(self.store, self.clock())
        try:
            path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            self._report_error("exporting data", e)
            return
        print(f"✓ Exported {len(data['expenses'])} expenses and {len(data['income'])} income records to {path}")

    def do_clear(self, arg):
        """Delete all expenses, income and budgets: clear --yes"""
        if arg.strip() != "--yes":
            print("This permanently deletes all expenses, income and budgets. Run 'clear --yes' to confirm.")
            return
        if clear_all_data(self.store):
            print("✓ All data has been cleared")
        else:
            print("Error: failed to clear data")

    def do_use(self, arg):
        """Switch to another store: use <name>"""
        name = arg.strip()
        if not name:
            print(f"Current store: {self.store.name}")
            return
        self.store = RecordStore(name, saves_dir=self.saves_dir)
        self.settings = self.store.load_settings()
        print(f"✓ Using store '{name}'")

    def do_saves(self, arg):
        """List available stores: saves"""
        saves = list_saves(self.saves_dir)
        if not saves:
            print("No saved stores")
            return
        for i, name in enumerate(saves, 1):
            marker = " *" if name == self.store.name else ""
            print(f"{i}. {name}{marker}")

    # ===== UTILITIES =====
    def do_exit(self, arg):
        """Exit the program"""
        print("Goodbye!")
        return True

    do_quit = do_exit
    do_EOF = do_exit

    # ===== HELPERS =====
    def _parse_edit_value(self, name: str, value: str):
        """Convert a field=value edit to the type the record field holds."""
        if name == "amount":
            return float(value)
        if name == "recurring":
            flag = value.lower()
            if flag in ("true", "yes", "1"):
                return True
            if flag in ("false", "no", "0"):
                return False
            raise ValueError(f"recurring must be true or false, got '{value}'")
        if name in OPTIONAL_EDIT_FIELDS and value.lower() in ("", "none"):
            return None
        if not value:
            raise ValueError(f"{name} cannot be empty")
        return value

    def _resolve_id(self, key: str, prefix: str) -> str:
        """Expand a short id prefix (as printed by the shell) to the full id."""
        matches = [r.id for r in self.store.load(key) if r.id.startswith(prefix)]
        return matches[0] if len(matches) == 1 else prefix

    def _print_records(self, kind: str, query: str, group):
        if kind not in (EXPENSES, INCOME):
            print("Choose 'expenses' or 'income'")
            return
        records = search_records(self.store.load(kind), query, group)
        if not records:
            print("No records found")
            return
        for r in records:
            name = r.category if kind == EXPENSES else r.source
            recur = f" [{r.recurring_freq or 'recurring'}]" if r.recurring else ""
            print(f"  {r.id[:8]}  {r.date[:10]}  {self.money(r.amount):>12}  {name}  {r.description}{recur}")
        print(f"{len(records)} record(s), total {self.money(sum(r.amount for r in records))}")

    def _parse_record_args(self, arg, options):
        """Parse '<amount> <group words...> [--opt value ...] [--desc text]'."""
        args = arg.split()
        if len(args) < 2:
            raise ValueError("Missing required arguments (amount and category/source)")

        result = {
            "amount": float(args[0]),
            "group": None,
            "recur": None,
            "desc": "",
        }

        group_words = []
        i = 1
        while i < len(args):
            if args[i] == "--recur":
                if i + 1 >= len(args):
                    raise ValueError("Missing recurrence interval after --recur")
                if args[i + 1] not in RECURRING_FREQUENCIES:
                    raise ValueError(f"Invalid interval, use: {'/'.join(RECURRING_FREQUENCIES)}")
                result["recur"] = args[i + 1]
                i += 2
            elif args[i] == "--desc":
                result["desc"] = " ".join(args[i + 1:])
                break
            elif args[i] in options:
                if i + 1 >= len(args):
                    raise ValueError(f"Missing value after {args[i]}")
                result[args[i]] = args[i + 1]
                i += 2
            elif args[i].startswith("--"):
                raise ValueError(f"Unknown flag: {args[i]}")
            else:
                group_words.append(args[i])
                i += 1

        if not group_words:
            raise ValueError("Missing category/source")
        result["group"] = " ".join(group_words)
        return result


if __name__ == "__main__":
    FinanceTrackerCLI().cmdloop()

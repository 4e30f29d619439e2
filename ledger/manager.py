"""
Session layer over the owner registry.

FinanceManager keeps the registry of owners, gates every ledger operation
behind a logged-in owner, and persists the registry after each mutation.
User-facing messages (confirmations and ledger notifications) are queued and
handed to the command layer through drain_notifications().
"""

import pickle
import re
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from ledger import reports
from ledger.auth import get_password_hash, validate_credentials, verify_password
from ledger.config import LedgerSettings, get_settings
from ledger.exceptions import (
    BudgetNotFoundError,
    CategoryAlreadyExistsError,
    CategoryNotFoundError,
    CredentialsInvalidError,
    DuplicateUserError,
    InsufficientFundsError,
    InvalidArgumentError,
    InvalidDateError,
    RecipientNotFoundError,
    SelfTransferError,
    UnauthenticatedError,
    UserNotFoundError,
)
from ledger.log import get_logger
from ledger.logic import Ledger, NotificationQueue
from ledger.models import Budget, Category, Operation, Owner, Transfer
from ledger.storage import LedgerStorage


logger = get_logger(__name__)

DATE_FORMAT = "%d.%m.%Y"
DATE_PATTERN = re.compile(r"\d{2}\.\d{2}\.\d{4}")
EXPORT_FORMATS = ("binary", "csv", "json")
IMPORT_FORMATS = ("binary", "json")

EXAMPLE_INCOME = (("Salary", 20000), ("Salary", 40000), ("Bonus", 3000))
EXAMPLE_EXPENSES = (("Food", 300), ("Food", 500), ("Entertainment", 3000),
                    ("Utilities", 3000), ("Taxi", 1500))
EXAMPLE_BUDGETS = (("Food", 4000), ("Entertainment", 3000), ("Utilities", 2500))


class FinanceManager:
    def __init__(self, storage: Optional[LedgerStorage] = None,
                 settings: Optional[LedgerSettings] = None):
        self.settings = settings or get_settings()
        self.storage = storage or LedgerStorage(settings=self.settings)
        self.notifications = NotificationQueue()
        self.transfers: list[Transfer] = []
        self.current_user: Optional[Owner] = None
        self.users: dict[str, Owner] = self.storage.load_registry()
        self.notifications.push(f"Loaded {len(self.users)} user(s)")

    # ===== SESSION =====
    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    @property
    def ledger(self) -> Ledger:
        return self._require_user().ledger

    def _require_user(self) -> Owner:
        if self.current_user is None:
            raise UnauthenticatedError("Login required. Use the 'login' command")
        return self.current_user

    def register(self, login: str, password: str) -> Owner:
        if login in self.users:
            raise DuplicateUserError(f"User '{login}' already exists")
        if not validate_credentials(login, password, self.settings):
            raise CredentialsInvalidError(
                f"Login needs at least {self.settings.min_login_length} characters and "
                f"password at least {self.settings.min_password_length}"
            )
        owner = Owner(login, get_password_hash(password))
        self.users[login] = owner
        logger.info("user_registered", login=login)
        self._save()
        self.notifications.push("Registration successful")
        return owner

    def login(self, login: str, password: str) -> Owner:
        owner = self.users.get(login)
        if owner is None:
            raise UserNotFoundError(f"User not found: {login}")
        if not verify_password(password, owner.password_hash):
            raise CredentialsInvalidError("Wrong password")
        self.current_user = owner
        logger.info("user_logged_in", login=login)
        self.notifications.push(f"Welcome, {login}!")
        owner.ledger.check_financial_health()
        self._collect(owner.ledger)
        return owner

    def logout(self) -> None:
        if self.current_user is None:
            return
        self._save()
        self.notifications.push(f"Goodbye, {self.current_user.login}!")
        logger.info("user_logged_out", login=self.current_user.login)
        self.current_user = None

    def drain_notifications(self) -> list[str]:
        return self.notifications.drain()

    # ===== OPERATIONS =====
    def add_income(self, category: str, amount: float, description: str = "",
                   timestamp: Optional[datetime] = None) -> Operation:
        ledger = self.ledger
        op = Operation.income(amount, self._category_or_create(ledger, category), description, timestamp)
        return self._append(ledger, op, "Income added")

    def add_expense(self, category: str, amount: float, description: str = "",
                    timestamp: Optional[datetime] = None) -> Operation:
        ledger = self.ledger
        op = Operation.expense(amount, self._category_or_create(ledger, category), description, timestamp)
        return self._append(ledger, op, "Expense added")

    def _append(self, ledger: Ledger, op: Operation, message: str) -> Operation:
        ledger.append_operation(op)
        self.notifications.push(f"{message}: {op}")
        self._collect(ledger)
        self._save()
        return op

    def _category_or_create(self, ledger: Ledger, name: str) -> Category:
        category = ledger.get_category(name)
        if category is None:
            category = Category(name)
            ledger.add_category(category)
            self.notifications.push(f"Category not found, created new category: {name}")
        return category

    def transfer(self, to_login: str, amount: float, description: str = "") -> Transfer:
        """Move money from the current owner to another registered owner.

        Every check runs and both operations are built before either ledger
        changes, so the debit and credit are applied together or not at all.
        """
        sender = self._require_user()
        if to_login == sender.login:
            raise SelfTransferError("Cannot transfer money to yourself")
        recipient = self.users.get(to_login)
        if recipient is None:
            raise RecipientNotFoundError(f"Recipient not found: {to_login}")
        record = Transfer(sender.login, to_login, amount, description)
        if sender.ledger.balance < amount:
            raise InsufficientFundsError(
                f"Insufficient funds: balance {sender.ledger.balance:,.2f}, requested {amount:,.2f}"
            )

        misc = self.settings.misc_category
        debit = Operation.expense(
            amount, self._misc_category(sender.ledger, misc),
            f"Transfer to {to_login}: {description}", record.timestamp,
        )
        credit = Operation.income(
            amount, self._misc_category(recipient.ledger, misc),
            f"Transfer from {sender.login}: {description}", record.timestamp,
        )
        sender.ledger.append_operation(debit)
        recipient.ledger.append_operation(credit)
        self.transfers.append(record)

        logger.info("transfer_completed", sender=sender.login, recipient=to_login, amount=amount)
        self.notifications.push(f"Transfer completed: {record}")
        self._collect(sender.ledger)
        self._save()
        return record

    @staticmethod
    def _misc_category(ledger: Ledger, name: str) -> Category:
        category = ledger.get_category(name)
        if category is None:
            category = Category(name)
            ledger.add_category(category)
        return category

    # ===== BUDGETS =====
    def set_budget(self, category: str, limit: float) -> Budget:
        ledger = self.ledger
        self._category_or_create(ledger, category)
        budget = ledger.set_budget(category, limit)
        self.notifications.push(f"Budget set: {reports.describe_budget(budget)}")
        self._save()
        return budget

    def edit_budget(self, category: str, new_limit: float) -> Budget:
        budget = self.ledger.edit_budget(category, new_limit)
        self.notifications.push(f"Budget updated: {reports.describe_budget(budget)}")
        self._save()
        return budget

    def remove_budget(self, category: str) -> None:
        ledger = self.ledger
        if ledger.get_budget(category) is None:
            raise BudgetNotFoundError(f"No budget set for category: {category}")
        ledger.remove_budget(category)
        self.notifications.push(f"Budget removed for category: {category}")
        self._save()

    # ===== CATEGORIES =====
    def add_category(self, name: str, description: str = "") -> Category:
        ledger = self.ledger
        if ledger.has_category(name):
            raise CategoryAlreadyExistsError(f"Category already exists: {name}")
        category = Category(name, description)
        ledger.add_category(category)
        self.notifications.push(f"Category added: {name}")
        self._save()
        return category

    def edit_category(self, old_name: str, new_name: str,
                      description: Optional[str] = None) -> Category:
        """Rename a category, or update it in place when only the case differs.

        A rename re-points every historical operation, carries the budget
        over with its spent total, and drops the old category.
        """
        ledger = self.ledger
        old = ledger.get_category(old_name)
        if old is None:
            raise CategoryNotFoundError(f"Category not found: {old_name}")
        if description is None:
            description = old.description

        if old_name.lower() == new_name.lower():
            old.set_name(new_name)
            old.description = description
            self.notifications.push(f"Category updated: {new_name}")
            self._save()
            return old

        if ledger.has_category(new_name):
            raise CategoryAlreadyExistsError(f"Category '{new_name}' already exists")

        renamed = Category(new_name, description)
        ledger.add_category(renamed)
        for op in ledger.operations:
            if op.category == old:
                op.set_category(renamed)
        budget = ledger.get_budget(old_name)
        if budget is not None:
            ledger.remove_budget(old_name)
            ledger.add_budget(Budget(renamed, budget.limit, budget.spent))
        ledger.remove_category(old_name)

        logger.info("category_renamed", old=old_name, new=new_name)
        self.notifications.push(f"Category renamed: {old_name} -> {new_name}")
        self._save()
        return renamed

    # ===== IMPORT / EXPORT =====
    def export_to_file(self, filename: str, fmt: str = "binary") -> list[Path]:
        ledger = self.ledger
        fmt = fmt.lower()
        if fmt == "csv":
            paths = [self.storage.export_csv(ledger, filename),
                     self.storage.export_budgets_csv(ledger, filename)]
        elif fmt == "json":
            paths = [self.storage.export_json(ledger, filename)]
        elif fmt == "binary":
            paths = [self.storage.export_binary(ledger, filename)]
        else:
            raise InvalidArgumentError(f"Unsupported export format: {fmt}. Use one of {', '.join(EXPORT_FORMATS)}")
        for path in paths:
            self.notifications.push(f"Exported ({fmt}) to {path}")
        return paths

    def import_from_file(self, filename: str, fmt: str = "binary") -> Ledger:
        owner = self._require_user()
        fmt = fmt.lower()
        if fmt == "json":
            imported = self.storage.import_json(filename)
        elif fmt == "binary":
            imported = self.storage.import_binary(filename)
        else:
            raise InvalidArgumentError(f"Unsupported import format: {fmt}. Use one of {', '.join(IMPORT_FORMATS)}")
        owner.ledger = imported
        self.notifications.push(f"Imported {len(imported.operations)} operation(s) from {filename}")
        self._save()
        return imported

    # ===== REPORTS =====
    def balance_report(self) -> str:
        return reports.balance_report(self.ledger)

    def statistics_report(self, categories: Optional[list[str]] = None,
                          start: Optional[date] = None, end: Optional[date] = None) -> str:
        return reports.statistics_report(self.ledger, categories, start, end)

    def budgets_report(self) -> str:
        return reports.budgets_report(self.ledger)

    def operations_report(self, start: Optional[date] = None, end: Optional[date] = None,
                          category: Optional[str] = None) -> str:
        ledger = self.ledger
        if start and end:
            operations = ledger.operations_by_period(start, end)
        else:
            operations = list(ledger.operations)
        if category:
            operations = [op for op in operations if op.category.key == category.lower()]
        return reports.operations_report(operations, start, end, category)

    def detailed_report(self) -> str:
        return reports.detailed_report(self.ledger)

    def summary_report(self) -> str:
        return reports.summary_report(self.ledger)

    def run_example(self) -> str:
        """Replay the reference scenario into the current ledger."""
        for category, amount in EXAMPLE_INCOME:
            self.add_income(category, amount)
        for category, amount in EXAMPLE_EXPENSES:
            self.add_expense(category, amount)
        for category, limit in EXAMPLE_BUDGETS:
            self.set_budget(category, limit)
        return self.summary_report()

    # ===== HELPERS =====
    @staticmethod
    def parse_date(text: str) -> date:
        if not isinstance(text, str) or not DATE_PATTERN.fullmatch(text.strip()):
            raise InvalidDateError(f"Invalid date '{text}'. Use DD.MM.YYYY")
        try:
            return datetime.strptime(text.strip(), DATE_FORMAT).date()
        except ValueError as e:
            raise InvalidDateError(f"Invalid date '{text}'. Use DD.MM.YYYY") from e

    def _collect(self, ledger: Ledger) -> None:
        self.notifications.extend(ledger.drain_notifications())

    def _save(self) -> None:
        """Persist the registry; a failed save never undoes the mutation."""
        try:
            self.storage.save_registry(self.users)
        except (OSError, pickle.PicklingError) as e:
            logger.warning("registry_save_failed", path=str(self.storage.data_file), error=str(e))

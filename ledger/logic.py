from __future__ import annotations
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from ledger.currency import format_amount
from ledger.exceptions import BudgetNotFoundError, CategoryNotFoundError
from ledger.models import Budget, Category, Operation, OperationKind


DEFAULT_CATEGORIES = (
    ("Food", "Groceries and eating out"),
    ("Entertainment", "Cinema, theatre, concerts"),
    ("Transport", "Public transport and fuel"),
    ("Utilities", "Rent, electricity, water"),
    ("Taxi", "Taxi rides"),
    ("Salary", "Main income"),
    ("Bonus", "Additional income"),
    ("Other", "Miscellaneous income and expenses"),
)

HIGH_EXPENSE_RATIO = 90.0
LOW_RESERVE_RATIO = 0.1


class NotificationQueue:
    """Messages queued by ledger mutations until the caller drains them.

    Delivery is at-most-once: draining empties the queue, and a pickled queue
    always comes back empty.
    """

    def __init__(self):
        self._messages: list[str] = []

    def push(self, message: str) -> None:
        self._messages.append(message)

    def extend(self, messages: Iterable[str]) -> None:
        self._messages.extend(messages)

    def peek(self) -> list[str]:
        return list(self._messages)

    def drain(self) -> list[str]:
        messages, self._messages = self._messages, []
        return messages

    def __len__(self):
        return len(self._messages)

    def __reduce__(self):
        return (NotificationQueue, ())


def _key(name: str) -> str:
    return name.lower()


def _sum(operations: Iterable[Operation], kind: OperationKind) -> float:
    return sum((op.amount for op in operations if op.kind is kind), 0.0)


class Ledger:
    """One owner's balance, categories, budgets and operation history."""

    def __init__(self, seed_defaults: bool = True):
        self.balance = 0.0
        self.categories: dict[str, Category] = {}
        self.budgets: dict[str, Budget] = {}
        self.operations: list[Operation] = []
        self.notifications = NotificationQueue()
        if seed_defaults:
            for name, description in DEFAULT_CATEGORIES:
                self.add_category(Category(name, description))

    # ===== CATEGORIES =====
    def add_category(self, category: Category) -> None:
        self.categories[category.key] = category

    def remove_category(self, name: str) -> None:
        self.categories.pop(_key(name), None)

    def has_category(self, name: str) -> bool:
        return _key(name) in self.categories

    def get_category(self, name: str) -> Optional[Category]:
        return self.categories.get(_key(name))

    # ===== OPERATIONS =====
    def append_operation(self, op: Operation) -> None:
        self.operations.append(op)
        if op.is_income:
            self.balance += op.amount
        else:
            self.balance -= op.amount
            self._apply_to_budget(op)
        self.check_financial_health()

    def load_history(self, operations: Iterable[Operation]) -> None:
        """Replace the log wholesale and recompute the balance.

        Budgets are left alone and nothing is queued.
        """
        self.operations = list(operations)
        self.recompute_balance()

    def recompute_balance(self) -> float:
        self.balance = sum((op.signed_amount for op in self.operations), 0.0)
        return self.balance

    def _apply_to_budget(self, expense: Operation) -> None:
        budget = self.budgets.get(expense.category.key)
        if budget is None:
            return
        budget.add_expense(expense.amount)
        name = expense.category.name
        if budget.is_exceeded:
            self.notifications.push(
                f"WARNING: budget for '{name}' exceeded! "
                f"Spent: {format_amount(budget.spent)}, limit: {format_amount(budget.limit)}"
            )
        elif budget.is_near_limit:
            self.notifications.push(
                f"INFO: budget for '{name}' is almost used up. "
                f"Spent {format_amount(budget.spent)} of {format_amount(budget.limit)} "
                f"({budget.usage_percentage:.0f}%)"
            )

    def check_financial_health(self) -> None:
        if self.balance < 0:
            self.notifications.push(
                "CRITICAL: negative balance, expenses exceed income! "
                f"Current balance: {format_amount(self.balance)}"
            )
        total_income = self.total_income()
        if total_income > 0:
            ratio = self.total_expense() / total_income * 100
            if ratio > HIGH_EXPENSE_RATIO:
                self.notifications.push(f"WARNING: expenses are {ratio:.1f}% of income!")
            if self.balance < total_income * LOW_RESERVE_RATIO:
                self.notifications.push("INFO: balance is below 10% of total income")

    def drain_notifications(self) -> list[str]:
        return self.notifications.drain()

    # ===== BUDGETS =====
    def set_budget(self, category_name: str, limit: float) -> Budget:
        category = self.get_category(category_name)
        if category is None:
            raise CategoryNotFoundError(f"Category not found: {category_name}")
        budget = Budget(category, limit, self.expense_by_category(category_name))
        self.budgets[category.key] = budget
        return budget

    def add_budget(self, budget: Budget) -> None:
        """Insert a prebuilt budget as is, keeping its spent total."""
        self.budgets[budget.category.key] = budget

    def edit_budget(self, category_name: str, new_limit: float) -> Budget:
        budget = self.get_budget(category_name)
        if budget is None:
            raise BudgetNotFoundError(f"No budget set for category: {category_name}")
        budget.set_limit(new_limit)
        return budget

    def remove_budget(self, category_name: str) -> None:
        self.budgets.pop(_key(category_name), None)

    def get_budget(self, category_name: str) -> Optional[Budget]:
        return self.budgets.get(_key(category_name))

    # ===== AGGREGATES =====
    def total_income(self) -> float:
        return _sum(self.operations, OperationKind.INCOME)

    def total_expense(self) -> float:
        return _sum(self.operations, OperationKind.EXPENSE)

    def income_by_category(self, category_name: str) -> float:
        return self._by_category(category_name, OperationKind.INCOME)

    def expense_by_category(self, category_name: str) -> float:
        return self._by_category(category_name, OperationKind.EXPENSE)

    def _by_category(self, category_name: str, kind: OperationKind) -> float:
        key = _key(category_name)
        return _sum((op for op in self.operations if op.category.key == key), kind)

    def income_by_categories(self) -> dict[str, float]:
        return self._grouped(OperationKind.INCOME)

    def expense_by_categories(self) -> dict[str, float]:
        return self._grouped(OperationKind.EXPENSE)

    def _grouped(self, kind: OperationKind) -> dict[str, float]:
        totals: dict[str, float] = defaultdict(float)
        for op in self.operations:
            if op.kind is kind:
                totals[op.category.name] += op.amount
        return dict(totals)

    def operations_by_period(self, start: date, end: date) -> list[Operation]:
        return [op for op in self.operations if start <= op.timestamp.date() <= end]

    def total_income_by_period(self, start: date, end: date) -> float:
        return _sum(self.operations_by_period(start, end), OperationKind.INCOME)

    def total_expense_by_period(self, start: date, end: date) -> float:
        return _sum(self.operations_by_period(start, end), OperationKind.EXPENSE)

    def __repr__(self):
        return (f"Ledger(balance={format_amount(self.balance)}, operations={len(self.operations)}, "
                f"categories={len(self.categories)}, budgets={len(self.budgets)})")

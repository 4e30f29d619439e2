"""
Schema of the JSON export document.

Field names are snake_case in Python and camelCase on disk
(``dateTime``, ``totalIncome``, ``usagePercentage``). Derived values
(``balance``, totals, ``remaining``, ``usagePercentage``, ``exceeded``) are
written for readers of the file but ignored on import.
"""

from datetime import datetime
from typing import Literal, Optional

from dateutil.parser import isoparse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ledger.logic import Ledger
from ledger.models import Budget, Category, Operation


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class CategoryRecord(_Record):
    name: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_category(cls, category: Category) -> "CategoryRecord":
        return cls(name=category.name, description=category.description)


class OperationRecord(_Record):
    type: Literal["INCOME", "EXPENSE"]
    category: str
    amount: float
    date_time: datetime
    description: Optional[str] = ""

    @field_validator("date_time", mode="before")
    @classmethod
    def parse_iso_datetime(cls, v):
        """Accept any ISO-8601 form, including nanosecond fractions."""
        if isinstance(v, str):
            return isoparse(v)
        return v

    @classmethod
    def from_operation(cls, op: Operation) -> "OperationRecord":
        return cls(
            type=op.kind.value,
            category=op.category.name,
            amount=op.amount,
            date_time=op.timestamp,
            description=op.description,
        )


class BudgetRecord(_Record):
    category: str
    limit: float
    spent: float = 0.0
    remaining: Optional[float] = None
    usage_percentage: Optional[float] = None
    exceeded: Optional[bool] = None

    @classmethod
    def from_budget(cls, budget: Budget) -> "BudgetRecord":
        return cls(
            category=budget.category.name,
            limit=budget.limit,
            spent=budget.spent,
            remaining=budget.remaining,
            usage_percentage=budget.usage_percentage,
            exceeded=budget.is_exceeded,
        )


class LedgerDocument(_Record):
    balance: float = 0.0
    total_income: float = 0.0
    total_expense: float = 0.0
    operations: list[OperationRecord] = Field(default_factory=list)
    categories: list[CategoryRecord] = Field(default_factory=list)
    budgets: list[BudgetRecord] = Field(default_factory=list)

    @field_validator("operations", "categories", "budgets", mode="before")
    @classmethod
    def null_as_empty(cls, v):
        return [] if v is None else v

    @classmethod
    def from_ledger(cls, ledger: Ledger) -> "LedgerDocument":
        return cls(
            balance=ledger.balance,
            total_income=ledger.total_income(),
            total_expense=ledger.total_expense(),
            operations=[OperationRecord.from_operation(op) for op in ledger.operations],
            categories=[CategoryRecord.from_category(c) for c in ledger.categories.values()],
            budgets=[BudgetRecord.from_budget(b) for b in ledger.budgets.values()],
        )

    def to_ledger(self) -> Ledger:
        """Rebuild a fresh ledger from this document.

        Categories go in first, operations are replayed in file order with
        the balance recomputed, and budgets are restored verbatim from their
        stored limit and spent. Raises InvalidArgumentError for a
        non-positive operation amount.
        """
        ledger = Ledger()
        for record in self.categories:
            if record.name and record.name.strip():
                ledger.add_category(Category(record.name, record.description or ""))

        operations = []
        for record in self.operations:
            category = _ensure_category(ledger, record.category)
            operations.append(Operation(
                kind=record.type,
                amount=record.amount,
                category=category,
                timestamp=record.date_time,
                description=record.description or "",
            ))
        ledger.load_history(operations)

        for record in self.budgets:
            category = _ensure_category(ledger, record.category)
            ledger.add_budget(Budget(category, record.limit, record.spent))
        return ledger


def _ensure_category(ledger: Ledger, name: str) -> Category:
    category = ledger.get_category(name)
    if category is None:
        category = Category(name)
        ledger.add_category(category)
    return category

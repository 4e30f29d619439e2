from __future__ import annotations
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ledger.exceptions import InvalidArgumentError

if TYPE_CHECKING:
    from ledger.logic import Ledger


NEAR_LIMIT_RATIO = 0.8


def _require_name(name: str) -> str:
    if name is None or not name.strip():
        raise InvalidArgumentError("Category name must not be empty")
    return name


def _require_amount(amount, message: str) -> float:
    if amount is None or not math.isfinite(amount) or amount <= 0:
        raise InvalidArgumentError(message)
    return float(amount)


def _require_limit(limit) -> float:
    if limit is None or not math.isfinite(limit) or limit < 0:
        raise InvalidArgumentError("Budget limit must be a non-negative number")
    return float(limit)


@dataclass(eq=False)
class Category:
    name: str
    description: str = ""

    def __post_init__(self):
        _require_name(self.name)
        if self.description is None:
            self.description = ""

    @classmethod
    def blank(cls) -> Category:
        """Placeholder for operations created without a category."""
        category = cls.__new__(cls)
        category.name = ""
        category.description = ""
        return category

    @property
    def key(self) -> str:
        return self.name.lower()

    def set_name(self, name: str) -> None:
        self.name = _require_name(name)

    def __eq__(self, other):
        if not isinstance(other, Category):
            return NotImplemented
        return self.key == other.key

    def __hash__(self):
        return hash(self.key)

    def __str__(self):
        return self.name + (f" ({self.description})" if self.description else "")


class OperationKind(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass
class Operation:
    kind: OperationKind
    amount: float
    category: Optional[Category] = None
    timestamp: Optional[datetime] = None
    description: str = ""

    def __post_init__(self):
        self.kind = OperationKind(self.kind)
        self.amount = _require_amount(self.amount, "Amount must be a positive number")
        if self.category is None:
            self.category = Category.blank()
        if self.timestamp is None:
            self.timestamp = datetime.now()
        if self.description is None:
            self.description = ""

    @classmethod
    def income(cls, amount: float, category: Optional[Category] = None,
               description: str = "", timestamp: Optional[datetime] = None) -> Operation:
        return cls(OperationKind.INCOME, amount, category, timestamp, description)

    @classmethod
    def expense(cls, amount: float, category: Optional[Category] = None,
                description: str = "", timestamp: Optional[datetime] = None) -> Operation:
        return cls(OperationKind.EXPENSE, amount, category, timestamp, description)

    @property
    def is_income(self) -> bool:
        return self.kind is OperationKind.INCOME

    @property
    def is_expense(self) -> bool:
        return self.kind is OperationKind.EXPENSE

    @property
    def signed_amount(self) -> float:
        return self.amount if self.is_income else -self.amount

    def set_category(self, category: Category) -> None:
        if category is None:
            raise InvalidArgumentError("Category must not be None")
        self.category = category

    def __str__(self):
        return (f"[{self.kind.label.upper()}] {self.category.name}: {self.amount:,.1f} "
                f"({self.timestamp.isoformat(sep=' ', timespec='seconds')}) - {self.description}")


class BudgetStatus(str, Enum):
    EXCEEDED = "exceeded"
    NEAR_LIMIT = "near_limit"
    NORMAL = "normal"


@dataclass
class Budget:
    category: Category
    limit: float
    spent: float = 0.0

    def __post_init__(self):
        self.limit = _require_limit(self.limit)

    @property
    def remaining(self) -> float:
        return self.limit - self.spent

    @property
    def is_exceeded(self) -> bool:
        return self.spent > self.limit

    @property
    def is_near_limit(self) -> bool:
        return self.limit * NEAR_LIMIT_RATIO <= self.spent < self.limit

    @property
    def usage_percentage(self) -> float:
        if self.limit == 0:
            return 0.0
        return self.spent / self.limit * 100

    @property
    def status(self) -> BudgetStatus:
        if self.is_exceeded:
            return BudgetStatus.EXCEEDED
        if self.is_near_limit:
            return BudgetStatus.NEAR_LIMIT
        return BudgetStatus.NORMAL

    def set_limit(self, new_limit: float) -> None:
        self.limit = _require_limit(new_limit)

    def add_expense(self, amount: float) -> None:
        self.spent += amount


@dataclass(frozen=True)
class Transfer:
    from_login: str
    to_login: str
    amount: float
    description: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        _require_amount(self.amount, "Transfer amount must be a positive number")

    def __str__(self):
        return (f"Transfer from {self.from_login} to {self.to_login}: {self.amount:,.2f} "
                f"({self.timestamp.isoformat(sep=' ', timespec='seconds')}) - {self.description}")


@dataclass(eq=False)
class Owner:
    login: str
    password_hash: str
    ledger: Optional[Ledger] = None

    def __post_init__(self):
        if self.ledger is None:
            from ledger.logic import Ledger
            self.ledger = Ledger()

    def __eq__(self, other):
        if not isinstance(other, Owner):
            return NotImplemented
        return self.login == other.login

    def __hash__(self):
        return hash(self.login)

"""
Plain-text reports over a Ledger.

Every function returns a string and never prints; the command layer decides
where the text goes. Ordering rules:

- per-category totals: amount descending, ties alphabetical
- budget listings: alphabetical by category name
- detailed report: budgets by usage descending, top five expense categories
- summary report: budgets in SUMMARY_BUDGET_ORDER first, the rest alphabetical
"""

from datetime import date
from typing import Iterable, Optional

from ledger.currency import format_amount, format_remaining
from ledger.logic import Ledger
from ledger.models import Budget, BudgetStatus, Operation


RULE = "=" * 46
WIDE_RULE = "=" * 62
DATE_FORMAT = "%d.%m.%Y"

SUMMARY_BUDGET_ORDER = ("Utilities", "Food", "Entertainment")
TOP_EXPENSE_CATEGORIES = 5

STATUS_LABELS = {
    BudgetStatus.EXCEEDED: "EXCEEDED",
    BudgetStatus.NEAR_LIMIT: "NEAR LIMIT",
    BudgetStatus.NORMAL: "OK",
}


def _by_amount(totals: dict[str, float]) -> list[tuple[str, float]]:
    return sorted(totals.items(), key=lambda item: (-item[1], item[0].lower()))


def _alphabetical(budgets: Iterable[Budget]) -> list[Budget]:
    return sorted(budgets, key=lambda b: b.category.name.lower())


def _period(start: Optional[date], end: Optional[date]) -> str:
    return f"{start.strftime(DATE_FORMAT)} - {end.strftime(DATE_FORMAT)}"


def describe_budget(budget: Budget) -> str:
    return (f"{budget.category.name}: limit={format_amount(budget.limit)}, "
            f"spent={format_amount(budget.spent)}, "
            f"remaining={format_remaining(budget.remaining)} "
            f"({budget.usage_percentage:.0f}%)")


def budget_line(budget: Budget) -> str:
    return f"{describe_budget(budget)} [{STATUS_LABELS[budget.status]}]"


def balance_report(ledger: Ledger) -> str:
    return "\n".join([
        RULE,
        "BALANCE".center(46),
        RULE,
        f"Current balance: {format_amount(ledger.balance)}",
        f"Total income:    {format_amount(ledger.total_income())}",
        f"Total expense:   {format_amount(ledger.total_expense())}",
        RULE,
    ])


def statistics_report(ledger: Ledger, categories: Optional[list[str]] = None,
                      start: Optional[date] = None, end: Optional[date] = None) -> str:
    """Totals per category, optionally restricted to a date range.

    With explicit category names, only those are listed; unknown names are
    reported inline.
    """
    lines = [RULE]
    if start and end:
        lines.append(f"STATISTICS for {_period(start, end)}")
        source = Ledger(seed_defaults=False)
        source.load_history(ledger.operations_by_period(start, end))
    else:
        lines.append("STATISTICS".center(46))
        source = ledger
    lines.append(RULE)

    if categories:
        lines.append("Selected categories:")
        for name in categories:
            if not ledger.has_category(name):
                lines.append(f"  Category not found: {name}")
                continue
            lines.append(f"  {name:<20} income: {format_amount(source.income_by_category(name)):>12}, "
                         f"expense: {format_amount(source.expense_by_category(name)):>12}")
    else:
        if start and end:
            lines.append(f"Income:  {format_amount(source.total_income())}")
            lines.append(f"Expense: {format_amount(source.total_expense())}")
        income = source.income_by_categories()
        if income:
            lines.append("Income by category:")
            lines.extend(f"  {name:<20} {format_amount(total):>15}" for name, total in _by_amount(income))
        expense = source.expense_by_categories()
        if expense:
            lines.append("Expense by category:")
            lines.extend(f"  {name:<20} {format_amount(total):>15}" for name, total in _by_amount(expense))
        if ledger.budgets:
            lines.append("Budgets:")
            lines.extend(f"  {budget_line(b)}" for b in _alphabetical(ledger.budgets.values()))
    lines.append(RULE)
    return "\n".join(lines)


def budgets_report(ledger: Ledger) -> str:
    lines = [RULE, "BUDGETS".center(46), RULE]
    if not ledger.budgets:
        lines.append("No budgets set")
    else:
        lines.extend(budget_line(b) for b in _alphabetical(ledger.budgets.values()))
    lines.append(RULE)
    return "\n".join(lines)


def operations_report(operations: list[Operation], start: Optional[date] = None,
                      end: Optional[date] = None, category: Optional[str] = None) -> str:
    """Newest first."""
    lines = [RULE, "OPERATIONS".center(46)]
    if start and end:
        lines.append(f"Period: {_period(start, end)}")
    if category:
        lines.append(f"Category: {category}")
    lines.append(RULE)
    if not operations:
        lines.append("No operations found")
    else:
        for op in sorted(operations, key=lambda o: o.timestamp, reverse=True):
            lines.append(f"{op.kind.label.upper():<8} {op.timestamp.strftime(DATE_FORMAT)} "
                         f"{op.category.name:<15} {format_amount(op.amount):>12} - {op.description}")
    lines.append(RULE)
    lines.append(f"Total operations: {len(operations)}")
    return "\n".join(lines)


def detailed_report(ledger: Ledger) -> str:
    lines = [
        WIDE_RULE,
        "DETAILED REPORT".center(62),
        WIDE_RULE,
        "Overview:",
        f"  Balance:          {format_amount(ledger.balance)}",
        f"  Total income:     {format_amount(ledger.total_income())}",
        f"  Total expense:    {format_amount(ledger.total_expense())}",
        f"  Operations:       {len(ledger.operations)}",
    ]
    expense = ledger.expense_by_categories()
    if expense:
        lines.append(f"Top {TOP_EXPENSE_CATEGORIES} expense categories:")
        for name, total in _by_amount(expense)[:TOP_EXPENSE_CATEGORIES]:
            lines.append(f"  {name:<20} {format_amount(total):>15}")
    if ledger.budgets:
        lines.append("Budget status:")
        for budget in sorted(ledger.budgets.values(), key=lambda b: -b.usage_percentage):
            lines.append(f"  {budget.category.name:<20} {budget.usage_percentage:6.0f}% "
                         f"{STATUS_LABELS[budget.status]}")

    income = ledger.total_income()
    ratio = ledger.total_expense() / income * 100 if income > 0 else 0.0
    lines.append("Financial health:")
    lines.append(f"  Expense to income ratio: {ratio:.1f}%")
    if ratio > 80:
        lines.append("  High spending (over 80% of income)")
    elif ratio < 50:
        lines.append("  Healthy savings rate")
    lines.append(WIDE_RULE)
    return "\n".join(lines)


def summary_report(ledger: Ledger) -> str:
    """Income by category, total expense and remaining budget per category."""
    lines = [f"Total income: {format_amount(ledger.total_income())}"]
    income = ledger.income_by_categories()
    if income:
        lines.append("Income by category:")
        lines.extend(f"{name}: {format_amount(total)}" for name, total in _by_amount(income))
    lines.append(f"Total expense: {format_amount(ledger.total_expense())}")
    if ledger.budgets:
        lines.append("Budget by category:")
        for budget in summary_budget_order(ledger):
            lines.append(f"{budget.category.name}: {format_amount(budget.limit)}, "
                         f"remaining budget: {format_remaining(budget.remaining)}")
    return "\n".join(lines)


def summary_budget_order(ledger: Ledger) -> list[Budget]:
    priority = [name.lower() for name in SUMMARY_BUDGET_ORDER]
    first = [ledger.budgets[key] for key in priority if key in ledger.budgets]
    rest = [b for key, b in ledger.budgets.items() if key not in priority]
    return first + _alphabetical(rest)

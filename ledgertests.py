import unittest
from datetime import date, datetime

from ledger.exceptions import (
    BudgetNotFoundError, CategoryNotFoundError, InvalidArgumentError
)
from ledger.logic import DEFAULT_CATEGORIES, Ledger, NotificationQueue
from ledger.models import (
    Budget, BudgetStatus, Category, Operation, OperationKind, Owner, Transfer
)
from ledger import reports


class TestModels(unittest.TestCase):
    def test_category_identity_ignores_case(self):
        """Categories compare and hash by lowercase name"""
        self.assertEqual(Category("Food"), Category("food", "other description"))
        self.assertEqual(len({Category("Food"), Category("FOOD")}), 1)
        self.assertEqual(Category("Food").key, "food")

    def test_category_rejects_blank_name(self):
        with self.assertRaises(InvalidArgumentError):
            Category("   ")
        with self.assertRaises(InvalidArgumentError):
            Category("Food").set_name("")

    def test_operation_defaults(self):
        """Operation fills in category, timestamp and description"""
        op = Operation(OperationKind.INCOME, 100)
        self.assertEqual(op.category.name, "")
        self.assertIsInstance(op.timestamp, datetime)
        self.assertEqual(op.description, "")
        self.assertIsInstance(op.amount, float)

    def test_operation_rejects_non_positive_amount(self):
        for amount in (0, -5, None, float("nan"), float("inf"), float("-inf")):
            with self.assertRaises(InvalidArgumentError):
                Operation.expense(amount, Category("Food"))

    def test_operation_kind_from_string(self):
        op = Operation("EXPENSE", 10, Category("Food"))
        self.assertIs(op.kind, OperationKind.EXPENSE)
        self.assertTrue(op.is_expense)
        self.assertEqual(op.signed_amount, -10.0)

    def test_operation_set_category_rejects_none(self):
        op = Operation.income(10, Category("Salary"))
        with self.assertRaises(InvalidArgumentError):
            op.set_category(None)

    def test_budget_derived_values(self):
        budget = Budget(Category("Food"), 1000, 250)
        self.assertEqual(budget.remaining, 750)
        self.assertEqual(budget.usage_percentage, 25.0)
        self.assertIs(budget.status, BudgetStatus.NORMAL)

        self.assertEqual(Budget(Category("Food"), 0, 10).usage_percentage, 0.0)

    def test_budget_rejects_invalid_limit(self):
        for limit in (-1, float("nan"), float("inf"), None):
            with self.assertRaises(InvalidArgumentError):
                Budget(Category("Food"), limit)
        budget = Budget(Category("Food"), 100)
        with self.assertRaises(InvalidArgumentError):
            budget.set_limit(float("nan"))
        self.assertEqual(budget.limit, 100)

    def test_budget_statuses_are_exclusive(self):
        """Never both exceeded and near limit; at spent == limit neither flag is set"""
        category = Category("Food")
        for spent in (0, 500, 799.99, 800, 950, 999.99, 1000, 1000.01, 5000):
            budget = Budget(category, 1000, spent)
            self.assertFalse(budget.is_exceeded and budget.is_near_limit, spent)

        at_limit = Budget(category, 1000, 1000)
        self.assertFalse(at_limit.is_exceeded)
        self.assertFalse(at_limit.is_near_limit)
        self.assertTrue(Budget(category, 1000, 800).is_near_limit)
        self.assertIs(Budget(category, 1000, 1001).status, BudgetStatus.EXCEEDED)

    def test_transfer_validation(self):
        with self.assertRaises(InvalidArgumentError):
            Transfer("alice", "bob", 0)
        for amount in (float("nan"), float("inf")):
            with self.assertRaises(InvalidArgumentError):
                Transfer("alice", "bob", amount)
        record = Transfer("alice", "bob", 50, "rent")
        self.assertIn("alice", str(record))
        self.assertIn("50.00", str(record))

    def test_owner_gets_fresh_ledger(self):
        first = Owner("alice", "hash")
        second = Owner("bob", "hash")
        self.assertIsInstance(first.ledger, Ledger)
        self.assertIsNot(first.ledger, second.ledger)
        self.assertEqual(Owner("alice", "x"), first)


class TestLedger(unittest.TestCase):
    def setUp(self):
        self.ledger = Ledger()

    def add(self, kind, category, amount, when=None):
        op = Operation(kind, amount, self.ledger.get_category(category), when)
        self.ledger.append_operation(op)
        return op

    def test_default_categories(self):
        self.assertEqual(len(self.ledger.categories), len(DEFAULT_CATEGORIES))
        for name, _ in DEFAULT_CATEGORIES:
            self.assertTrue(self.ledger.has_category(name.upper()))
        self.assertEqual(self.ledger.balance, 0.0)
        self.assertEqual(Ledger(seed_defaults=False).categories, {})

    def test_balance_matches_history(self):
        """Balance equals the signed sum of every operation"""
        self.add("INCOME", "Salary", 1000)
        self.add("EXPENSE", "Food", 120.5)
        self.add("EXPENSE", "Taxi", 30)
        self.add("INCOME", "Bonus", 10)
        expected = sum(op.signed_amount for op in self.ledger.operations)
        self.assertAlmostEqual(self.ledger.balance, expected)
        self.assertAlmostEqual(self.ledger.recompute_balance(), 859.5)
        self.assertAlmostEqual(self.ledger.total_income(), 1010)
        self.assertAlmostEqual(self.ledger.total_expense(), 150.5)

    def test_set_budget_counts_existing_expenses(self):
        self.add("EXPENSE", "Food", 300)
        self.add("EXPENSE", "food", 200)
        budget = self.ledger.set_budget("FOOD", 1000)
        self.assertEqual(budget.spent, 500)
        self.assertEqual(budget.remaining, 500)
        self.assertIs(self.ledger.get_budget("Food"), budget)

    def test_set_budget_unknown_category(self):
        with self.assertRaises(CategoryNotFoundError):
            self.ledger.set_budget("Nope", 100)
        with self.assertRaises(InvalidArgumentError):
            self.ledger.set_budget("Food", float("nan"))
        self.assertIsNone(self.ledger.get_budget("Food"))

    def test_edit_and_remove_budget(self):
        self.ledger.set_budget("Food", 100)
        self.ledger.edit_budget("food", 250)
        self.assertEqual(self.ledger.get_budget("Food").limit, 250)

        self.ledger.remove_budget("Food")
        self.assertIsNone(self.ledger.get_budget("Food"))
        self.ledger.remove_budget("Food")
        with self.assertRaises(BudgetNotFoundError):
            self.ledger.edit_budget("Food", 10)

    def test_expense_updates_budget(self):
        self.ledger.set_budget("Food", 1000)
        self.add("EXPENSE", "Food", 100)
        self.add("EXPENSE", "Taxi", 100)
        self.assertEqual(self.ledger.get_budget("Food").spent, 100)

    def test_near_limit_notice_only(self):
        """Budget 1000 and an 850 expense queue a single near-limit notice"""
        self.add("INCOME", "Salary", 10000)
        self.ledger.drain_notifications()
        self.ledger.set_budget("Food", 1000)
        self.add("EXPENSE", "Food", 850)

        messages = self.ledger.drain_notifications()
        self.assertEqual(len(messages), 1)
        self.assertTrue(messages[0].startswith("INFO: budget for 'Food' is almost used up"))
        self.assertIn("85%", messages[0])
        self.assertEqual(self.ledger.drain_notifications(), [])

    def test_exceeded_notice(self):
        self.add("INCOME", "Salary", 10000)
        self.ledger.set_budget("Food", 100)
        self.ledger.drain_notifications()
        self.add("EXPENSE", "Food", 150)
        messages = self.ledger.drain_notifications()
        self.assertEqual(len(messages), 1)
        self.assertIn("WARNING: budget for 'Food' exceeded!", messages[0])

    def test_financial_health_notices(self):
        self.add("EXPENSE", "Food", 50)
        messages = self.ledger.drain_notifications()
        self.assertTrue(any(m.startswith("CRITICAL: negative balance") for m in messages))

        ledger = Ledger()
        ledger.append_operation(Operation.income(100, ledger.get_category("Salary")))
        ledger.append_operation(Operation.expense(95, ledger.get_category("Food")))
        messages = ledger.drain_notifications()
        self.assertIn("WARNING: expenses are 95.0% of income!", messages)
        self.assertIn("INFO: balance is below 10% of total income", messages)

    def test_grouped_totals(self):
        self.add("INCOME", "Salary", 100)
        self.add("INCOME", "salary", 50)
        self.add("EXPENSE", "Food", 30)
        self.assertEqual(self.ledger.income_by_categories(), {"Salary": 150})
        self.assertEqual(self.ledger.expense_by_categories(), {"Food": 30})
        self.assertEqual(self.ledger.income_by_category("SALARY"), 150)
        self.assertEqual(self.ledger.expense_by_category("Taxi"), 0.0)

    def test_operations_by_period_is_inclusive(self):
        self.add("INCOME", "Salary", 100, datetime(2024, 1, 1, 9, 30))
        self.add("EXPENSE", "Food", 10, datetime(2024, 1, 31, 23, 59))
        self.add("EXPENSE", "Food", 20, datetime(2024, 2, 1, 0, 0))
        in_january = self.ledger.operations_by_period(date(2024, 1, 1), date(2024, 1, 31))
        self.assertEqual(len(in_january), 2)
        self.assertEqual(self.ledger.total_income_by_period(date(2024, 1, 1), date(2024, 1, 31)), 100)
        self.assertEqual(self.ledger.total_expense_by_period(date(2024, 1, 1), date(2024, 2, 1)), 30)

    def test_load_history_is_silent(self):
        ops = [Operation.income(100, Category("Salary")), Operation.expense(500, Category("Food"))]
        self.ledger.load_history(ops)
        self.assertEqual(self.ledger.balance, -400)
        self.assertEqual(len(self.ledger.drain_notifications()), 0)


class TestNotificationQueue(unittest.TestCase):
    def test_drain_empties_queue(self):
        queue = NotificationQueue()
        queue.push("one")
        queue.extend(["two", "three"])
        self.assertEqual(len(queue), 3)
        self.assertEqual(queue.peek(), ["one", "two", "three"])
        self.assertEqual(queue.drain(), ["one", "two", "three"])
        self.assertEqual(len(queue), 0)


class TestReports(unittest.TestCase):
    def setUp(self):
        """Reference scenario: 63000 income, 8300 expense, three budgets"""
        self.ledger = Ledger()
        for name, amount in (("Salary", 20000), ("Salary", 40000), ("Bonus", 3000)):
            self.ledger.append_operation(Operation.income(amount, self.ledger.get_category(name)))
        for name, amount in (("Food", 300), ("Food", 500), ("Entertainment", 3000),
                             ("Utilities", 3000), ("Taxi", 1500)):
            self.ledger.append_operation(Operation.expense(amount, self.ledger.get_category(name)))
        for name, limit in (("Food", 4000), ("Entertainment", 3000), ("Utilities", 2500)):
            self.ledger.set_budget(name, limit)

    def test_scenario_totals(self):
        self.assertEqual(self.ledger.total_income(), 63000)
        self.assertEqual(self.ledger.total_expense(), 8300)
        self.assertEqual(self.ledger.balance, 54700)

        food = self.ledger.get_budget("Food")
        self.assertEqual((food.spent, food.remaining), (800, 3200))
        utilities = self.ledger.get_budget("Utilities")
        self.assertEqual((utilities.spent, utilities.remaining), (3000, -500))
        self.assertTrue(utilities.is_exceeded)
        entertainment = self.ledger.get_budget("Entertainment")
        self.assertIs(entertainment.status, BudgetStatus.NORMAL)

    def test_summary_report(self):
        text = reports.summary_report(self.ledger)
        lines = text.splitlines()
        self.assertEqual(lines[0], "Total income: 63,000.0")
        self.assertIn("Salary: 60,000.0", lines)
        self.assertIn("Bonus: 3,000.0", lines)
        self.assertIn("Total expense: 8,300.0", lines)

        budget_lines = lines[lines.index("Budget by category:") + 1:]
        self.assertEqual(budget_lines, [
            "Utilities: 2,500.0, remaining budget: -500.0",
            "Food: 4,000.0, remaining budget: 3,200.0",
            "Entertainment: 3,000.0, remaining budget: 0.0",
        ])

    def test_summary_order_puts_others_last(self):
        self.ledger.set_budget("Taxi", 2000)
        self.ledger.set_budget("Bonus", 10)
        names = [b.category.name for b in reports.summary_budget_order(self.ledger)]
        self.assertEqual(names, ["Utilities", "Food", "Entertainment", "Bonus", "Taxi"])

    def test_budget_labels(self):
        text = reports.budgets_report(self.ledger)
        self.assertIn("Utilities: limit=2,500.0, spent=3,000.0, remaining=-500.0 (120%) [EXCEEDED]", text)
        self.assertIn("Food: limit=4,000.0, spent=800.0, remaining=3,200.0 (20%) [OK]", text)
        self.assertLess(text.index("Entertainment"), text.index("Food"))
        self.assertEqual(reports.budgets_report(Ledger()).splitlines()[3], "No budgets set")

    def test_statistics_sorted_by_amount(self):
        text = reports.statistics_report(self.ledger)
        self.assertLess(text.index("Entertainment"), text.index("Taxi"))
        self.assertLess(text.index("Taxi"), text.index("Food "))

        selected = reports.statistics_report(self.ledger, ["Food", "Ghost"])
        self.assertIn("Category not found: Ghost", selected)
        self.assertIn("800.0", selected)

    def test_statistics_for_period(self):
        text = reports.statistics_report(self.ledger, start=date(2000, 1, 1), end=date(2000, 1, 31))
        self.assertIn("STATISTICS for 01.01.2000 - 31.01.2000", text)
        self.assertIn("Income:  0.0", text)

    def test_operations_report(self):
        text = reports.operations_report(self.ledger.operations, category="Food")
        self.assertIn("Category: Food", text)
        self.assertTrue(text.endswith("Total operations: 8"))
        self.assertIn("No operations found", reports.operations_report([]))

    def test_detailed_report(self):
        text = reports.detailed_report(self.ledger)
        self.assertIn("DETAILED REPORT", text)
        self.assertIn("Expense to income ratio: 13.2%", text)
        self.assertIn("Healthy savings rate", text)
        status = text[text.index("Budget status:"):]
        self.assertLess(status.index("Utilities"), status.index("Entertainment"))
        self.assertLess(status.index("Entertainment"), status.index("Food"))


if __name__ == "__main__":
    unittest.main()

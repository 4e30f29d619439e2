import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path
from unittest.mock import patch

from ledger.config import LedgerSettings
from ledger.exceptions import (
    BudgetNotFoundError, CategoryAlreadyExistsError, CategoryNotFoundError,
    CredentialsInvalidError, DuplicateUserError, InsufficientFundsError,
    InvalidArgumentError, InvalidDateError, RecipientNotFoundError,
    SelfTransferError, UnauthenticatedError, UserNotFoundError
)
from ledger.manager import FinanceManager
from ledger.storage import LedgerStorage


class ManagerTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.settings = LedgerSettings()
        self.storage = LedgerStorage(
            data_file=self.tmp / "users_data.dat",
            export_dir=self.tmp / "exports",
            settings=self.settings,
        )
        self.manager = self.new_manager()

    def tearDown(self):
        self._tmp.cleanup()

    def new_manager(self):
        return FinanceManager(storage=self.storage, settings=self.settings)

    def login_as(self, login="alice", password="secret"):
        if login not in self.manager.users:
            self.manager.register(login, password)
        self.manager.login(login, password)
        self.manager.drain_notifications()


class TestSession(ManagerTestCase):
    def test_register_and_login(self):
        self.assertIn("Loaded 0 user(s)", self.manager.drain_notifications())
        owner = self.manager.register("alice", "secret")
        self.assertNotEqual(owner.password_hash, "secret")
        self.assertIn("Registration successful", self.manager.drain_notifications())

        self.manager.login("alice", "secret")
        self.assertTrue(self.manager.is_authenticated)
        self.assertIn("Welcome, alice!", self.manager.drain_notifications())

    def test_register_errors(self):
        self.manager.register("alice", "secret")
        with self.assertRaises(DuplicateUserError):
            self.manager.register("alice", "another")
        with self.assertRaises(CredentialsInvalidError):
            self.manager.register("ab", "secret")
        with self.assertRaises(CredentialsInvalidError):
            self.manager.register("carol", "abc")
        with self.assertRaises(CredentialsInvalidError):
            self.manager.register("   ", "secret")

    def test_login_errors(self):
        self.manager.register("alice", "secret")
        with self.assertRaises(UserNotFoundError):
            self.manager.login("bob", "secret")
        with self.assertRaises(CredentialsInvalidError):
            self.manager.login("alice", "wrong")
        self.assertFalse(self.manager.is_authenticated)

    def test_operations_need_login(self):
        with self.assertRaises(UnauthenticatedError):
            self.manager.add_income("Salary", 100)
        with self.assertRaises(UnauthenticatedError):
            self.manager.balance_report()
        with self.assertRaises(PermissionError):
            self.manager.transfer("bob", 10)

    def test_logout(self):
        self.login_as()
        self.manager.logout()
        self.assertFalse(self.manager.is_authenticated)
        self.assertEqual(self.manager.drain_notifications(), ["Goodbye, alice!"])
        self.manager.logout()
        self.assertEqual(self.manager.drain_notifications(), [])

    def test_registry_persists_between_sessions(self):
        self.login_as()
        self.manager.add_income("Salary", 1500)
        self.manager.add_expense("Food", 200)
        self.manager.logout()

        manager = self.new_manager()
        self.assertIn("Loaded 1 user(s)", manager.drain_notifications())
        manager.login("alice", "secret")
        self.assertEqual(manager.ledger.balance, 1300)

    def test_failed_save_keeps_change(self):
        self.login_as()
        with patch.object(self.storage, "save_registry", side_effect=OSError("disk full")):
            self.manager.add_income("Salary", 100)
        self.assertEqual(self.manager.ledger.balance, 100)


class TestOperations(ManagerTestCase):
    def setUp(self):
        super().setUp()
        self.login_as()

    def test_unknown_category_is_created(self):
        self.manager.add_expense("Books", 40, "novel", datetime(2024, 5, 1, 12, 0))
        messages = self.manager.drain_notifications()
        self.assertIn("Category not found, created new category: Books", messages)
        self.assertTrue(any(m.startswith("Expense added: [EXPENSE] Books") for m in messages))
        self.assertTrue(self.manager.ledger.has_category("books"))

    def test_notifications_reach_manager(self):
        self.manager.add_income("Salary", 10000)
        self.manager.set_budget("Food", 1000)
        self.manager.drain_notifications()
        self.manager.add_expense("Food", 850)
        messages = self.manager.drain_notifications()
        self.assertTrue(any(m.startswith("INFO: budget for 'Food' is almost used up") for m in messages))
        self.assertFalse(any("exceeded" in m for m in messages))

    def test_budgets(self):
        self.manager.add_expense("Food", 100)
        budget = self.manager.set_budget("Hobby", 300)
        self.assertEqual(budget.spent, 0)
        self.assertTrue(self.manager.ledger.has_category("Hobby"))

        self.assertEqual(self.manager.set_budget("Food", 500).spent, 100)
        self.assertEqual(self.manager.edit_budget("food", 50).limit, 50)

        self.manager.remove_budget("Food")
        with self.assertRaises(BudgetNotFoundError):
            self.manager.remove_budget("Food")
        with self.assertRaises(BudgetNotFoundError):
            self.manager.edit_budget("Food", 10)

    def test_add_category(self):
        self.manager.add_category("Books", "Paper and e-books")
        self.assertEqual(self.manager.ledger.get_category("books").description, "Paper and e-books")
        with self.assertRaises(CategoryAlreadyExistsError):
            self.manager.add_category("BOOKS")

    def test_rename_category(self):
        """Renaming keeps history and budget totals"""
        self.manager.add_income("Salary", 1000)
        self.manager.add_expense("Food", 120)
        self.manager.add_expense("Food", 80)
        self.manager.set_budget("Food", 400)

        self.manager.edit_category("Food", "Groceries")
        ledger = self.manager.ledger
        self.assertFalse(ledger.has_category("Food"))
        self.assertEqual(ledger.expense_by_category("Groceries"), 200)
        self.assertEqual(ledger.expense_by_category("Food"), 0)
        self.assertIsNone(ledger.get_budget("Food"))
        budget = ledger.get_budget("Groceries")
        self.assertEqual((budget.limit, budget.spent), (400, 200))
        self.assertEqual(ledger.get_category("Groceries").description, "Groceries and eating out")

    def test_rename_category_errors(self):
        with self.assertRaises(CategoryNotFoundError):
            self.manager.edit_category("Nothing", "Something")
        with self.assertRaises(CategoryAlreadyExistsError):
            self.manager.edit_category("Food", "taxi")

    def test_rename_case_only(self):
        category = self.manager.edit_category("Food", "FOOD", "Meals")
        self.assertIs(self.manager.ledger.get_category("food"), category)
        self.assertEqual(category.name, "FOOD")
        self.assertEqual(category.description, "Meals")

    def test_export_and_import(self):
        self.manager.add_income("Salary", 900)
        paths = self.manager.export_to_file("snap", "csv")
        self.assertEqual([p.name for p in paths], ["snap.csv", "snap_budgets.csv"])

        self.manager.export_to_file("snap", "json")
        self.manager.add_expense("Food", 400)
        self.manager.import_from_file("snap", "json")
        self.assertEqual(self.manager.ledger.balance, 900)
        self.assertEqual(len(self.manager.ledger.operations), 1)

        self.manager.export_to_file("snap")
        self.manager.add_income("Bonus", 100)
        self.manager.import_from_file("snap")
        self.assertEqual(self.manager.ledger.balance, 900)

    def test_unsupported_formats(self):
        with self.assertRaises(InvalidArgumentError):
            self.manager.export_to_file("snap", "xml")
        with self.assertRaises(InvalidArgumentError):
            self.manager.import_from_file("snap", "csv")
        with self.assertRaises(FileNotFoundError):
            self.manager.import_from_file("nowhere", "json")

    def test_run_example(self):
        summary = self.manager.run_example()
        self.assertTrue(summary.startswith("Total income: 63,000.0"))
        self.assertIn("Utilities: 2,500.0, remaining budget: -500.0", summary)
        self.assertIn("Food: 4,000.0, remaining budget: 3,200.0", summary)
        self.assertEqual(self.manager.ledger.balance, 54700)

    def test_operations_report_filters(self):
        self.manager.add_expense("Food", 10, "", datetime(2024, 1, 10, 8, 0))
        self.manager.add_expense("Taxi", 20, "", datetime(2024, 1, 11, 8, 0))
        self.manager.add_expense("Food", 30, "", datetime(2024, 2, 10, 8, 0))
        text = self.manager.operations_report(date(2024, 1, 1), date(2024, 1, 31), "food")
        self.assertTrue(text.endswith("Total operations: 1"))
        self.assertTrue(self.manager.operations_report().endswith("Total operations: 3"))


class TestTransfers(ManagerTestCase):
    def setUp(self):
        super().setUp()
        self.manager.register("bob", "hunter2")
        self.login_as()
        self.manager.add_income("Salary", 1000)
        self.bob = self.manager.users["bob"]

    def test_transfer_conserves_money(self):
        alice = self.manager.ledger
        before = alice.balance + self.bob.ledger.balance
        record = self.manager.transfer("bob", 250, "rent")

        self.assertEqual(alice.balance, 750)
        self.assertEqual(self.bob.ledger.balance, 250)
        self.assertEqual(alice.balance + self.bob.ledger.balance, before)
        self.assertEqual(self.manager.transfers, [record])

        debit = alice.operations[-1]
        credit = self.bob.ledger.operations[-1]
        self.assertTrue(debit.is_expense)
        self.assertEqual(debit.category.name, "Other")
        self.assertEqual(debit.description, "Transfer to bob: rent")
        self.assertTrue(credit.is_income)
        self.assertEqual(credit.description, "Transfer from alice: rent")

    def test_transfer_errors(self):
        with self.assertRaises(SelfTransferError):
            self.manager.transfer("alice", 10)
        with self.assertRaises(RecipientNotFoundError):
            self.manager.transfer("nobody", 10)
        with self.assertRaises(InvalidArgumentError):
            self.manager.transfer("bob", 0)

    def test_non_finite_transfer_changes_nothing(self):
        for amount in (float("nan"), float("inf")):
            with self.assertRaises(InvalidArgumentError):
                self.manager.transfer("bob", amount)
        self.assertEqual(self.manager.ledger.balance, 1000)
        self.assertEqual(self.bob.ledger.balance, 0)
        self.assertEqual(self.manager.transfers, [])

    def test_non_finite_operations_rejected(self):
        with self.assertRaises(InvalidArgumentError):
            self.manager.add_expense("Food", float("nan"))
        with self.assertRaises(InvalidArgumentError):
            self.manager.add_income("Salary", float("inf"))
        self.assertEqual(self.manager.ledger.balance, 1000)

    def test_insufficient_funds_changes_nothing(self):
        with self.assertRaises(InsufficientFundsError):
            self.manager.transfer("bob", 5000)
        self.assertEqual(self.manager.ledger.balance, 1000)
        self.assertEqual(self.bob.ledger.balance, 0)
        self.assertEqual(len(self.bob.ledger.operations), 0)
        self.assertEqual(self.manager.transfers, [])

    def test_transfer_recreates_misc_category(self):
        self.bob.ledger.remove_category("Other")
        self.manager.transfer("bob", 100)
        self.assertTrue(self.bob.ledger.has_category("Other"))


class TestParseDate(unittest.TestCase):
    def test_parse_date(self):
        self.assertEqual(FinanceManager.parse_date("05.03.2024"), date(2024, 3, 5))
        self.assertEqual(FinanceManager.parse_date(" 29.02.2024 "), date(2024, 2, 29))
        for text in ("2024-03-05", "31.02.2024", "", "5/3/2024", "1.1.2024", "5.03.2024", "05.3.2024"):
            with self.assertRaises(InvalidDateError):
                FinanceManager.parse_date(text)


if __name__ == "__main__":
    unittest.main()

import io
import tempfile
import unittest
from contextlib import redirect_stdout
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

from ledger.cli import LedgerCLI
from ledger.config import LedgerSettings
from ledger.manager import FinanceManager
from ledger.storage import LedgerStorage


class TestLedgerCLI(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        settings = LedgerSettings()
        storage = LedgerStorage(
            data_file=self.tmp / "users_data.dat",
            export_dir=self.tmp / "exports",
            settings=settings,
        )
        self.manager = FinanceManager(storage=storage, settings=settings)
        self.cli = LedgerCLI(self.manager)

    def tearDown(self):
        self._tmp.cleanup()

    def run_cmd(self, line):
        """Run one command the way cmdloop does and return what it printed"""
        out = io.StringIO()
        with redirect_stdout(out):
            stop = self.cli.onecmd(line)
            self.stop = self.cli.postcmd(stop, line)
        return out.getvalue()

    def login(self):
        self.run_cmd("register alice secret")
        self.run_cmd("login alice secret")

    def test_register_and_login(self):
        output = self.run_cmd("register alice secret")
        self.assertIn("Loaded 0 user(s)", output)
        self.assertIn("Registration successful", output)
        self.assertIn("Welcome, alice!", self.run_cmd("login alice secret"))

    def test_errors_do_not_stop_the_loop(self):
        output = self.run_cmd("add_income Salary 100")
        self.assertIn("Error: Login required", output)
        self.assertFalse(self.stop)

        self.login()
        self.assertIn("Error: Wrong password", self.run_cmd("login alice nope"))
        self.assertIn("Invalid input: 'abc' is not a number", self.run_cmd("add_expense Food abc"))
        self.assertIn("Usage: add_expense", self.run_cmd("add_expense Food"))
        self.assertIn("Error: Amount must be a positive number", self.run_cmd("add_expense Food nan"))
        self.assertIn("Error: Amount must be a positive number", self.run_cmd("add_income Salary inf"))
        self.assertEqual(self.manager.ledger.balance, 0)
        self.assertIn("Unknown command: fly", self.run_cmd("fly away"))

    def test_income_expense_and_balance(self):
        self.login()
        self.assertIn("Income added: [INCOME] Salary: 2,000.0", self.run_cmd("add_income Salary 2000 May salary"))
        self.run_cmd("add_expense Food 150 lunch with friends")
        self.assertEqual(self.manager.ledger.operations[-1].description, "lunch with friends")

        output = self.run_cmd("balance")
        self.assertIn("Current balance: 1,850.0", output)
        self.assertIn("Total expense:   150.0", output)

    def test_budget_commands(self):
        self.login()
        self.run_cmd("add_income Salary 10000")
        self.assertIn("Budget set: Food: limit=1,000.0", self.run_cmd("set_budget Food 1000"))
        output = self.run_cmd("add_expense Food 900")
        self.assertIn("INFO: budget for 'Food' is almost used up", output)

        self.run_cmd("edit_budget Food 500")
        self.assertIn("[EXCEEDED]", self.run_cmd("budgets"))
        self.run_cmd("remove_budget Food")
        self.assertIn("Error: No budget set for category: Food", self.run_cmd("remove_budget Food"))

    def test_category_commands(self):
        self.login()
        self.run_cmd("add_category Books paper and e-books")
        self.assertEqual(self.manager.ledger.get_category("books").description, "paper and e-books")
        self.assertIn("Error: Category already exists", self.run_cmd("add_category books"))

        output = self.run_cmd("edit_category Books Reading")
        self.assertIn("Category renamed: Books -> Reading", output)
        self.assertEqual(self.manager.ledger.get_category("Reading").description, "paper and e-books")

    def test_transfer_command(self):
        self.run_cmd("register bob hunter2")
        self.login()
        self.run_cmd("add_income Salary 500")
        self.assertIn("Transfer completed", self.run_cmd("transfer bob 200 dinner"))
        self.assertIn("Error: Insufficient funds", self.run_cmd("transfer bob 1000"))
        self.assertIn("Error: Cannot transfer money to yourself", self.run_cmd("transfer alice 1"))

    def test_stats_and_operations(self):
        self.login()
        self.manager.add_income("Salary", 3000, "", datetime(2024, 1, 5, 10, 0))
        self.manager.add_expense("Food", 200, "", datetime(2024, 1, 6, 10, 0))
        self.manager.add_expense("Taxi", 50, "", datetime(2024, 3, 1, 10, 0))

        output = self.run_cmd("stats 01.01.2024-31.01.2024")
        self.assertIn("STATISTICS for 01.01.2024 - 31.01.2024", output)
        self.assertIn("Expense: 200.0", output)

        self.assertIn("Selected categories:", self.run_cmd("stats Food Taxi"))
        self.assertIn("Error: Invalid date", self.run_cmd("stats 32.01.2024-01.02.2024"))

        output = self.run_cmd("operations date:01.01.2024-31.03.2024 category:Taxi")
        self.assertIn("Category: Taxi", output)
        self.assertIn("Total operations: 1", output)

    def test_month_shortcut(self):
        self.login()
        self.manager.add_expense("Food", 10)
        self.manager.add_expense("Food", 20, "", datetime(2000, 1, 1))
        self.assertIn("Total operations: 1", self.run_cmd("operations --month"))
        self.assertIn("STATISTICS for", self.run_cmd("stats --month"))

    def test_export_and_import(self):
        self.login()
        self.assertIn("No export files available", self.run_cmd("import"))
        self.run_cmd("add_income Salary 700")
        self.assertIn("Exported (json)", self.run_cmd("export snap json"))
        self.assertIn("Unsupported format", self.run_cmd("export snap xml"))
        self.assertIn("1. snap.json", self.run_cmd("import"))

        self.run_cmd("add_expense Food 100")
        with patch("builtins.input", return_value="no"):
            self.assertIn("Import cancelled", self.run_cmd("import snap json"))
        self.assertEqual(self.manager.ledger.balance, 600)

        with patch("builtins.input", return_value="yes"):
            self.assertIn("Imported 1 operation(s)", self.run_cmd("import snap json"))
        self.assertEqual(self.manager.ledger.balance, 700)

    def test_example_and_report(self):
        self.login()
        output = self.run_cmd("example")
        self.assertIn("Total income: 63,000.0", output)
        self.assertIn("Entertainment: 3,000.0, remaining budget: 0.0", output)
        self.assertIn("DETAILED REPORT", self.run_cmd("report"))

    def test_exit(self):
        self.login()
        output = self.run_cmd("exit")
        self.assertTrue(self.stop)
        self.assertIn("Goodbye, alice!", output)
        self.assertIn("Goodbye!", output)
        self.assertFalse(self.manager.is_authenticated)


if __name__ == "__main__":
    unittest.main()

import csv
import json
import pickle
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from ledger.config import LedgerSettings
from ledger.exceptions import ExportFileNotFoundError, ImportParseError
from ledger.logic import Ledger
from ledger.models import Operation, Owner
from ledger.storage import (
    BUDGETS_CSV_HEADER, OPERATIONS_CSV_HEADER, LedgerStorage
)


def sample_ledger():
    ledger = Ledger()
    ledger.append_operation(Operation.income(5000, ledger.get_category("Salary"), "June salary",
                                             datetime(2024, 6, 1, 9, 0)))
    ledger.append_operation(Operation.expense(300, ledger.get_category("Food"), "groceries",
                                              datetime(2024, 6, 2, 18, 30)))
    ledger.append_operation(Operation.expense(150, ledger.get_category("Taxi"), "",
                                              datetime(2024, 6, 3, 23, 5)))
    ledger.set_budget("Food", 1500)
    ledger.set_budget("Taxi", 100)
    return ledger


class TestLedgerStorage(unittest.TestCase):
    def setUp(self):
        """Every test works inside its own temporary directory"""
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.storage = LedgerStorage(
            data_file=self.tmp / "users_data.dat",
            export_dir=self.tmp / "exports",
            settings=LedgerSettings(),
        )

    def tearDown(self):
        self._tmp.cleanup()

    # ===== REGISTRY =====
    def test_missing_registry_is_empty(self):
        self.assertEqual(self.storage.load_registry(), {})

    def test_registry_round_trip(self):
        owner = Owner("alice", "hashed")
        owner.ledger.append_operation(Operation.expense(10, owner.ledger.get_category("Food")))
        self.assertGreater(len(owner.ledger.notifications), 0)

        self.storage.save_registry({"alice": owner})
        loaded = self.storage.load_registry()

        self.assertEqual(list(loaded), ["alice"])
        restored = loaded["alice"].ledger
        self.assertEqual(restored.balance, -10)
        self.assertEqual(len(restored.operations), 1)
        # pending notices are not persisted
        self.assertEqual(restored.drain_notifications(), [])

    def test_corrupt_registry_is_empty(self):
        self.storage.data_file.write_bytes(b"\x00\x01 not a pickle")
        self.assertEqual(self.storage.load_registry(), {})

        with open(self.storage.data_file, "wb") as f:
            pickle.dump(["not", "a", "dict"], f)
        self.assertEqual(self.storage.load_registry(), {})

    # ===== BINARY =====
    def test_binary_round_trip(self):
        ledger = sample_ledger()
        path = self.storage.export_binary(ledger, "backup")
        self.assertEqual(path, self.tmp / "exports" / "backup.dat")

        restored = self.storage.import_binary("backup")
        self.assertAlmostEqual(restored.balance, ledger.balance)
        self.assertEqual(len(restored.operations), 3)
        self.assertEqual(restored.get_budget("food").spent, 300)

    def test_binary_import_rejects_other_content(self):
        (self.tmp / "exports").mkdir()
        garbage = self.tmp / "exports" / "garbage.dat"
        garbage.write_bytes(b"\x00\x01\x02")
        with self.assertRaises(ImportParseError):
            self.storage.import_binary("garbage")

        with open(self.tmp / "exports" / "wrong.dat", "wb") as f:
            pickle.dump({"balance": 1}, f)
        with self.assertRaises(ImportParseError):
            self.storage.import_binary("wrong")

    # ===== CSV =====
    def test_csv_export(self):
        ledger = sample_ledger()
        path = self.storage.export_csv(ledger, "june.csv")
        self.assertEqual(path.name, "june.csv")

        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        self.assertEqual(rows[0], OPERATIONS_CSV_HEADER)
        self.assertEqual(rows[1], ["Income", "Salary", "5000.00", "2024-06-01T09:00:00", "June salary"])
        self.assertEqual(rows[3][:3], ["Expense", "Taxi", "150.00"])
        self.assertEqual(len(rows), 4)

    def test_budgets_csv_export(self):
        ledger = sample_ledger()
        path = self.storage.export_budgets_csv(ledger, "june.csv")
        self.assertEqual(path, self.tmp / "exports" / "june_budgets.csv")

        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        self.assertEqual(rows[0], BUDGETS_CSV_HEADER)
        self.assertEqual(rows[1], ["Food", "1500.00", "300.00", "1200.00", "20.0%"])
        self.assertEqual(rows[2], ["Taxi", "100.00", "150.00", "-50.00", "150.0%"])

    # ===== JSON =====
    def test_json_document_shape(self):
        path = self.storage.export_json(sample_ledger(), "doc")
        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        for key in ("balance", "totalIncome", "totalExpense", "operations", "categories", "budgets"):
            self.assertIn(key, data)
        self.assertEqual(data["operations"][0]["type"], "INCOME")
        self.assertEqual(data["operations"][0]["dateTime"], "2024-06-01T09:00:00")
        budget = next(b for b in data["budgets"] if b["category"] == "Taxi")
        self.assertTrue(budget["exceeded"])
        self.assertIn("usagePercentage", budget)

    def test_json_round_trip(self):
        ledger = sample_ledger()
        self.storage.export_json(ledger, "round")
        restored = self.storage.import_json("round")

        self.assertAlmostEqual(restored.balance, ledger.balance, delta=0.01)
        self.assertEqual(len(restored.operations), len(ledger.operations))
        self.assertEqual(set(restored.categories), set(ledger.categories))
        self.assertEqual(set(restored.budgets), set(ledger.budgets))
        for key, budget in ledger.budgets.items():
            self.assertAlmostEqual(restored.budgets[key].limit, budget.limit, delta=0.01)
            self.assertAlmostEqual(restored.budgets[key].spent, budget.spent, delta=0.01)

    def test_json_import_fills_gaps(self):
        """Nanosecond timestamps, null lists and unknown categories are accepted"""
        document = {
            "operations": [{
                "type": "INCOME",
                "category": "Freelance",
                "amount": 500.0,
                "dateTime": "2024-03-01T10:15:30.123456789",
                "description": "gig",
            }],
            "categories": None,
            "budgets": [{"category": "Freelance", "limit": 1000, "spent": 0}],
        }
        path = self.tmp / "gaps.json"
        path.write_text(json.dumps(document), encoding="utf-8")

        ledger = self.storage.import_json(str(path))
        self.assertEqual(ledger.balance, 500)
        self.assertTrue(ledger.has_category("freelance"))
        self.assertEqual(ledger.get_category("Freelance").description, "")
        self.assertEqual(ledger.operations[0].timestamp, datetime(2024, 3, 1, 10, 15, 30, 123456))
        self.assertEqual(ledger.get_budget("Freelance").limit, 1000)

    def test_json_import_errors(self):
        bad = {
            "broken": "{not json",
            "zero": json.dumps({"operations": [{"type": "EXPENSE", "category": "Food",
                                                "amount": 0, "dateTime": "2024-01-01T00:00:00"}]}),
            "kind": json.dumps({"operations": [{"type": "TRANSFER", "category": "Food",
                                                "amount": 5, "dateTime": "2024-01-01T00:00:00"}]}),
            "nan": '{"operations": [{"type": "EXPENSE", "category": "Food", "amount": NaN, '
                   '"dateTime": "2024-01-01T00:00:00"}]}',
            "limit": json.dumps({"budgets": [{"category": "Food", "limit": -100, "spent": 0}]}),
        }
        for name, text in bad.items():
            path = self.tmp / f"{name}.json"
            path.write_text(text, encoding="utf-8")
            with self.assertRaises(ImportParseError, msg=name):
                self.storage.import_json(str(path))

    # ===== PATHS =====
    def test_export_path_resolution(self):
        self.assertEqual(self.storage.export_path("a", ".json"), self.tmp / "exports" / "a.json")
        self.assertEqual(self.storage.export_path("a.json", ".json"), self.tmp / "exports" / "a.json")

        nested = self.storage.export_path(str(self.tmp / "nested" / "dir" / "b"), ".dat")
        self.assertEqual(nested, self.tmp / "nested" / "dir" / "b.dat")
        self.assertTrue(nested.parent.is_dir())

    def test_find_import_file(self):
        with self.assertRaises(ExportFileNotFoundError):
            self.storage.find_import_file("missing", ".json")
        with self.assertRaises(FileNotFoundError):
            self.storage.import_binary("missing")

        literal = self.tmp / "plain.json"
        literal.write_text("{}", encoding="utf-8")
        self.assertEqual(self.storage.find_import_file(str(literal), ".json"), literal)
        self.assertEqual(self.storage.find_import_file(str(self.tmp / "plain"), ".json"), literal)

    def test_list_exports(self):
        self.assertEqual(self.storage.list_exports(), [])
        ledger = sample_ledger()
        self.storage.export_binary(ledger, "b")
        self.storage.export_json(ledger, "a")
        self.storage.export_csv(ledger, "c")
        self.assertEqual(self.storage.list_exports(), ["a.json", "b.dat"])


if __name__ == "__main__":
    unittest.main()

import csv
import json
import pickle
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ledger.config import LedgerSettings, get_settings
from ledger.exceptions import ExportFileNotFoundError, ImportParseError, InvalidArgumentError
from ledger.log import get_logger
from ledger.logic import Ledger
from ledger.models import Owner
from ledger.schemas import LedgerDocument


logger = get_logger(__name__)

BINARY_EXT = ".dat"
CSV_EXT = ".csv"
JSON_EXT = ".json"

OPERATIONS_CSV_HEADER = ["Type", "Category", "Amount", "Date", "Description"]
BUDGETS_CSV_HEADER = ["Category", "Limit", "Spent", "Remaining", "UsagePercentage"]

_UNPICKLE_ERRORS = (pickle.UnpicklingError, EOFError, AttributeError, ImportError,
                    IndexError, TypeError, ValueError)


class LedgerStorage:
    """Reads and writes ledgers and the owner registry.

    Ledgers can be exported as a binary snapshot, CSV or JSON; binary and
    JSON can be imported back. The registry is always a binary snapshot.
    """

    def __init__(self, data_file: Optional[Path] = None, export_dir: Optional[Path] = None,
                 settings: Optional[LedgerSettings] = None):
        settings = settings or get_settings()
        self.data_file = Path(data_file or settings.data_file)
        self.export_dir = Path(export_dir or settings.export_dir)

    # ===== REGISTRY =====
    def save_registry(self, owners: dict[str, Owner]) -> None:
        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.data_file, "wb") as f:
            pickle.dump(owners, f)
        logger.info("registry_saved", path=str(self.data_file), owners=len(owners))

    def load_registry(self) -> dict[str, Owner]:
        """Missing file means an empty registry; an unreadable one is logged."""
        if not self.data_file.exists():
            return {}
        try:
            with open(self.data_file, "rb") as f:
                owners = pickle.load(f)
        except (OSError,) + _UNPICKLE_ERRORS as e:
            logger.error("registry_load_failed", path=str(self.data_file), error=str(e))
            return {}
        if not isinstance(owners, dict):
            logger.error("registry_load_failed", path=str(self.data_file),
                         error=f"unexpected type {type(owners).__name__}")
            return {}
        logger.info("registry_loaded", path=str(self.data_file), owners=len(owners))
        return owners

    # ===== BINARY =====
    def export_binary(self, ledger: Ledger, filename: str) -> Path:
        path = self.export_path(filename, BINARY_EXT)
        with open(path, "wb") as f:
            pickle.dump(ledger, f)
        logger.info("ledger_exported", format="binary", path=str(path))
        return path

    def import_binary(self, filename: str) -> Ledger:
        path = self.find_import_file(filename, BINARY_EXT)
        try:
            with open(path, "rb") as f:
                ledger = pickle.load(f)
        except _UNPICKLE_ERRORS as e:
            raise ImportParseError(f"Cannot read binary snapshot {path}: {e}") from e
        if not isinstance(ledger, Ledger):
            raise ImportParseError(f"{path} does not contain a ledger snapshot")
        logger.info("ledger_imported", format="binary", path=str(path))
        return ledger

    # ===== CSV =====
    def export_csv(self, ledger: Ledger, filename: str) -> Path:
        path = self.export_path(filename, CSV_EXT)
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(OPERATIONS_CSV_HEADER)
            for op in ledger.operations:
                writer.writerow([
                    op.kind.label,
                    op.category.name,
                    f"{op.amount:.2f}",
                    op.timestamp.isoformat(),
                    op.description,
                ])
        logger.info("ledger_exported", format="csv", path=str(path), rows=len(ledger.operations))
        return path

    def export_budgets_csv(self, ledger: Ledger, filename: str) -> Path:
        """Written beside the operations file as ``<stem>_budgets.csv``."""
        stem = filename[:-len(CSV_EXT)] if filename.endswith(CSV_EXT) else filename
        path = self.export_path(f"{stem}_budgets", CSV_EXT)
        budgets = sorted(ledger.budgets.values(), key=lambda b: b.category.name.lower())
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(BUDGETS_CSV_HEADER)
            for budget in budgets:
                writer.writerow([
                    budget.category.name,
                    f"{budget.limit:.2f}",
                    f"{budget.spent:.2f}",
                    f"{budget.remaining:.2f}",
                    f"{budget.usage_percentage:.1f}%",
                ])
        logger.info("budgets_exported", format="csv", path=str(path), rows=len(budgets))
        return path

    # ===== JSON =====
    def export_json(self, ledger: Ledger, filename: str) -> Path:
        path = self.export_path(filename, JSON_EXT)
        document = LedgerDocument.from_ledger(ledger)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(document.model_dump(mode="json", by_alias=True), f, indent=2, ensure_ascii=False)
        logger.info("ledger_exported", format="json", path=str(path))
        return path

    def import_json(self, filename: str) -> Ledger:
        path = self.find_import_file(filename, JSON_EXT)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            ledger = LedgerDocument.model_validate(data).to_ledger()
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError, InvalidArgumentError) as e:
            raise ImportParseError(f"Cannot import {path}: {e}") from e
        logger.info("ledger_imported", format="json", path=str(path),
                    operations=len(ledger.operations))
        return ledger

    # ===== PATHS =====
    def export_path(self, filename: str, extension: str) -> Path:
        """Append the extension if missing; bare names land in export_dir."""
        if not filename.endswith(extension):
            filename += extension
        path = Path(filename)
        if path.parent == Path("."):
            path = self.export_dir / path
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def find_import_file(self, filename: str, extension: str) -> Path:
        """First existing of: name, name + extension, export_dir/name + extension."""
        candidates = [
            Path(filename),
            Path(filename + extension),
            self.export_dir / (filename + extension),
        ]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        raise ExportFileNotFoundError(f"File not found: {filename}")

    def list_exports(self) -> list[str]:
        if not self.export_dir.is_dir():
            return []
        return sorted(
            f.name for f in self.export_dir.iterdir()
            if f.suffix in (BINARY_EXT, JSON_EXT)
        )

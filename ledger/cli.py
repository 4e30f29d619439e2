import cmd
from datetime import date
from typing import Optional
from dateutil.relativedelta import relativedelta
from ledger.exceptions import FinanceError
from ledger.manager import EXPORT_FORMATS, IMPORT_FORMATS, FinanceManager


class LedgerCLI(cmd.Cmd):
    prompt = "(ledger) "

    def __init__(self, manager: Optional[FinanceManager] = None):
        super().__init__()
        self.manager = manager or FinanceManager()
        self.intro = "Welcome to Finance Manager. Type 'help' for commands."

    # ===== LOOP HOOKS =====
    def onecmd(self, line):
        try:
            return super().onecmd(line)
        except FinanceError as e:
            print(f"Error: {e}")
        except ValueError as e:
            print(f"Invalid input: {e}")
        return False

    def postcmd(self, stop, line):
        self.show_notifications()
        return stop

    def preloop(self):
        self.show_notifications()

    def emptyline(self):
        pass

    def default(self, line):
        print(f"Unknown command: {line.split()[0]}. Type 'help' for the list of commands.")

    def show_notifications(self):
        for message in self.manager.drain_notifications():
            print(message)

    # ===== AUTHENTICATION =====
    def do_register(self, arg):
        """Register a new user: register <login> <password>"""
        args = arg.split(maxsplit=1)
        if len(args) != 2:
            print("Usage: register <login> <password>")
            return
        self.manager.register(args[0], args[1])

    def do_login(self, arg):
        """Log in: login <login> <password>"""
        args = arg.split(maxsplit=1)
        if len(args) != 2:
            print("Usage: login <login> <password>")
            return
        self.manager.login(args[0], args[1])

    def do_logout(self, arg):
        """Log out and save: logout"""
        self.manager.logout()

    # ===== OPERATIONS =====
    def do_add_income(self, arg):
        """Add income: add_income <category> <amount> [description]"""
        args = self._parse_money_args(arg, "add_income <category> <amount> [description]")
        if args:
            self.manager.add_income(*args)

    def do_add_expense(self, arg):
        """Add expense: add_expense <category> <amount> [description]"""
        args = self._parse_money_args(arg, "add_expense <category> <amount> [description]")
        if args:
            self.manager.add_expense(*args)

    def do_transfer(self, arg):
        """Send money to another user: transfer <login> <amount> [description]"""
        args = self._parse_money_args(arg, "transfer <login> <amount> [description]")
        if args:
            self.manager.transfer(*args)

    # ===== CATEGORIES =====
    def do_add_category(self, arg):
        """Add a category: add_category <name> [description]"""
        args = arg.split(maxsplit=1)
        if not args:
            print("Usage: add_category <name> [description]")
            return
        self.manager.add_category(args[0], args[1] if len(args) > 1 else "")

    def do_edit_category(self, arg):
        """Rename a category or change its description: edit_category <old> <new> [description]"""
        args = arg.split(maxsplit=2)
        if len(args) < 2:
            print("Usage: edit_category <old> <new> [description]")
            return
        self.manager.edit_category(args[0], args[1], args[2] if len(args) > 2 else None)

    # ===== BUDGETS =====
    def do_set_budget(self, arg):
        """Set a budget: set_budget <category> <limit>"""
        args = self._parse_limit_args(arg, "set_budget <category> <limit>")
        if args:
            self.manager.set_budget(*args)

    def do_edit_budget(self, arg):
        """Change a budget limit: edit_budget <category> <limit>"""
        args = self._parse_limit_args(arg, "edit_budget <category> <limit>")
        if args:
            self.manager.edit_budget(*args)

    def do_remove_budget(self, arg):
        """Remove a budget: remove_budget <category>"""
        if not arg.strip():
            print("Usage: remove_budget <category>")
            return
        self.manager.remove_budget(arg.strip())

    # ===== REPORTS =====
    def do_balance(self, arg):
        """Show balance and totals: balance"""
        print(self.manager.balance_report())

    def do_budgets(self, arg):
        """Show all budgets: budgets"""
        print(self.manager.budgets_report())

    def do_report(self, arg):
        """Show the detailed report: report"""
        print(self.manager.detailed_report())

    def do_stats(self, arg):
        """
        Statistics by category:
        stats [category ...] [DD.MM.YYYY-DD.MM.YYYY] [--month]

        Examples:
            stats                         # all categories, all time
            stats Food Taxi               # selected categories
            stats 01.01.2024-31.01.2024   # one period
            stats --month                 # last month up to today
        """
        categories = []
        start = end = None
        for part in arg.split():
            if part == "--month":
                start, end = self._last_month()
            elif "-" in part and part.count(".") == 4:
                start, end = self._parse_range(part)
            else:
                categories.append(part)
        print(self.manager.statistics_report(categories, start, end))

    def do_operations(self, arg):
        """
        List operations, newest first:
        operations [date:DD.MM.YYYY-DD.MM.YYYY] [category:NAME] [--month]
        """
        start = end = None
        category = None
        for part in arg.split():
            if part.startswith("date:"):
                start, end = self._parse_range(part[len("date:"):])
            elif part.startswith("category:"):
                category = part[len("category:"):]
            elif part == "--month":
                start, end = self._last_month()
        print(self.manager.operations_report(start, end, category))

    def do_example(self, arg):
        """Load the reference example data and print the summary: example"""
        print(self.manager.run_example())

    # ===== DATA MANAGEMENT =====
    def do_export(self, arg):
        """Export the ledger: export <name> [binary|csv|json]"""
        args = arg.split()
        if not args:
            print("Usage: export <name> [binary|csv|json]")
            return
        fmt = args[1].lower() if len(args) > 1 else "binary"
        if fmt not in EXPORT_FORMATS:
            print("Unsupported format, use: binary, csv or json")
            return
        self.manager.export_to_file(args[0], fmt)

    def do_import(self, arg):
        """Replace the ledger from a file: import [name] [binary|json]"""
        args = arg.split()
        if not args:
            exports = self.manager.storage.list_exports()
            if not exports:
                print("No export files available")
                return
            print("Available exports:")
            for i, name in enumerate(exports, 1):
                print(f"{i}. {name}")
            print("Usage: import <name> [binary|json]")
            return

        fmt = args[1].lower() if len(args) > 1 else "binary"
        if fmt not in IMPORT_FORMATS:
            print("Unsupported format, use: binary or json")
            return
        answer = input("Current data will be replaced. Continue? (yes/no): ").strip().lower()
        if answer not in ("yes", "y"):
            print("Import cancelled")
            return
        self.manager.import_from_file(args[0], fmt)

    # ===== UTILITIES =====
    def do_exit(self, arg):
        """Save and exit the program"""
        self.manager.logout()
        self.show_notifications()
        print("Goodbye!")
        return True

    do_EOF = do_exit

    # ===== HELPERS =====
    @staticmethod
    def _parse_money_args(arg, usage):
        """Parse '<name> <amount> [description]' into (name, amount, description)"""
        args = arg.split(maxsplit=2)
        if len(args) < 2:
            print(f"Usage: {usage}")
            return None
        try:
            amount = float(args[1])
        except ValueError:
            raise ValueError(f"'{args[1]}' is not a number")
        return args[0], amount, args[2] if len(args) > 2 else ""

    @staticmethod
    def _parse_limit_args(arg, usage):
        args = arg.split()
        if len(args) != 2:
            print(f"Usage: {usage}")
            return None
        try:
            return args[0], float(args[1])
        except ValueError:
            raise ValueError(f"'{args[1]}' is not a number")

    def _parse_range(self, text):
        """Parse 'DD.MM.YYYY-DD.MM.YYYY' into a (start, end) pair"""
        parts = text.split("-")
        if len(parts) != 2:
            raise ValueError("Date range must look like DD.MM.YYYY-DD.MM.YYYY")
        return self.manager.parse_date(parts[0]), self.manager.parse_date(parts[1])

    @staticmethod
    def _last_month():
        today = date.today()
        return today - relativedelta(months=1), today


if __name__ == "__main__":
    LedgerCLI().cmdloop()

from ledger.cli import LedgerCLI
from ledger.log import configure_logging
from ledger.manager import FinanceManager


def main():
    configure_logging()
    LedgerCLI(FinanceManager()).cmdloop()


if __name__ == "__main__":
    main()

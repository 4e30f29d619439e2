"""Domain-specific exceptions for the ledger, storage and session layers."""


class FinanceError(Exception):
    """Base class for every error reported to the command layer."""


class InvalidArgumentError(FinanceError, ValueError):
    """Raised for a non-positive amount or an empty category name."""


class DuplicateUserError(FinanceError):
    """Raised when registering a login that is already taken."""


class CredentialsInvalidError(FinanceError):
    """Raised when credentials fail the policy or the password is wrong."""


class UserNotFoundError(FinanceError, LookupError):
    pass


class CategoryNotFoundError(FinanceError, LookupError):
    pass


class CategoryAlreadyExistsError(FinanceError):
    pass


class BudgetNotFoundError(FinanceError, LookupError):
    pass


class SelfTransferError(FinanceError):
    pass


class InsufficientFundsError(FinanceError):
    pass


class RecipientNotFoundError(FinanceError, LookupError):
    pass


class ExportFileNotFoundError(FinanceError, FileNotFoundError):
    """Raised when no candidate path for an import exists."""


class ImportParseError(FinanceError, ValueError):
    """Raised when an import file cannot be turned back into a ledger."""


class InvalidDateError(FinanceError, ValueError):
    pass


class UnauthenticatedError(FinanceError, PermissionError):
    """Raised when a ledger operation is attempted with nobody logged in."""

"""Domain errors raised by the expense service."""
from typing import Optional


class ExpenseError(Exception):
    """Base class for expense service errors."""


class ExpenseValidationError(ExpenseError, ValueError):
    """Client input broke a business rule."""


class InvalidDescriptionError(ExpenseValidationError):
    def __init__(self):
        super().__init__("expense description cannot be empty")


class InvalidAmountError(ExpenseValidationError):
    def __init__(self):
        super().__init__("expense amount needs to be greater than 0")


class InvalidOccurredAtError(ExpenseValidationError):
    def __init__(self):
        super().__init__("expense date needs to be after 1970-01-01T00:00:00Z")


class InvalidIDError(ExpenseValidationError):
    def __init__(self):
        super().__init__("id needs to be greater than 0")


class UnknownIDError(ExpenseError, LookupError):
    """The id is well formed but no record uses it."""

    def __init__(self, expense_id: int):
        super().__init__(f"id {expense_id} does not have a valid record")
        self.expense_id = expense_id


class InvalidTimeRangeError(ExpenseValidationError):
    """A summarization modifier could not be parsed or lies outside the allowed range."""

    def __init__(self, provided_value: str, cause: Optional[Exception] = None):
        if cause is not None:
            message = f"invalid time range of '{provided_value}' due to: '{cause}'"
        else:
            message = f"invalid time range of '{provided_value}'"
        super().__init__(message)
        self.provided_value = provided_value
        self.cause = cause

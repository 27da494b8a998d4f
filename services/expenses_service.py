"""Service layer for handling expense-related logic."""
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple, Union

from models.expense import Expense, ExpenseSummary, SummaryRange
from repositories.base import ExpenseRepository, RecordNotFoundError
from services.errors import (
    InvalidAmountError,
    InvalidDescriptionError,
    InvalidIDError,
    InvalidOccurredAtError,
    InvalidTimeRangeError,
    UnknownIDError,
)

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ALL_EXPENSES_LABEL = "All Expenses"
# largest amount the storage backends can hold (signed 64-bit)
MAX_AMOUNT = 2**63 - 1

# Fixed English names; calendar.month_name follows the process locale
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

YEAR_PATTERN = re.compile(r"[0-9]{4}")
YEAR_MONTH_PATTERN = re.compile(r"([0-9]{4})-([0-9]{1,2})")

# (year, month)
YearMonth = Tuple[int, int]


def _as_utc(moment: datetime) -> datetime:
    """Naive datetimes are taken to already be in UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _check_description(description: str) -> None:
    if not description:
        raise InvalidDescriptionError()


def _check_amount(amount: int) -> None:
    if amount <= 0 or amount > MAX_AMOUNT:
        raise InvalidAmountError()


def _check_occurred_at(occurred_at: datetime) -> None:
    if occurred_at is None or _as_utc(occurred_at) <= UNIX_EPOCH:
        raise InvalidOccurredAtError()


def _check_id(expense_id: int) -> None:
    if expense_id <= 0:
        raise InvalidIDError()


def _month_label(year_month: YearMonth) -> str:
    year, month = year_month
    return f"{MONTH_NAMES[month - 1]} of {year}"


def _ensure_after_epoch(provided: str, boundary: datetime) -> None:
    if boundary < UNIX_EPOCH:
        raise InvalidTimeRangeError(provided, ValueError(f"{boundary.date().isoformat()} is before the Unix epoch"))


def parse_custom_month(provided: str, original: Optional[str] = None) -> YearMonth:
    """
    Parse a "<year>-<month>" modifier such as "2025-10". The year has four
    digits, the month one or two.

    `original` is the full modifier reported in errors when `provided` is
    one half of a range.
    """
    reported = original if original is not None else provided
    match = YEAR_MONTH_PATTERN.fullmatch(provided.strip())
    if match is None:
        raise InvalidTimeRangeError(reported, ValueError("expected '<YYYY>-<MM>'"))
    year, month = int(match.group(1)), int(match.group(2))

    if month < 1 or month > 12:
        raise InvalidTimeRangeError(reported)

    try:
        boundary = datetime(year, month, 1, tzinfo=timezone.utc)
    except (ValueError, OverflowError) as e:
        raise InvalidTimeRangeError(reported, e) from e
    _ensure_after_epoch(reported, boundary)
    return year, month


def parse_custom_year(provided: str) -> int:
    """Parse a four digit year modifier such as "2023"."""
    if YEAR_PATTERN.fullmatch(provided.strip()) is None:
        raise InvalidTimeRangeError(provided, ValueError("expected a four digit year"))
    year = int(provided.strip())
    try:
        boundary = datetime(year, 1, 1, tzinfo=timezone.utc)
    except (ValueError, OverflowError) as e:
        raise InvalidTimeRangeError(provided, e) from e
    _ensure_after_epoch(provided, boundary)
    return year


def parse_custom_range(provided: str) -> Tuple[YearMonth, YearMonth]:
    """
    Parse "<year>-<month>,<year>-<month>" into an inclusive pair of months,
    e.g. "2023-09,2024-09".
    """
    start_str, sep, end_str = provided.partition(",")
    if not sep:
        raise InvalidTimeRangeError(provided)
    start = parse_custom_month(start_str, original=provided)
    end = parse_custom_month(end_str, original=provided)
    if start > end:
        raise InvalidTimeRangeError(provided, ValueError("range start is after range end"))
    return start, end


class ExpenseService:
    """
    Business rules for expenses.

    Every mutation is validated here before it reaches the repository.
    Validation order for create/update is description, amount, occurred_at;
    the first broken rule is raised.
    """

    def __init__(self, repository: ExpenseRepository, clock: Optional[Callable[[], datetime]] = None):
        self.repository = repository
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _now(self) -> datetime:
        return _as_utc(self._clock())

    @staticmethod
    def _validate_fields(occurred_at: datetime, description: str, amount: int) -> None:
        _check_description(description)
        _check_amount(amount)
        _check_occurred_at(occurred_at)

    async def create_expense(self, occurred_at: datetime, description: str, amount: int) -> Expense:
        self._validate_fields(occurred_at, description, amount)
        expense = Expense(
            amount=amount,
            occurred_at=_as_utc(occurred_at),
            description=description,
        )
        return await self.repository.create(expense)

    async def get_all_expenses(self) -> List[Expense]:
        return await self.repository.get_all()

    async def get_expense_by_id(self, expense_id: int) -> Expense:
        _check_id(expense_id)
        try:
            return await self.repository.get_by_id(expense_id)
        except RecordNotFoundError as e:
            raise UnknownIDError(expense_id) from e

    async def update_expense(self, expense_id: int, occurred_at: datetime, description: str, amount: int) -> None:
        _check_id(expense_id)
        self._validate_fields(occurred_at, description, amount)
        expense = Expense(
            id=expense_id,
            amount=amount,
            occurred_at=_as_utc(occurred_at),
            description=description,
        )
        try:
            await self.repository.update(expense)
        except RecordNotFoundError as e:
            raise UnknownIDError(expense_id) from e

    async def delete_expense(self, expense_id: int) -> None:
        _check_id(expense_id)
        try:
            await self.repository.delete(expense_id)
        except RecordNotFoundError as e:
            raise UnknownIDError(expense_id) from e

    def _range_filter(
        self, range_kind: SummaryRange, modifier: str
    ) -> Tuple[str, Optional[Callable[[datetime], bool]]]:
        """Return the label for `range_kind` and a predicate on UTC occurrence times (None keeps everything)."""
        if range_kind == SummaryRange.ALL_TIME:
            return ALL_EXPENSES_LABEL, None

        if range_kind == SummaryRange.THIS_MONTH:
            now = self._now()
            return "This Month", lambda at: (at.year, at.month) == (now.year, now.month)

        if range_kind == SummaryRange.CUSTOM_MONTH:
            target = parse_custom_month(modifier)
            return f"Custom Month: {_month_label(target)}", lambda at: (at.year, at.month) == target

        if range_kind == SummaryRange.THIS_YEAR:
            now = self._now()
            return "This Year", lambda at: at.year == now.year

        if range_kind == SummaryRange.CUSTOM_YEAR:
            year = parse_custom_year(modifier)
            return f"Custom Year: {year}", lambda at: at.year == year

        if range_kind == SummaryRange.CUSTOM_RANGE:
            start, end = parse_custom_range(modifier)
            label = f"Custom Range: {_month_label(start)} to {_month_label(end)}"
            return label, lambda at: start <= (at.year, at.month) <= end

        raise InvalidTimeRangeError(str(range_kind))

    async def summarize_expenses(
        self, range_kind: Union[SummaryRange, str], modifier: str = ""
    ) -> ExpenseSummary:
        """
        Sum the amounts of every expense that falls inside the requested window.

        Raises:
            InvalidTimeRangeError: unknown range kind or malformed modifier
        """
        try:
            range_kind = SummaryRange(range_kind)
        except ValueError as e:
            raise InvalidTimeRangeError(str(range_kind), e) from e

        modifier = modifier or ""
        # parse the modifier before touching storage
        label, keep = self._range_filter(range_kind, modifier)

        expenses = await self.repository.get_all()
        if keep is not None:
            expenses = [exp for exp in expenses if keep(_as_utc(exp.occurred_at))]

        return ExpenseSummary(range_label=label, total=sum(exp.amount for exp in expenses))

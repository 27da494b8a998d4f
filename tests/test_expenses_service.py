"""Tests for ExpenseService validation, CRUD delegation and summaries."""
from datetime import datetime, timedelta, timezone

import pytest

from models.expense import ExpenseSummary, SummaryRange
from repositories.base import StorageError
from repositories.memory import InMemoryExpenseRepository
from services.errors import (
    InvalidAmountError,
    InvalidDescriptionError,
    InvalidIDError,
    InvalidOccurredAtError,
    InvalidTimeRangeError,
    UnknownIDError,
)
from services.expenses_service import ALL_EXPENSES_LABEL, ExpenseService, UNIX_EPOCH

from conftest import FIXED_NOW

OCT_15 = datetime(2025, 10, 15, 9, 30, tzinfo=timezone.utc)
SEP_15 = datetime(2025, 9, 15, 9, 30, tzinfo=timezone.utc)


class TestValidation:
    """Business rules applied before anything reaches storage."""

    @pytest.mark.parametrize("amount", [0, -1, -1999])
    async def test_create_rejects_non_positive_amount(self, service, memory_repo, amount):
        with pytest.raises(InvalidAmountError):
            await service.create_expense(OCT_15, "coffee", amount)
        assert await memory_repo.get_all() == []

    async def test_create_rejects_amount_too_large_to_store(self, service, memory_repo):
        with pytest.raises(InvalidAmountError):
            await service.create_expense(OCT_15, "coffee", 2**63)
        assert await memory_repo.get_all() == []

    async def test_create_rejects_empty_description(self, service, memory_repo):
        with pytest.raises(InvalidDescriptionError):
            await service.create_expense(OCT_15, "", 100)
        assert await memory_repo.get_all() == []

    @pytest.mark.parametrize("occurred_at", [
        UNIX_EPOCH,
        UNIX_EPOCH - timedelta(seconds=1),
        datetime(1969, 7, 20, tzinfo=timezone.utc),
    ])
    async def test_create_rejects_occurred_at_on_or_before_epoch(self, service, memory_repo, occurred_at):
        with pytest.raises(InvalidOccurredAtError):
            await service.create_expense(occurred_at, "moon landing souvenir", 100)
        assert await memory_repo.get_all() == []

    async def test_one_second_after_epoch_is_accepted(self, service):
        expense = await service.create_expense(UNIX_EPOCH + timedelta(seconds=1), "first", 1)
        assert expense.id == 1

    async def test_description_is_checked_first(self, service):
        with pytest.raises(InvalidDescriptionError):
            await service.create_expense(UNIX_EPOCH, "", 0)

    async def test_amount_is_checked_before_occurred_at(self, service):
        with pytest.raises(InvalidAmountError):
            await service.create_expense(UNIX_EPOCH, "coffee", 0)

    async def test_update_rejects_empty_description(self, service):
        created = await service.create_expense(OCT_15, "coffee", 450)
        with pytest.raises(InvalidDescriptionError):
            await service.update_expense(created.id, OCT_15, "", 450)

    async def test_update_rejects_occurred_at_at_epoch(self, service):
        created = await service.create_expense(OCT_15, "coffee", 450)
        with pytest.raises(InvalidOccurredAtError):
            await service.update_expense(created.id, UNIX_EPOCH, "coffee", 450)

    async def test_update_checks_id_before_fields(self, service):
        with pytest.raises(InvalidIDError):
            await service.update_expense(0, UNIX_EPOCH, "", 0)

    @pytest.mark.parametrize("expense_id", [0, -5])
    async def test_invalid_ids(self, service, expense_id):
        with pytest.raises(InvalidIDError):
            await service.get_expense_by_id(expense_id)
        with pytest.raises(InvalidIDError):
            await service.delete_expense(expense_id)

    async def test_naive_occurred_at_is_treated_as_utc(self, service):
        created = await service.create_expense(datetime(2025, 10, 15, 9, 30), "naive", 100)
        assert created.occurred_at == OCT_15


class TestCrud:
    """Create, read, update and delete through the service."""

    async def test_create_then_fetch_round_trip(self, service):
        created = await service.create_expense(OCT_15, "new hairdryer", 11999)
        assert created.id > 0
        assert created.created_at is not None

        fetched = await service.get_expense_by_id(created.id)
        assert fetched.amount == 11999
        assert fetched.occurred_at == OCT_15
        assert fetched.description == "new hairdryer"

    async def test_repeated_reads_are_identical(self, service):
        created = await service.create_expense(OCT_15, "oat breakfast", 1399)
        first = await service.get_expense_by_id(created.id)
        second = await service.get_expense_by_id(created.id)
        assert first == second

    async def test_unknown_id(self, service):
        with pytest.raises(UnknownIDError) as exc_info:
            await service.get_expense_by_id(42)
        assert exc_info.value.expense_id == 42

    async def test_update_replaces_fields_and_keeps_identity(self, service):
        created = await service.create_expense(OCT_15, "coffee", 450)
        await service.update_expense(created.id, SEP_15, "espresso", 300)

        updated = await service.get_expense_by_id(created.id)
        assert updated.id == created.id
        assert updated.created_at == created.created_at
        assert (updated.occurred_at, updated.description, updated.amount) == (SEP_15, "espresso", 300)

    async def test_update_unknown_id(self, service):
        with pytest.raises(UnknownIDError):
            await service.update_expense(7, OCT_15, "coffee", 450)

    async def test_delete_then_fetch_is_unknown(self, service):
        created = await service.create_expense(OCT_15, "coffee", 450)
        await service.delete_expense(created.id)
        with pytest.raises(UnknownIDError):
            await service.get_expense_by_id(created.id)

    async def test_delete_unknown_id(self, service):
        with pytest.raises(UnknownIDError):
            await service.delete_expense(3)

    async def test_get_all_returns_every_record(self, service):
        for amount in (100, 200, 300):
            await service.create_expense(OCT_15, f"item {amount}", amount)
        expenses = await service.get_all_expenses()
        assert [exp.amount for exp in expenses] == [100, 200, 300]

    async def test_storage_errors_pass_through(self):
        class BrokenRepository(InMemoryExpenseRepository):
            async def get_all(self):
                raise StorageError("disk on fire")

        service = ExpenseService(BrokenRepository())
        with pytest.raises(StorageError):
            await service.get_all_expenses()
        with pytest.raises(StorageError):
            await service.summarize_expenses(SummaryRange.ALL_TIME)


class TestSummaries:
    """Time window filtering and totals."""

    @pytest.fixture
    async def seeded(self, service):
        await service.create_expense(OCT_15, "october groceries", 5000)
        await service.create_expense(SEP_15, "september groceries", 3000)
        await service.create_expense(datetime(2024, 10, 1, tzinfo=timezone.utc), "last year", 700)
        await service.create_expense(datetime(2023, 9, 30, 23, 59, tzinfo=timezone.utc), "older", 11)
        return service

    async def test_all_time(self, seeded):
        summary = await seeded.summarize_expenses(SummaryRange.ALL_TIME)
        assert summary == ExpenseSummary(range_label=ALL_EXPENSES_LABEL, total=8711)

    async def test_empty_store_totals_zero(self, service):
        summary = await service.summarize_expenses(SummaryRange.THIS_YEAR)
        assert summary.total == 0

    async def test_this_month_scenario(self, service):
        for amount, day in ((1999, 1), (28089, 12), (940, 19)):
            await service.create_expense(datetime(2025, 10, day, tzinfo=timezone.utc), "groceries", amount)
        await service.create_expense(SEP_15, "not this month", 5)

        summary = await service.summarize_expenses(SummaryRange.THIS_MONTH, "")
        assert summary.range_label == "This Month"
        assert summary.total == 31028

    async def test_this_year(self, seeded):
        summary = await seeded.summarize_expenses(SummaryRange.THIS_YEAR)
        assert summary == ExpenseSummary(range_label="This Year", total=8000)

    async def test_custom_month(self, seeded):
        summary = await seeded.summarize_expenses(SummaryRange.CUSTOM_MONTH, "2025-10")
        assert summary.range_label == "Custom Month: October of 2025"
        assert summary.total == 5000

    async def test_custom_month_includes_first_instant(self, service):
        await service.create_expense(datetime(2025, 10, 1, tzinfo=timezone.utc), "midnight", 250)
        await service.create_expense(datetime(2025, 9, 30, 23, 59, 59, tzinfo=timezone.utc), "just before", 1)
        summary = await service.summarize_expenses(SummaryRange.CUSTOM_MONTH, "2025-10")
        assert summary.total == 250

    async def test_custom_month_compares_in_utc(self, service):
        # 2025-11-01 01:00 at UTC+02:00 is still October in UTC
        plus_two = timezone(timedelta(hours=2))
        await service.create_expense(datetime(2025, 11, 1, 1, 0, tzinfo=plus_two), "late night", 800)
        summary = await service.summarize_expenses(SummaryRange.CUSTOM_MONTH, "2025-10")
        assert summary.total == 800

    @pytest.mark.parametrize("modifier", [
        "2025-13", "2025-0", "2025", "abc-10", "2025-xx", "", "1969-12",
        "100000000000000000000-10", "2_025-10", "+2025-10", "2025-+1",
    ])
    async def test_custom_month_rejects_bad_modifier(self, service, modifier):
        with pytest.raises(InvalidTimeRangeError) as exc_info:
            await service.summarize_expenses(SummaryRange.CUSTOM_MONTH, modifier)
        assert exc_info.value.provided_value == modifier

    async def test_custom_month_parse_failure_keeps_cause(self, service):
        with pytest.raises(InvalidTimeRangeError) as exc_info:
            await service.summarize_expenses(SummaryRange.CUSTOM_MONTH, "2025-xx")
        assert isinstance(exc_info.value.cause, ValueError)

    async def test_custom_year(self, seeded):
        summary = await seeded.summarize_expenses(SummaryRange.CUSTOM_YEAR, "2024")
        assert summary == ExpenseSummary(range_label="Custom Year: 2024", total=700)

    async def test_custom_year_1970_is_allowed(self, service):
        await service.create_expense(datetime(1970, 6, 1, tzinfo=timezone.utc), "old receipt", 99)
        summary = await service.summarize_expenses(SummaryRange.CUSTOM_YEAR, "1970")
        assert summary.total == 99

    @pytest.mark.parametrize("modifier", ["1969", "twenty", "", "0", "0000", "100000000000000000000", "2_025", "+2025"])
    async def test_custom_year_rejects_bad_modifier(self, service, modifier):
        with pytest.raises(InvalidTimeRangeError) as exc_info:
            await service.summarize_expenses(SummaryRange.CUSTOM_YEAR, modifier)
        assert exc_info.value.provided_value == modifier

    async def test_custom_range_is_inclusive(self, seeded):
        summary = await seeded.summarize_expenses(SummaryRange.CUSTOM_RANGE, "2023-09,2024-10")
        assert summary.range_label == "Custom Range: September of 2023 to October of 2024"
        assert summary.total == 711

    async def test_custom_range_single_month(self, seeded):
        summary = await seeded.summarize_expenses(SummaryRange.CUSTOM_RANGE, "2025-09,2025-09")
        assert summary.total == 3000

    @pytest.mark.parametrize("modifier", ["2024-10,2023-09", "2023-09", "2023-09,2024-13", "1969-01,2024-01"])
    async def test_custom_range_rejects_bad_modifier(self, service, modifier):
        with pytest.raises(InvalidTimeRangeError) as exc_info:
            await service.summarize_expenses(SummaryRange.CUSTOM_RANGE, modifier)
        assert exc_info.value.provided_value == modifier

    async def test_range_kind_accepts_plain_strings(self, seeded):
        summary = await seeded.summarize_expenses("custom_year", "2025")
        assert summary.total == 8000

    async def test_unknown_range_kind(self, service):
        with pytest.raises(InvalidTimeRangeError) as exc_info:
            await service.summarize_expenses("fortnight")
        assert exc_info.value.provided_value == "fortnight"

    async def test_this_month_follows_the_clock(self, memory_repo):
        service = ExpenseService(memory_repo, clock=lambda: FIXED_NOW.replace(month=9))
        await service.create_expense(OCT_15, "october", 5000)
        await service.create_expense(SEP_15, "september", 3000)
        summary = await service.summarize_expenses(SummaryRange.THIS_MONTH)
        assert summary.total == 3000

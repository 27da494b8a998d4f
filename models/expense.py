"""Pydantic models for Expense data"""
from pydantic import BaseModel, ConfigDict
from datetime import datetime
from enum import Enum
from typing import Optional

class Expense(BaseModel):
    """
    Represents a single recorded expense.

    `id` and `created_at` are assigned by the repository when the record is
    created and never change afterwards. `amount` is in minor currency
    units (cents).
    """
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: Optional[int] = None
    amount: int
    occurred_at: datetime
    created_at: Optional[datetime] = None
    description: str

class ExpenseSummary(BaseModel):
    """Total of all expenses inside a time window. Computed on demand, never stored."""
    range_label: str
    total: int = 0

class SummaryRange(str, Enum):
    """Time window kinds accepted by the summarization endpoint."""
    ALL_TIME = "all_time"
    THIS_MONTH = "this_month"
    CUSTOM_MONTH = "custom_month"
    THIS_YEAR = "this_year"
    CUSTOM_YEAR = "custom_year"
    CUSTOM_RANGE = "custom_range"

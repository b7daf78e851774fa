from datetime import datetime, time
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from finanalyst.models.transaction import CamelModel, TransactionFilter, When


class TransactionStats(CamelModel):
    total_transactions: int = 0
    total_amount: float = 0.0
    avg_amount: float = 0.0
    min_amount: float = 0.0
    max_amount: float = 0.0


class CategoryBreakdown(BaseModel):
    category: str
    count: int
    total: float
    avg: float


class MonthlyTrend(BaseModel):
    year: int
    month: int
    category: str
    total: float


class CSVColumn(BaseModel):
    key: str
    label: str
    type: str


class CSVConfig(CamelModel):
    columns: List[str] = Field(default_factory=lambda: ["date", "amount", "category", "status"], min_length=1)
    include_headers: bool = True
    date_format: str = "US"
    delimiter: str = Field(default=",", min_length=1, max_length=1)


class ExportFilters(CamelModel):
    """Filters sent by the export dialog. Empty strings mean "not set"."""

    user_id: Optional[str] = Field(default=None, alias="user_id")
    category: Optional[str] = None
    status: Optional[str] = None
    date_from: Optional[When] = None
    date_to: Optional[When] = None
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None
    search_term: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    def to_filter(self) -> TransactionFilter:
        date_to = self.date_to
        if date_to is not None:
            # the upper bound covers the whole day
            date_to = datetime.combine(date_to.date(), time(23, 59, 59, 999000))

        return TransactionFilter(
            user_id=self.user_id,
            categories=[self.category] if self.category else None,
            statuses=[self.status] if self.status else None,
            date_from=self.date_from,
            date_to=date_to,
            amount_min=self.amount_min,
            amount_max=self.amount_max,
        )


class ExportRequest(BaseModel):
    config: CSVConfig = Field(default_factory=CSVConfig)
    filters: ExportFilters = Field(default_factory=ExportFilters)

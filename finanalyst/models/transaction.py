from datetime import date, datetime, time, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def parse_when(value: Any) -> Any:
    """Accept ISO dates (``2024-01-15``) as well as ISO datetimes."""
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            return value
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    return value


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# Timestamps are kept as naive UTC so stored values compare consistently
When = Annotated[datetime, BeforeValidator(parse_when), AfterValidator(to_naive_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransactionBase(BaseModel):
    date: When
    amount: float = Field(allow_inf_nan=False)
    category: str = Field(min_length=1)
    status: str = Field(min_length=1)


class TransactionCreate(TransactionBase):
    id: Optional[int] = Field(default=None, ge=1)


class TransactionUpdate(BaseModel):
    date: Optional[When] = None
    amount: Optional[float] = Field(default=None, allow_inf_nan=False)
    category: Optional[str] = Field(default=None, min_length=1)
    status: Optional[str] = Field(default=None, min_length=1)


class TransactionImport(TransactionBase):
    id: int = Field(ge=1)
    user_id: str = Field(min_length=1)


class Transaction(TransactionBase):
    id: int
    user_id: str


class TransactionFilter(BaseModel):
    """
    Filter predicate over transaction records. Every field is optional and an
    absent field imposes no constraint.
    """

    user_id: Optional[str] = None
    categories: Optional[List[str]] = None
    statuses: Optional[List[str]] = None
    date_from: Optional[When] = None
    date_to: Optional[When] = None
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None

    @field_validator("categories", "statuses")
    @classmethod
    def _drop_empty_sets(cls, values: Optional[List[str]]) -> Optional[List[str]]:
        if values is None:
            return None
        cleaned = [value for value in values if value != ""]
        return cleaned or None

    def matches(self, record: Dict[str, Any]) -> bool:
        if self.user_id is not None and record.get("user_id") != self.user_id:
            return False
        if self.categories is not None and record.get("category") not in self.categories:
            return False
        if self.statuses is not None and record.get("status") not in self.statuses:
            return False

        when = record.get("date")
        if self.date_from is not None and (when is None or when < self.date_from):
            return False
        if self.date_to is not None and (when is None or when > self.date_to):
            return False

        amount = record.get("amount")
        if self.amount_min is not None and (amount is None or amount < self.amount_min):
            return False
        if self.amount_max is not None and (amount is None or amount > self.amount_max):
            return False
        return True


class TransactionQuery(BaseModel):
    filter: TransactionFilter = Field(default_factory=TransactionFilter)
    sort_by: str = "date"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class TransactionPage(BaseModel):
    transactions: List[Transaction]
    pagination: Pagination

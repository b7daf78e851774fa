"""
Record store interfaces.

Routers and services only talk to these abstract classes. The DynamoDB
implementation lives in ``finanalyst.db.dynamo`` and an in-memory one in
``finanalyst.db.memory`` (used for local development and tests).
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from finanalyst.models.transaction import TransactionFilter

Record = Dict[str, Any]


def sort_records(records: List[Record], sort_by: str, sort_order: str = "desc") -> List[Record]:
    """
    Sort on any attribute name. Records lacking the attribute go last in both
    directions and equal keys keep their retrieval order.
    """
    present = [r for r in records if r.get(sort_by) is not None]
    missing = [r for r in records if r.get(sort_by) is None]
    reverse = sort_order == "desc"
    try:
        present.sort(key=lambda r: r[sort_by], reverse=reverse)
    except TypeError:
        # mixed value types under the same attribute
        present.sort(key=lambda r: str(r[sort_by]), reverse=reverse)
    return present + missing


class TransactionStore(ABC):
    """Persistent collection of transaction records keyed by (user_id, id)."""

    @abstractmethod
    def _matching(self, filter: TransactionFilter) -> Iterable[Record]:
        """Yield every record satisfying ``filter`` in the store's natural order."""

    def find(
        self,
        filter: Optional[TransactionFilter] = None,
        sort_by: Optional[str] = None,
        sort_order: str = "desc",
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Record]:
        records = list(self._matching(filter or TransactionFilter()))
        if sort_by:
            records = sort_records(records, sort_by, sort_order)
        end = None if limit is None else skip + limit
        return records[skip:end]

    def count(self, filter: Optional[TransactionFilter] = None) -> int:
        return sum(1 for _ in self._matching(filter or TransactionFilter()))

    def distinct(self, field: str, filter: Optional[TransactionFilter] = None) -> List[Any]:
        values = {r[field] for r in self._matching(filter or TransactionFilter()) if r.get(field) is not None}
        return sorted(values, key=str)

    def next_id(self, user_id: str) -> int:
        ids = [r["id"] for r in self._matching(TransactionFilter(user_id=user_id))]
        return max(ids, default=0) + 1

    @abstractmethod
    def get(self, user_id: str, transaction_id: int) -> Optional[Record]:
        ...

    @abstractmethod
    def insert(self, record: Record) -> Record:
        """Store a new record. Raises ConflictError if (user_id, id) is taken."""

    @abstractmethod
    def insert_many(self, records: List[Record]) -> int:
        ...

    @abstractmethod
    def update(self, user_id: str, transaction_id: int, changes: Record) -> Optional[Record]:
        """Apply ``changes`` to the owner's record; None when the owner has no such record."""

    @abstractmethod
    def delete(self, user_id: str, transaction_id: int) -> bool:
        ...

    @abstractmethod
    def clear(self) -> int:
        ...

    @abstractmethod
    def ping(self) -> bool:
        ...


class UserStore(ABC):
    @abstractmethod
    def get_by_email(self, email: str) -> Optional[Record]:
        ...

    @abstractmethod
    def get_by_id(self, user_id: str) -> Optional[Record]:
        ...

    @abstractmethod
    def put(self, user: Record) -> None:
        """Insert a new user. Raises ConflictError if the email is already registered."""

    @abstractmethod
    def ping(self) -> bool:
        ...

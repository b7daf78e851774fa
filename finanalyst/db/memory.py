import threading
from copy import deepcopy
from typing import Dict, Iterable, List, Optional, Tuple

from finanalyst.core.errors import ConflictError
from finanalyst.db.store import Record, TransactionStore, UserStore
from finanalyst.models.transaction import TransactionFilter


class InMemoryTransactionStore(TransactionStore):
    """Dict-backed store; natural order is insertion order."""

    def __init__(self, records: Optional[List[Record]] = None) -> None:
        self._items: Dict[Tuple[str, int], Record] = {}
        self._lock = threading.Lock()
        if records:
            self.insert_many(records)

    def _matching(self, filter: TransactionFilter) -> Iterable[Record]:
        with self._lock:
            snapshot = list(self._items.values())
        return [deepcopy(r) for r in snapshot if filter.matches(r)]

    def get(self, user_id: str, transaction_id: int) -> Optional[Record]:
        with self._lock:
            item = self._items.get((user_id, transaction_id))
            return deepcopy(item) if item else None

    def insert(self, record: Record) -> Record:
        key = (record["user_id"], record["id"])
        with self._lock:
            if key in self._items:
                raise ConflictError(f"Transaction {record['id']} already exists")
            self._items[key] = deepcopy(record)
        return deepcopy(record)

    def insert_many(self, records: List[Record]) -> int:
        with self._lock:
            for record in records:
                self._items[(record["user_id"], record["id"])] = deepcopy(record)
        return len(records)

    def update(self, user_id: str, transaction_id: int, changes: Record) -> Optional[Record]:
        with self._lock:
            item = self._items.get((user_id, transaction_id))
            if item is None:
                return None
            item.update(deepcopy(changes))
            return deepcopy(item)

    def delete(self, user_id: str, transaction_id: int) -> bool:
        with self._lock:
            return self._items.pop((user_id, transaction_id), None) is not None

    def clear(self) -> int:
        with self._lock:
            removed = len(self._items)
            self._items.clear()
        return removed

    def ping(self) -> bool:
        return True


class InMemoryUserStore(UserStore):
    def __init__(self) -> None:
        self._users: Dict[str, Record] = {}
        self._lock = threading.Lock()

    def get_by_email(self, email: str) -> Optional[Record]:
        with self._lock:
            for user in self._users.values():
                if user["email"] == email:
                    return deepcopy(user)
        return None

    def get_by_id(self, user_id: str) -> Optional[Record]:
        with self._lock:
            user = self._users.get(user_id)
            return deepcopy(user) if user else None

    def put(self, user: Record) -> None:
        with self._lock:
            if any(existing["email"] == user["email"] for existing in self._users.values()):
                raise ConflictError("User already exists")
            self._users[user["user_id"]] = deepcopy(user)

    def ping(self) -> bool:
        return True

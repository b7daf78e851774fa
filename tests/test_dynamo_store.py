from datetime import datetime
from decimal import Decimal

import pytest
from botocore.exceptions import ClientError

from finanalyst.core.errors import ConflictError, StoreError
from finanalyst.db.dynamo import (
    DynamoTransactionStore,
    DynamoUserStore,
    _convert_for_dynamo,
    build_filter_condition,
)
from finanalyst.models.transaction import TransactionFilter


def _client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)


class FakeTable:
    """Stands in for a boto3 Table resource; serves ``pages`` one per call."""

    def __init__(self, pages=None, error=None):
        self.pages = pages or [[]]
        self.error = error
        self.calls = []

    def _serve(self, name, kwargs):
        self.calls.append((name, dict(kwargs)))
        if self.error is not None:
            raise self.error
        index = kwargs.get("ExclusiveStartKey", {}).get("page", 0)
        response = {"Items": self.pages[index]}
        if index + 1 < len(self.pages):
            response["LastEvaluatedKey"] = {"page": index + 1}
        return response

    def query(self, **kwargs):
        return self._serve("query", kwargs)

    def scan(self, **kwargs):
        return self._serve("scan", kwargs)

    def get_item(self, **kwargs):
        self.calls.append(("get_item", kwargs))
        if self.error is not None:
            raise self.error
        return {}

    def put_item(self, **kwargs):
        self.calls.append(("put_item", kwargs))
        if self.error is not None:
            raise self.error
        return {}

    def update_item(self, **kwargs):
        self.calls.append(("update_item", kwargs))
        if self.error is not None:
            raise self.error
        return {"Attributes": {**kwargs["Key"], "amount": Decimal("10"), "date": "2024-01-01T00:00:00.000",
                               "category": "Expense", "status": "completed"}}

    def delete_item(self, **kwargs):
        self.calls.append(("delete_item", kwargs))
        return {}


ITEM = {
    "user_id": "user_001",
    "id": Decimal("3"),
    "date": "2024-02-03T00:00:00.000",
    "amount": Decimal("300.5"),
    "category": "Expense",
    "status": "pending",
}


def test_owner_scoped_reads_use_query_and_follow_pages():
    second = dict(ITEM, id=Decimal("4"), amount=Decimal("12"))
    table = FakeTable(pages=[[ITEM], [second]])
    store = DynamoTransactionStore(table)

    records = store.find(TransactionFilter(user_id="user_001", categories=["Expense"]))

    assert [name for name, _ in table.calls] == ["query", "query"]
    assert "KeyConditionExpression" in table.calls[0][1]
    assert "FilterExpression" in table.calls[0][1]
    assert table.calls[1][1]["ExclusiveStartKey"] == {"page": 1}
    assert records[0] == {
        "user_id": "user_001",
        "id": 3,
        "date": datetime(2024, 2, 3),
        "amount": 300.5,
        "category": "Expense",
        "status": "pending",
    }
    assert records[1]["amount"] == 12.0
    assert isinstance(records[1]["amount"], float)


def test_unscoped_reads_scan():
    table = FakeTable(pages=[[ITEM]])
    store = DynamoTransactionStore(table)
    assert store.count() == 1
    name, kwargs = table.calls[0]
    assert name == "scan"
    assert "FilterExpression" not in kwargs


def test_filter_condition():
    assert build_filter_condition(TransactionFilter()) is None
    assert build_filter_condition(TransactionFilter(user_id="only-owner")) is None
    assert build_filter_condition(TransactionFilter(amount_min=0, date_to=datetime(2024, 1, 1))) is not None


def test_values_are_converted_for_dynamo():
    converted = _convert_for_dynamo({"amount": 12.5, "date": datetime(2024, 1, 15), "ok": True, "id": 3})
    assert converted == {"amount": Decimal("12.5"), "date": "2024-01-15T00:00:00.000", "ok": True, "id": 3}


def test_next_id_reads_highest_sort_key():
    table = FakeTable(pages=[[{"user_id": "user_001", "id": Decimal("7")}]])
    assert DynamoTransactionStore(table).next_id("user_001") == 8
    assert table.calls[0][1]["ScanIndexForward"] is False

    assert DynamoTransactionStore(FakeTable()).next_id("someone") == 1


def test_update_is_keyed_by_owner_and_id():
    table = FakeTable()
    updated = DynamoTransactionStore(table).update("user_001", 3, {"status": "completed", "amount": 10.0})
    _, kwargs = table.calls[0]
    assert kwargs["Key"] == {"user_id": "user_001", "id": 3}
    assert kwargs["ExpressionAttributeNames"] == {"#f0": "status", "#f1": "amount"}
    assert kwargs["ExpressionAttributeValues"][":v1"] == Decimal("10.0")
    assert updated["status"] == "completed"


def test_update_of_missing_record_returns_none():
    table = FakeTable(error=_client_error("ConditionalCheckFailedException", "UpdateItem"))
    assert DynamoTransactionStore(table).update("user_002", 3, {"status": "x"}) is None


def test_delete_of_missing_record_returns_false():
    assert DynamoTransactionStore(FakeTable()).delete("user_002", 3) is False


def test_duplicate_insert_conflicts():
    table = FakeTable(error=_client_error("ConditionalCheckFailedException", "PutItem"))
    with pytest.raises(ConflictError):
        DynamoTransactionStore(table).insert(
            {"user_id": "u", "id": 1, "date": datetime(2024, 1, 1), "amount": 1.0, "category": "c", "status": "s"}
        )


def test_client_errors_become_store_errors():
    table = FakeTable(error=_client_error("ProvisionedThroughputExceededException", "Scan"))
    store = DynamoTransactionStore(table)
    with pytest.raises(StoreError):
        store.find()
    assert store.ping() is False


def test_user_lookup_by_email_uses_index():
    table = FakeTable(pages=[[{"user_id": "u1", "email": "a@example.com", "role": "user"}]])
    user = DynamoUserStore(table).get_by_email("a@example.com")
    assert user["user_id"] == "u1"
    assert table.calls[0][1]["IndexName"] == "email-index"


def test_user_put_rejects_known_email():
    table = FakeTable(pages=[[{"user_id": "u1", "email": "a@example.com"}]])
    with pytest.raises(ConflictError):
        DynamoUserStore(table).put({"user_id": "u2", "email": "a@example.com"})

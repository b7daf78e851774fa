import logging
import operator
from datetime import datetime
from decimal import Decimal
from functools import reduce
from typing import Any, Dict, Iterable, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from finanalyst.core.config import Settings
from finanalyst.core.errors import ConflictError, StoreError
from finanalyst.db.store import Record, TransactionStore, UserStore
from finanalyst.models.transaction import TransactionFilter

logger = logging.getLogger(__name__)

EMAIL_INDEX = "email-index"
# Local secondary indexes on the transactions table, all partitioned by owner
OWNER_INDEXES = {
    "date-index": ("date", "S"),
    "category-index": ("category", "S"),
    "status-index": ("status", "S"),
}


def get_dynamo_resource(settings: Settings):
    return boto3.resource(
        "dynamodb",
        region_name=settings.DYNAMO_REGION,
        endpoint_url=settings.DYNAMO_ENDPOINT_URL,
    )


def format_timestamp(value: datetime) -> str:
    """Fixed-width ISO form so string comparison orders timestamps."""
    return value.isoformat(timespec="milliseconds")


def _convert_for_dynamo(obj: Any):
    """
    Recursively convert floats to Decimal and datetimes to ISO strings for DynamoDB.
    """
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, datetime):
        return format_timestamp(obj)
    if isinstance(obj, dict):
        return {k: _convert_for_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_for_dynamo(v) for v in obj]
    return obj


def _from_dynamo(obj: Any):
    """
    Recursively convert Decimal instances back to native Python numeric types.
    """
    if isinstance(obj, list):
        return [_from_dynamo(item) for item in obj]
    if isinstance(obj, dict):
        return {k: _from_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    return obj


def _transaction_from_item(item: Dict[str, Any]) -> Record:
    record = _from_dynamo(item)
    record["id"] = int(record["id"])
    record["amount"] = float(record["amount"])
    if isinstance(record.get("date"), str):
        record["date"] = datetime.fromisoformat(record["date"])
    return record


def _error_message(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Message", str(error))


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def build_filter_condition(filter: TransactionFilter):
    """Translate everything but the owner into a DynamoDB filter expression."""
    conditions = []
    if filter.categories:
        conditions.append(Attr("category").is_in(filter.categories))
    if filter.statuses:
        conditions.append(Attr("status").is_in(filter.statuses))
    if filter.date_from is not None:
        conditions.append(Attr("date").gte(format_timestamp(filter.date_from)))
    if filter.date_to is not None:
        conditions.append(Attr("date").lte(format_timestamp(filter.date_to)))
    if filter.amount_min is not None:
        conditions.append(Attr("amount").gte(Decimal(str(filter.amount_min))))
    if filter.amount_max is not None:
        conditions.append(Attr("amount").lte(Decimal(str(filter.amount_max))))
    if not conditions:
        return None
    return reduce(operator.and_, conditions)


class DynamoTransactionStore(TransactionStore):
    """
    Transactions table: partition key ``user_id``, sort key ``id`` (number).
    Owner-scoped reads use Query, everything else falls back to Scan.
    """

    def __init__(self, table) -> None:
        self.table = table

    def _paged(self, method, **kwargs) -> Iterable[Dict[str, Any]]:
        while True:
            response = method(**kwargs)
            yield from response.get("Items", [])
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key

    def _matching(self, filter: TransactionFilter) -> Iterable[Record]:
        kwargs: Dict[str, Any] = {}
        condition = build_filter_condition(filter)
        if condition is not None:
            kwargs["FilterExpression"] = condition

        try:
            if filter.user_id is not None:
                kwargs["KeyConditionExpression"] = Key("user_id").eq(filter.user_id)
                items = list(self._paged(self.table.query, **kwargs))
            else:
                items = list(self._paged(self.table.scan, **kwargs))
        except ClientError as e:
            logger.error(f"Transaction lookup failed: {_error_message(e)}")
            raise StoreError("Failed to read transactions")
        return [_transaction_from_item(item) for item in items]

    def next_id(self, user_id: str) -> int:
        try:
            response = self.table.query(
                KeyConditionExpression=Key("user_id").eq(user_id),
                ScanIndexForward=False,
                Limit=1,
            )
        except ClientError as e:
            logger.error(f"next_id failed: {_error_message(e)}")
            raise StoreError("Failed to read transactions")
        items = response.get("Items", [])
        return int(items[0]["id"]) + 1 if items else 1

    def get(self, user_id: str, transaction_id: int) -> Optional[Record]:
        try:
            response = self.table.get_item(Key={"user_id": user_id, "id": transaction_id})
        except ClientError as e:
            logger.error(f"get_transaction failed: {_error_message(e)}")
            raise StoreError("Failed to read transaction")
        item = response.get("Item")
        return _transaction_from_item(item) if item else None

    def insert(self, record: Record) -> Record:
        try:
            self.table.put_item(
                Item=_convert_for_dynamo(record),
                ConditionExpression=Attr("id").not_exists(),
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                raise ConflictError(f"Transaction {record['id']} already exists")
            logger.error(f"put_transaction failed: {_error_message(e)}")
            raise StoreError("Failed to save transaction")
        return dict(record)

    def insert_many(self, records: List[Record]) -> int:
        try:
            with self.table.batch_writer(overwrite_by_pkeys=["user_id", "id"]) as batch:
                for record in records:
                    batch.put_item(Item=_convert_for_dynamo(record))
        except ClientError as e:
            logger.error(f"batch insert failed: {_error_message(e)}")
            raise StoreError("Failed to import transactions")
        return len(records)

    def update(self, user_id: str, transaction_id: int, changes: Record) -> Optional[Record]:
        """
        Apply partial updates to one of the owner's transactions. Returns the updated item or None.
        """
        if not changes:
            return self.get(user_id, transaction_id)

        update_expression_parts = []
        expression_attribute_values = {}
        expression_attribute_names = {}

        for idx, (key, value) in enumerate(changes.items()):
            placeholder = f"#f{idx}"
            value_placeholder = f":v{idx}"
            update_expression_parts.append(f"{placeholder} = {value_placeholder}")
            expression_attribute_names[placeholder] = key
            expression_attribute_values[value_placeholder] = value

        update_expression = "SET " + ", ".join(update_expression_parts)

        try:
            response = self.table.update_item(
                Key={"user_id": user_id, "id": transaction_id},
                UpdateExpression=update_expression,
                ConditionExpression=Attr("user_id").exists(),
                ExpressionAttributeNames=expression_attribute_names,
                ExpressionAttributeValues=_convert_for_dynamo(expression_attribute_values),
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                return None
            logger.error(f"update_transaction failed: {_error_message(e)}")
            raise StoreError("Failed to update transaction")
        attributes = response.get("Attributes")
        return _transaction_from_item(attributes) if attributes else None

    def delete(self, user_id: str, transaction_id: int) -> bool:
        try:
            response = self.table.delete_item(
                Key={"user_id": user_id, "id": transaction_id},
                ReturnValues="ALL_OLD",
            )
        except ClientError as e:
            logger.error(f"delete_transaction failed: {_error_message(e)}")
            raise StoreError("Failed to delete transaction")
        return "Attributes" in response

    def clear(self) -> int:
        removed = 0
        try:
            keys = list(self._paged(self.table.scan, ProjectionExpression="user_id, id"))
            with self.table.batch_writer() as batch:
                for key in keys:
                    batch.delete_item(Key={"user_id": key["user_id"], "id": key["id"]})
                    removed += 1
        except ClientError as e:
            logger.error(f"clear failed: {_error_message(e)}")
            raise StoreError("Failed to clear transactions")
        return removed

    def ping(self) -> bool:
        try:
            self.table.scan(Limit=1)
            return True
        except ClientError as e:
            logger.error(f"Transactions table check failed: {_error_message(e)}")
            return False


class DynamoUserStore(UserStore):
    """Users table keyed by ``user_id`` with a GSI on ``email``."""

    def __init__(self, table) -> None:
        self.table = table

    def get_by_email(self, email: str) -> Optional[Record]:
        try:
            response = self.table.query(
                IndexName=EMAIL_INDEX,
                KeyConditionExpression=Key("email").eq(email),
            )
        except ClientError as e:
            logger.error(f"get_user_by_email failed: {_error_message(e)}")
            raise StoreError("Failed to read user")
        return _from_dynamo(response["Items"][0]) if response.get("Items") else None

    def get_by_id(self, user_id: str) -> Optional[Record]:
        try:
            response = self.table.get_item(Key={"user_id": user_id})
        except ClientError as e:
            logger.error(f"get_user_by_id failed: {_error_message(e)}")
            raise StoreError("Failed to read user")
        item = response.get("Item")
        return _from_dynamo(item) if item else None

    def put(self, user: Record) -> None:
        # the email GSI cannot enforce uniqueness, so check first
        if self.get_by_email(user["email"]):
            raise ConflictError("User already exists")
        try:
            self.table.put_item(
                Item=_convert_for_dynamo(user),
                ConditionExpression=Attr("user_id").not_exists(),
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                raise ConflictError("User already exists")
            logger.error(f"put_user failed: {_error_message(e)}")
            raise StoreError("Error saving user")

    def ping(self) -> bool:
        try:
            self.table.scan(Limit=1)
            return True
        except ClientError as e:
            logger.error(f"Users table check failed: {_error_message(e)}")
            return False


def create_tables(dynamodb, settings: Settings) -> List[str]:
    """
    Create the users and transactions tables (on-demand billing) if missing.
    Returns the names of the tables that were created.
    """
    created = []
    existing = {table.name for table in dynamodb.tables.all()}

    if settings.DYNAMO_TRANSACTIONS_TABLE not in existing:
        attribute_definitions = [
            {"AttributeName": "user_id", "AttributeType": "S"},
            {"AttributeName": "id", "AttributeType": "N"},
        ]
        local_indexes = []
        for index_name, (attribute, attribute_type) in OWNER_INDEXES.items():
            attribute_definitions.append({"AttributeName": attribute, "AttributeType": attribute_type})
            local_indexes.append({
                "IndexName": index_name,
                "KeySchema": [
                    {"AttributeName": "user_id", "KeyType": "HASH"},
                    {"AttributeName": attribute, "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            })
        table = dynamodb.create_table(
            TableName=settings.DYNAMO_TRANSACTIONS_TABLE,
            KeySchema=[
                {"AttributeName": "user_id", "KeyType": "HASH"},
                {"AttributeName": "id", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=attribute_definitions,
            LocalSecondaryIndexes=local_indexes,
            BillingMode="PAY_PER_REQUEST",
        )
        table.wait_until_exists()
        created.append(settings.DYNAMO_TRANSACTIONS_TABLE)
        logger.info(f"Created table {settings.DYNAMO_TRANSACTIONS_TABLE}")

    if settings.DYNAMO_USERS_TABLE not in existing:
        table = dynamodb.create_table(
            TableName=settings.DYNAMO_USERS_TABLE,
            KeySchema=[{"AttributeName": "user_id", "KeyType": "HASH"}],
            AttributeDefinitions=[
                {"AttributeName": "user_id", "AttributeType": "S"},
                {"AttributeName": "email", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[{
                "IndexName": EMAIL_INDEX,
                "KeySchema": [{"AttributeName": "email", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            }],
            BillingMode="PAY_PER_REQUEST",
        )
        table.wait_until_exists()
        created.append(settings.DYNAMO_USERS_TABLE)
        logger.info(f"Created table {settings.DYNAMO_USERS_TABLE}")

    return created

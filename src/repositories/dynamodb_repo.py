"""
DynamoDB document repository.

Every table is keyed on ``id`` and every document carries a ``version``
attribute. Writes are conditional: new documents must not exist yet and
replacements must still be at the version the caller read, so concurrent
writers get a ``ConflictError`` instead of silently overwriting each other.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError
from pydantic import BaseModel

from utils.error_handling import ConflictError
from utils.logging_config import get_logger
from utils.retry import run_with_backoff

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Shared resource, reused across warm invocations.
_dynamodb = None


def get_dynamodb():
    """Get or create the DynamoDB resource."""
    global _dynamodb
    if _dynamodb is None:
        _dynamodb = boto3.resource("dynamodb")
    return _dynamodb


def to_item(document: BaseModel) -> Dict[str, Any]:
    """Dump a model into a DynamoDB-safe dict (floats become Decimals, Nones dropped)."""
    return json.loads(document.model_dump_json(exclude_none=True), parse_float=Decimal)


def from_item(value: Any) -> Any:
    """Undo DynamoDB's Decimal numbers so pydantic sees plain ints/floats."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: from_item(val) for key, val in value.items()}
    if isinstance(value, list):
        return [from_item(val) for val in value]
    return value


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


# Cancellation reasons that mean another writer got there first.
CONFLICT_REASONS = {"ConditionalCheckFailed", "TransactionConflict"}


def _cancellation_codes(exc: ClientError) -> List[str]:
    """Per-item reason codes of a cancelled transaction ("None" for items that passed)."""
    reasons = exc.response.get("CancellationReasons") or []
    codes = [reason.get("Code", "None") for reason in reasons]
    if codes:
        return codes
    # Some endpoints only list the codes in the message: "... [ConditionalCheckFailed, None]"
    message = exc.response.get("Error", {}).get("Message", "")
    if "[" in message and message.endswith("]"):
        return [code.strip() for code in message[message.rindex("[") + 1 : -1].split(",")]
    return []


def _next_revision(document: ModelT, expected_version: Optional[int]) -> ModelT:
    return document.model_copy(
        update={
            "version": (expected_version or 0) + 1,
            "updated_at": datetime.now(timezone.utc),
        }
    )


class DynamoDbRepository:
    """Document helpers for one table."""

    def __init__(self, table_name: str, dynamodb=None):
        self.table_name = table_name
        self.table = (dynamodb or get_dynamodb()).Table(table_name)

    @classmethod
    def connect(
        cls, table_name: str, *, attempts: int = 3, backoff_base: float = 0.2
    ) -> "DynamoDbRepository":
        """Build a repository and make sure the table is reachable."""
        repo = cls(table_name)
        run_with_backoff(repo.table.load, attempts=attempts, backoff_base=backoff_base)
        logger.info("Table connected", extra={"table": table_name})
        return repo

    # Reads

    def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one document by id."""
        resp = self.table.get_item(Key={"id": item_id}, ConsistentRead=True)
        item = resp.get("Item")
        return from_item(item) if item else None

    def get_model(self, model: Type[ModelT], item_id: str) -> Optional[ModelT]:
        item = self.get(item_id)
        return model.model_validate(item) if item else None

    def scan(self, filter_expression=None) -> List[Dict[str, Any]]:
        """Scan the whole table, following pagination."""
        kwargs: Dict[str, Any] = {}
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        return self._paginate(self.table.scan, kwargs)

    def query_index(
        self, index_name: str, key_name: str, value: Any, filter_expression=None
    ) -> List[Dict[str, Any]]:
        """Equality query on a global secondary index."""
        kwargs: Dict[str, Any] = {
            "IndexName": index_name,
            "KeyConditionExpression": Key(key_name).eq(value),
        }
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        return self._paginate(self.table.query, kwargs)

    def _paginate(self, operation: Callable, kwargs: Dict[str, Any]) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        while True:
            resp = operation(**kwargs)
            items.extend(from_item(item) for item in resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    # Writes

    def save(self, document: ModelT, expected_version: Optional[int] = None) -> ModelT:
        """
        Create (``expected_version`` is None) or replace a document.

        Returns the stored revision with its bumped version.
        """
        stored = _next_revision(document, expected_version)
        if expected_version is None:
            condition = Attr("id").not_exists()
        else:
            condition = Attr("version").eq(expected_version)
        try:
            self.table.put_item(Item=to_item(stored), ConditionExpression=condition)
        except ClientError as exc:
            if _error_code(exc) == "ConditionalCheckFailedException":
                logger.warning(
                    "Conditional write rejected",
                    extra={
                        "table": self.table_name,
                        "id": stored.id,
                        "expected_version": expected_version,
                    },
                )
                raise ConflictError() from exc
            raise
        return stored

    def delete(self, item_id: str, expected_version: Optional[int] = None) -> None:
        kwargs: Dict[str, Any] = {"Key": {"id": item_id}}
        if expected_version is not None:
            kwargs["ConditionExpression"] = Attr("version").eq(expected_version)
        try:
            self.table.delete_item(**kwargs)
        except ClientError as exc:
            if _error_code(exc) == "ConditionalCheckFailedException":
                raise ConflictError() from exc
            raise


class TransactionWriter:
    """
    Collects conditional puts across tables and commits them with a single
    ``TransactWriteItems`` call: either every document is written or none is.

    Values stay plain Python: the resource's client serializes them the same
    way ``put_item`` does.
    """

    def __init__(self, client=None):
        self._client = client
        self._items: List[Dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._items)

    def save(
        self,
        repo: DynamoDbRepository,
        document: ModelT,
        expected_version: Optional[int],
        require: Optional[Dict[str, Any]] = None,
    ) -> ModelT:
        """
        Queue a write of ``document``.

        ``require`` adds equality conditions on stored attributes, e.g.
        ``{"status": "pending"}``.
        """
        if self._client is None:
            self._client = repo.table.meta.client

        stored = _next_revision(document, expected_version)
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}
        if expected_version is None:
            clauses = ["attribute_not_exists(#id)"]
            names["#id"] = "id"
        else:
            clauses = ["#version = :version"]
            names["#version"] = "version"
            values[":version"] = expected_version
        for position, (attribute, expected) in enumerate((require or {}).items()):
            clauses.append(f"#c{position} = :c{position}")
            names[f"#c{position}"] = attribute
            values[f":c{position}"] = expected

        put: Dict[str, Any] = {
            "TableName": repo.table_name,
            "Item": to_item(stored),
            "ConditionExpression": " AND ".join(clauses),
            "ExpressionAttributeNames": names,
        }
        if values:
            put["ExpressionAttributeValues"] = values
        self._items.append({"Put": put})
        return stored

    def commit(self) -> None:
        if not self._items:
            return
        try:
            self._client.transact_write_items(TransactItems=self._items)
        except ClientError as exc:
            code = _error_code(exc)
            reasons = _cancellation_codes(exc)
            logger.warning(
                "Transaction cancelled",
                extra={"items": len(self._items), "error_code": code, "reasons": reasons},
            )
            if code == "ConditionalCheckFailedException":
                raise ConflictError() from exc
            if code == "TransactionCanceledException" and CONFLICT_REASONS.intersection(reasons):
                raise ConflictError() from exc
            raise
        finally:
            self._items = []

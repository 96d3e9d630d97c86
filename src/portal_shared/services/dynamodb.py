"""Thin DynamoDB layer for the billing tables.

Callers pass short table names (``users``, ``jobs``); the service adds the
environment prefix. Writes come in three shapes: a whole-item put (optionally
conditional), a raw update expression, and ``merge_item``, which upserts a
set of top-level fields the way a document store merges a partial document.
"""

import os
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

CONDITION_FAILED = "ConditionalCheckFailedException"


def _condition_failed(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == CONDITION_FAILED


class DynamoDBService:
    """Table access with ``<prefix>-<table>`` names.

    The prefix is ``DYNAMODB_TABLE_PREFIX`` when set, otherwise
    ``portal-<environment>``. The boto3 resource is created lazily so the
    service can be built at app start-up or inside a moto context.
    """

    def __init__(self, environment: str | None = None, region_name: str | None = None) -> None:
        self.environment = environment or os.getenv("ENVIRONMENT", "dev")
        self.name_prefix = os.getenv("DYNAMODB_TABLE_PREFIX", f"portal-{self.environment}")
        self._region_name = region_name
        self._resource: Any = None

    def _table_name(self, table: str) -> str:
        return f"{self.name_prefix}-{table}"

    def _table(self, table: str) -> Any:
        if self._resource is None:
            self._resource = boto3.resource("dynamodb", region_name=self._region_name)
        return self._resource.Table(self._table_name(table))

    def get_item(
        self,
        table: str,
        key: dict[str, Any],
        consistent_read: bool = True,
    ) -> dict[str, Any] | None:
        """Fetch one item, or None when the key is absent.

        Reads are strongly consistent by default; the dedup ledger depends
        on seeing a marker written moments earlier.
        """
        response = self._table(table).get_item(Key=key, ConsistentRead=consistent_read)
        item: dict[str, Any] | None = response.get("Item")
        return item

    def put_item(
        self,
        table: str,
        item: dict[str, Any],
        condition_expression: str | None = None,
    ) -> bool:
        """Write a whole item.

        Returns:
            False when ``condition_expression`` did not hold, True otherwise
        """
        params: dict[str, Any] = {"Item": item}
        if condition_expression:
            params["ConditionExpression"] = condition_expression
        try:
            self._table(table).put_item(**params)
        except ClientError as e:
            if _condition_failed(e):
                return False
            raise
        return True

    def update_item(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any],
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any] | None:
        """Apply an update expression and return the item as it now stands.

        Returns None when ``condition_expression`` did not hold.
        """
        params: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": update_expression,
            "ReturnValues": "ALL_NEW",
        }
        if expression_attribute_values:
            params["ExpressionAttributeValues"] = expression_attribute_values
        if expression_attribute_names:
            params["ExpressionAttributeNames"] = expression_attribute_names
        if condition_expression:
            params["ConditionExpression"] = condition_expression
        try:
            response = self._table(table).update_item(**params)
        except ClientError as e:
            if _condition_failed(e):
                return None
            raise
        attributes: dict[str, Any] | None = response.get("Attributes")
        return attributes

    def merge_item(
        self,
        table: str,
        key: dict[str, Any],
        fields: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Set the given top-level fields, creating the item if needed.

        Fields not named are left as they are. A field whose value is None
        is removed rather than stored as NULL, so optional index keys stay
        valid. Every attribute name goes through a placeholder, which keeps
        reserved words such as ``status`` and ``type`` usable.

        Returns:
            The full item after the write
        """
        fields = {name: value for name, value in fields.items() if name not in key}
        if not fields:
            return self.get_item(table, key)

        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        assignments: list[str] = []
        removals: list[str] = []
        for index, (name, value) in enumerate(fields.items()):
            names[f"#f{index}"] = name
            if value is None:
                removals.append(f"#f{index}")
            else:
                values[f":v{index}"] = value
                assignments.append(f"#f{index} = :v{index}")

        clauses = []
        if assignments:
            clauses.append("SET " + ", ".join(assignments))
        if removals:
            clauses.append("REMOVE " + ", ".join(removals))

        return self.update_item(table, key, " ".join(clauses), values, names)

    def query_by_gsi(
        self,
        table: str,
        index_name: str,
        partition_key_name: str,
        partition_key_value: str,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Items whose index partition key equals ``partition_key_value``."""
        params: dict[str, Any] = {
            "IndexName": index_name,
            "KeyConditionExpression": Key(partition_key_name).eq(partition_key_value),
        }
        if limit:
            params["Limit"] = limit
        items: list[dict[str, Any]] = self._table(table).query(**params).get("Items", [])
        return items

from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta

import pytest
from botocore.exceptions import ClientError

from pairing_engine import (
    EngineSettings,
    LocalLock,
    TournamentEngine,
    TournamentStorage,
    Variant,
)
from pairing_engine.models import format_timestamp

TOURNAMENT_ID = "cup"


def _conditional_failure(operation: str) -> ClientError:
    return ClientError(
        {
            "Error": {
                "Code": "ConditionalCheckFailedException",
                "Message": "The conditional request failed",
            }
        },
        operation,
    )


class FakeTable:
    """In-memory stand-in for a boto3 DynamoDB ``Table`` resource."""

    def __init__(self, page_size: int | None = None) -> None:
        self.items: dict[tuple[str, str], dict[str, object]] = {}
        self.page_size = page_size
        self.query_calls = 0

    def get_item(self, *, Key, ConsistentRead=False):
        del ConsistentRead
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": dict(item)} if item is not None else {}

    def put_item(
        self, *, Item, ConditionExpression=None, ExpressionAttributeValues=None
    ):
        key = (Item["pk"], Item["sk"])
        if ConditionExpression == "attribute_not_exists(pk) OR expires_at < :now":
            existing = self.items.get(key)
            now = ExpressionAttributeValues[":now"]
            if existing is not None and not existing["expires_at"] < now:
                raise _conditional_failure("PutItem")
        self.items[key] = dict(Item)

    def delete_item(
        self,
        *,
        Key,
        ConditionExpression=None,
        ExpressionAttributeNames=None,
        ExpressionAttributeValues=None,
    ):
        del ExpressionAttributeNames
        item_key = (Key["pk"], Key["sk"])
        existing = self.items.get(item_key)
        if ConditionExpression is not None and existing is None:
            raise _conditional_failure("DeleteItem")
        if ConditionExpression == "#owner = :owner":
            if existing["owner"] != ExpressionAttributeValues[":owner"]:
                raise _conditional_failure("DeleteItem")
        self.items.pop(item_key, None)

    def query(
        self,
        *,
        KeyConditionExpression,
        Select="ALL_ATTRIBUTES",
        ExclusiveStartKey=None,
        **_kwargs,
    ):
        self.query_calls += 1
        pk_value = None
        sk_prefix = ""
        for condition in KeyConditionExpression._values:  # type: ignore[attr-defined]
            key, value = condition._values  # type: ignore[attr-defined]
            if key.name == "pk":  # pragma: no branch - helper
                pk_value = value
            elif key.name == "sk":
                sk_prefix = value
        matching_keys = [
            key
            for key in sorted(self.items)
            if key[0] == pk_value and key[1].startswith(sk_prefix)
        ]
        if ExclusiveStartKey is not None:
            start = (ExclusiveStartKey["pk"], ExclusiveStartKey["sk"])
            matching_keys = [key for key in matching_keys if key > start]
        response: dict[str, object] = {}
        if self.page_size is not None and len(matching_keys) > self.page_size:
            matching_keys = matching_keys[: self.page_size]
            last = matching_keys[-1]
            response["LastEvaluatedKey"] = {"pk": last[0], "sk": last[1]}
        items = [dict(self.items[key]) for key in matching_keys]
        if Select == "COUNT":
            response["Count"] = len(items)
            return response
        response.update({"Items": items, "Count": len(items)})
        return response


class FakeClock:
    """Returns a strictly increasing timestamp, one second apart per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> str:
        self.current += timedelta(seconds=1)
        return format_timestamp(self.current)


@pytest.fixture
def table() -> FakeTable:
    return FakeTable()


@pytest.fixture
def storage(table: FakeTable) -> TournamentStorage:
    return TournamentStorage(table)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_engine(
    table: FakeTable,
    variant: Variant,
    *,
    clock: FakeClock | None = None,
    seed: int = 7,
    auto_match: bool = True,
) -> TournamentEngine:
    settings = EngineSettings(
        table_name="pairing-test",
        tournament_id=TOURNAMENT_ID,
        variant=variant,
        lock_timeout=0.1,
        random_seed=seed,
        auto_match=auto_match,
    )
    return TournamentEngine(
        TournamentStorage(table),
        settings,
        lock=LocalLock(settings.lock_timeout),
        rng=random.Random(seed),
        clock=clock or FakeClock(),
    )


@pytest.fixture
def ladder_engine(table: FakeTable, clock: FakeClock) -> TournamentEngine:
    return make_engine(table, Variant.LADDER, clock=clock)


@pytest.fixture
def swiss_engine(table: FakeTable, clock: FakeClock) -> TournamentEngine:
    return make_engine(table, Variant.SWISS, clock=clock)

from __future__ import annotations

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from .models import (
    MATCH_ID_PREFIX,
    PLAYER_ID_PREFIX,
    MatchRecord,
    Player,
    TableSlot,
    TournamentConfig,
    format_match_id,
    format_player_id,
    id_number,
)


class TournamentStorage:
    """Typed access to the players, match history, tables and config items.

    Everything for one tournament lives under a single partition key, so every
    "sheet" is a ``begins_with`` query on the sort key.
    """

    def __init__(self, table) -> None:
        self._table = table

    def ensure_table(self) -> None:
        if self._table is None:
            raise RuntimeError("Pairing table is not configured")

    def _get(self, key: dict[str, str]) -> dict[str, object] | None:
        self.ensure_table()
        resp = self._table.get_item(Key=key, ConsistentRead=True)
        return resp.get("Item") or None

    def _query_prefix(self, tournament_id: str, prefix: str) -> list[dict[str, object]]:
        self.ensure_table()
        kwargs: dict[str, object] = {
            "KeyConditionExpression": Key("pk").eq(
                TournamentConfig.PK_TEMPLATE % tournament_id
            )
            & Key("sk").begins_with(prefix),
            "Select": "ALL_ATTRIBUTES",
            "ConsistentRead": True,
        }
        items: list[dict[str, object]] = []
        while True:
            resp = self._table.query(**kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    # ----- Players -----
    def get_player(self, tournament_id: str, player_id: str) -> Player | None:
        item = self._get(Player.key(tournament_id, player_id))
        if item is None:
            return None
        return Player.from_item(item)

    def list_players(self, tournament_id: str) -> list[Player]:
        players = [
            Player.from_item(item)
            for item in self._query_prefix(tournament_id, Player.SK_PREFIX)
        ]
        players.sort(key=lambda player: (player.number, player.player_id))
        return players

    def save_player(self, player: Player) -> None:
        self.ensure_table()
        self._table.put_item(Item=player.to_item())

    def next_player_id(self, tournament_id: str) -> str:
        highest = 0
        for item in self._query_prefix(tournament_id, Player.SK_PREFIX):
            number = id_number(str(item.get("player_id", "")), PLAYER_ID_PREFIX)
            if number is not None and number > highest:
                highest = number
        return format_player_id(highest + 1)

    # ----- Match history -----
    def get_match(self, tournament_id: str, match_id: str) -> MatchRecord | None:
        item = self._get(MatchRecord.key(tournament_id, match_id))
        if item is None:
            return None
        return MatchRecord.from_item(item)

    def list_matches(self, tournament_id: str) -> list[MatchRecord]:
        records = [
            MatchRecord.from_item(item)
            for item in self._query_prefix(tournament_id, MatchRecord.SK_PREFIX)
        ]
        records.sort(key=lambda record: (record.number, record.match_id))
        return records

    def save_match(self, record: MatchRecord) -> None:
        self.ensure_table()
        self._table.put_item(Item=record.to_item())

    def next_match_id(self, tournament_id: str) -> str:
        highest = 0
        for item in self._query_prefix(tournament_id, MatchRecord.SK_PREFIX):
            number = id_number(str(item.get("match_id", "")), MATCH_ID_PREFIX)
            if number is not None and number > highest:
                highest = number
        return format_match_id(highest + 1)

    # ----- Tables -----
    def list_tables(self, tournament_id: str) -> list[TableSlot]:
        slots = [
            TableSlot.from_item(item)
            for item in self._query_prefix(tournament_id, TableSlot.SK_PREFIX)
        ]
        slots.sort(key=lambda slot: slot.table_number)
        return slots

    def save_table(self, slot: TableSlot) -> None:
        self.ensure_table()
        self._table.put_item(Item=slot.to_item())

    def _delete_prefix(self, tournament_id: str, prefix: str) -> int:
        items = self._query_prefix(tournament_id, prefix)
        for item in items:
            try:
                self._table.delete_item(
                    Key={"pk": item["pk"], "sk": item["sk"]},
                    ConditionExpression="attribute_exists(pk)",
                )
            except ClientError as exc:
                code = exc.response.get("Error", {}).get("Code")
                if code != "ConditionalCheckFailedException":
                    raise
        return len(items)

    def clear_tables(self, tournament_id: str) -> int:
        return self._delete_prefix(tournament_id, TableSlot.SK_PREFIX)

    def clear_matches(self, tournament_id: str) -> int:
        return self._delete_prefix(tournament_id, MatchRecord.SK_PREFIX)

    # ----- Configuration -----
    def get_config(self, tournament_id: str) -> TournamentConfig:
        item = self._get(TournamentConfig.key(tournament_id))
        if item is None:
            return TournamentConfig(tournament_id=tournament_id)
        return TournamentConfig.from_item(item)

    def save_config(self, config: TournamentConfig) -> None:
        self.ensure_table()
        self._table.put_item(Item=config.to_item())


__all__ = ["TournamentStorage"]

"""Command line front end for tournament operators."""

from __future__ import annotations

import argparse
import json
import logging
from collections.abc import Sequence
from dataclasses import replace

import boto3

from .config import EngineSettings, read_settings, read_variant
from .engine import CommandResult, TournamentEngine

log = logging.getLogger("pairing-engine.cli")

# command name -> (engine method, positional argument or None, help)
COMMANDS: dict[str, tuple[str, str | None, str]] = {
    "register": ("register_player", "name", "Register a player"),
    "dropout": ("dropout_player", "player_id", "Drop a player from the tournament"),
    "rest": ("set_player_resting", "player_id", "Take a ladder player off the queue"),
    "return": (
        "return_player_from_resting",
        "player_id",
        "Put a resting ladder player back in the queue",
    ),
    "match": ("match_players", None, "Pair every waiting ladder player"),
    "result": ("record_result", "winner_id", "Record a ladder win"),
    "win": ("record_win_loss", "winner_id", "Record a Swiss win"),
    "draw": ("record_draw", "player_id", "Record a draw for a player's match"),
    "correct": ("correct_match_result", "match_id", "Swap the winner of a match"),
    "start-round": ("start_new_round", None, "Start the next Swiss round"),
    "finish": ("finish_tournament", None, "Finish the Swiss tournament"),
    "reset": ("reset_tournament", None, "Clear results and return to round 0"),
    "status": ("round_status", None, "Show progress of the current Swiss round"),
    "max-tables": ("configure_max_tables", "count", "Set the number of tables"),
    "standings": ("show_standings", None, "Show the standings"),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pairing-engine",
        description="Run tournament pairing commands against a DynamoDB table",
    )
    parser.add_argument(
        "--tournament",
        type=str,
        default=None,
        help="Tournament id (defaults to PAIRING_TOURNAMENT_ID)",
    )
    parser.add_argument(
        "--variant",
        choices=("ladder", "swiss"),
        default=None,
        help="Tournament variant (defaults to PAIRING_VARIANT)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full command result as JSON",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, (_, argument, help_text) in COMMANDS.items():
        sub = subparsers.add_parser(name, help=help_text)
        if argument == "name":
            sub.add_argument("name", nargs="?", default=None)
        elif argument is not None:
            sub.add_argument(argument)
    return parser


def resolve_settings(args: argparse.Namespace, base: EngineSettings) -> EngineSettings:
    settings = base
    if args.tournament:
        settings = replace(settings, tournament_id=args.tournament)
    if args.variant:
        settings = replace(settings, variant=read_variant(args.variant))
    return settings


def connect_table(settings: EngineSettings):
    if not settings.table_name:
        raise RuntimeError("PAIRING_TABLE_NAME environment variable is required")
    dynamodb = boto3.resource("dynamodb", region_name=settings.region)
    return dynamodb.Table(settings.table_name)


def run_command(engine: TournamentEngine, args: argparse.Namespace) -> CommandResult:
    method_name, argument, _ = COMMANDS[args.command]
    method = getattr(engine, method_name)
    if argument is None:
        return method()
    return method(getattr(args, argument))


def print_result(result: CommandResult, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return
    print(result.message)
    follow_up = result.payload.get("auto_match")
    if isinstance(follow_up, dict) and follow_up.get("tables"):
        print(follow_up.get("message", ""))


def main(argv: Sequence[str] | None = None, *, table=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    settings = resolve_settings(args, read_settings())
    if table is None:
        table = connect_table(settings)
    engine = TournamentEngine.from_table(table, settings)
    log.debug("Running %s for tournament %s", args.command, settings.tournament_id)
    result = run_command(engine, args)
    print_result(result, as_json=args.json)
    return 0 if result.success else 1


__all__ = ["COMMANDS", "build_parser", "main", "run_command"]

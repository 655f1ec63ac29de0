#!/usr/bin/env python3
"""Convert exported chat messages with shared puzzle results into a dataset."""

from __future__ import annotations

import argparse
import json
import re
import sys
import warnings
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Iterable

from puzzle_board.aggregates import game_number_to_date
from puzzle_board.dataset import Dataset, DatasetValidationError
from puzzle_board.metrics import Metric

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_OUTPUT = ROOT / "public" / "data" / "game_data.json"

HEADER_PATTERN = re.compile(r"^([^\n]+?)\s+sent the following message", re.MULTILINE)

_TIMED_RESULT = r"#(\d+)\s*\|\s*([\d:]+)(?:\s*and flawless)?"
GAME_PATTERNS: dict[str, re.Pattern[str]] = {
    "zip": re.compile(r"Zip " + _TIMED_RESULT, re.IGNORECASE),
    "tango": re.compile(r"Tango " + _TIMED_RESULT, re.IGNORECASE),
    "queens": re.compile(r"Queens " + _TIMED_RESULT, re.IGNORECASE),
    "minisudoku": re.compile(r"Mini Sudoku " + _TIMED_RESULT, re.IGNORECASE),
    "pinpoint": re.compile(r"Pinpoint #(\d+)(?:\s*\|\s*(\d+)\s*guesses?)?", re.IGNORECASE),
    "crossclimb": re.compile(r"Crossclimb " + _TIMED_RESULT, re.IGNORECASE),
}
BACKTRACKS_PATTERN = re.compile(r"With (\d+) backtracks?", re.IGNORECASE)

GAME_CONFIGS: dict[str, dict[str, bool]] = {
    "zip": {"hasTime": True, "hasBacktracks": True},
    "tango": {"hasTime": True},
    "queens": {"hasTime": True},
    "crossclimb": {"hasTime": True},
    "minisudoku": {"hasTime": True},
    "pinpoint": {"hasGuesses": True},
}


@dataclass
class ParsedMessage:
    player_name: str
    entry: dict[str, Any]


def normalize_player_id(player_name: str) -> str:
    """Build a stable identifier from a display name (``"Jane Doe!"`` -> ``"janedoe"``)."""

    cleaned = re.sub(r"[^a-z0-9\s]", "", player_name.lower())
    return re.sub(r"\s+", "", cleaned).strip()


def parse_time(value: str) -> int:
    """Parse ``m:ss`` into seconds; any other shape counts as ``0``."""

    parts = value.split(":")
    if len(parts) != 2:
        return 0
    try:
        return int(parts[0]) * 60 + int(parts[1])
    except ValueError:
        return 0


def infer_game_config(game_id: str) -> dict[str, bool]:
    return dict(GAME_CONFIGS.get(game_id.lower(), {"hasTime": True}))


def extract_player_name(message: str) -> str | None:
    match = HEADER_PATTERN.match(message.strip())
    return match.group(1).strip() if match else None


def parse_message(message: str, *, on_date: date | None = None) -> ParsedMessage | None:
    """Parse one chat message, returning ``None`` when it carries no game result."""

    message = message.strip()
    if not message:
        return None
    player_name = extract_player_name(message)
    if not player_name:
        return None

    for game_id, pattern in GAME_PATTERNS.items():
        match = pattern.search(message)
        if not match:
            continue
        game_num = int(match.group(1))
        metrics: dict[str, int] = {}
        if game_id == "pinpoint":
            # Some Pinpoint shares omit the guess count.
            if match.group(2):
                metrics[Metric.GUESSES.value] = int(match.group(2))
        else:
            metrics[Metric.TIME.value] = parse_time(match.group(2))

        if game_id == "zip":
            backtracks = BACKTRACKS_PATTERN.search(message)
            if backtracks:
                metrics[Metric.BACKTRACKS.value] = int(backtracks.group(1))
            elif "no backtracks" in message.lower():
                metrics[Metric.BACKTRACKS.value] = 0

        played_on = on_date.isoformat() if on_date else game_number_to_date(game_id, game_num)
        entry = {
            "playerId": normalize_player_id(player_name),
            "game": game_id,
            "gameNum": game_num,
            "date": played_on,
            "metrics": metrics,
        }
        return ParsedMessage(player_name=player_name, entry=entry)
    return None


def split_messages(text: str) -> list[str]:
    """Split a chat export into messages, each starting at a sender header line."""

    starts = [match.start() for match in HEADER_PATTERN.finditer(text)]
    if not starts:
        return []
    bounds = starts + [len(text)]
    return [text[start:end].strip() for start, end in zip(bounds, bounds[1:])]


def parse_batch(messages: Iterable[str], *, on_date: date | None = None) -> dict[str, Any]:
    """Parse every message into a ``{"players", "games", "entries"}`` payload."""

    payload: dict[str, Any] = {"players": {}, "games": {}, "entries": []}
    for index, message in enumerate(messages, start=1):
        try:
            parsed = parse_message(message, on_date=on_date)
        except (AttributeError, TypeError, ValueError) as exc:
            warnings.warn(f"Failed to parse message {index}: {exc}", stacklevel=2)
            continue
        if parsed is None:
            continue
        entry = parsed.entry
        if not entry["playerId"]:
            warnings.warn(f"Message {index} has no usable sender name: {parsed.player_name!r}", stacklevel=2)
            continue
        payload["entries"].append(entry)
        payload["players"].setdefault(entry["playerId"], parsed.player_name)
        if entry["game"] not in payload["games"]:
            payload["games"][entry["game"]] = infer_game_config(entry["game"])
    return payload


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--input", type=Path, required=True, help="Plain-text chat export to parse.")
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT,
        help="Destination for the dataset JSON (default: public/data/game_data.json).",
    )
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Record every entry on this ISO date instead of deriving it from the puzzle number.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    text = args.input.read_text(encoding="utf-8")
    messages = split_messages(text)
    payload = parse_batch(messages, on_date=args.date)
    try:
        dataset = Dataset.from_payload(payload)
    except DatasetValidationError as exc:
        raise SystemExit(str(exc)) from exc

    skipped = len(messages) - len(dataset.entries)
    if skipped:
        print(f"Skipped {skipped} messages without a game result", file=sys.stderr)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(json.dumps(dataset.to_payload(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    print(
        f"Wrote {len(dataset.entries)} entries for {len(dataset.players)} players "
        f"across {len(dataset.games)} games to {args.output}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
"""Build the dashboard JSON (leaderboards, player stats and profiles) from a dataset."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from puzzle_board.aggregates import ALL_TIME, process_dataset
from puzzle_board.data.load_dataset import DatasetLoadError, embed_dataset, load_dataset
from puzzle_board.dataset import Dataset, DatasetValidationError
from puzzle_board.leaderboards import FilterState, build_leaderboard_view
from puzzle_board.metrics import Metric, format_time, game_icon, parse_metric
from puzzle_board.profiles import build_player_profile, comparison_summary

ROOT = Path(__file__).resolve().parents[1]
PUBLIC_DATA_DIR = ROOT / "public" / "data"
DEFAULT_DATA = PUBLIC_DATA_DIR / "game_data.json"
DEFAULT_OUTPUT = PUBLIC_DATA_DIR / "dashboard.json"


def _timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds")


def build_dashboard_payload(
    dataset: Dataset,
    *,
    reference_now: date | datetime,
    state: FilterState | None = None,
) -> dict[str, Any]:
    state = state or FilterState()
    reference_date = reference_now.date() if isinstance(reference_now, datetime) else reference_now
    processed = process_dataset(dataset, reference_now)

    game_stats = {}
    for game_id, stat in processed.game_stats.items():
        payload = stat.to_payload()
        payload["icon"] = game_icon(game_id)
        payload["bestTimeFormatted"] = format_time(stat.best_time) if stat.best_time is not None else "N/A"
        payload["summary"] = comparison_summary(dataset.entries, game_id, dataset.games[game_id])
        game_stats[game_id] = payload

    profiles = {
        player_id: build_player_profile(dataset, processed, player_id).to_payload()
        for player_id in dataset.players
    }

    return {
        "generatedAt": _timestamp(),
        "referenceDate": reference_date.isoformat(),
        "summary": {
            "players": len(dataset.players),
            "games": len(dataset.games),
            "entries": len(dataset.entries),
        },
        "gameStats": game_stats,
        "playerStats": {player_id: stat.to_payload() for player_id, stat in processed.player_stats.items()},
        "recentActivity": [entry.to_payload() for entry in processed.recent_activity],
        "timeRanges": {name: len(entries) for name, entries in processed.time_ranges.items()},
        "leaderboards": build_leaderboard_view(dataset, processed, state, reference_date=reference_date),
        "profiles": profiles,
    }


def _parse_metric_choice(value: str) -> tuple[str, Metric]:
    game_id, sep, metric = value.partition("=")
    if not sep or not game_id.strip():
        raise argparse.ArgumentTypeError(f"Expected GAME=METRIC, got '{value}'")
    try:
        return game_id.strip(), parse_metric(metric)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--data",
        default=str(DEFAULT_DATA),
        help="Dataset JSON file, dashboard HTML page or URL (default: public/data/game_data.json).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT,
        help="Destination for the dashboard JSON (default: public/data/dashboard.json).",
    )
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Reference date for the daily and weekly views (default: today in UTC).",
    )
    parser.add_argument(
        "--range",
        dest="time_range",
        default=ALL_TIME,
        help="Leaderboard time range: daily, weekly or allTime (default: %(default)s).",
    )
    parser.add_argument(
        "--selected-date",
        default=None,
        help="ISO date shown by the daily leaderboard (defaults to the reference date).",
    )
    parser.add_argument("--worst", action="store_true", help="Rank worst performances first.")
    parser.add_argument(
        "--metric",
        action="append",
        type=_parse_metric_choice,
        default=[],
        metavar="GAME=METRIC",
        help="Rank a game by a specific metric (time, guesses or backtracks). Repeatable.",
    )
    parser.add_argument(
        "--embed-html",
        type=Path,
        default=None,
        help="Dashboard page whose game-data script element should receive the dataset.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        dataset = load_dataset(args.data)
    except (DatasetLoadError, DatasetValidationError) as exc:
        raise SystemExit(str(exc)) from exc

    if not dataset.entries:
        print(f"Warning: dataset {args.data} has no game entries", file=sys.stderr)

    reference_now = args.date or datetime.now(UTC).date()
    state = FilterState(
        time_range=args.time_range,
        show_worst_performers=args.worst,
        selected_metrics=dict(args.metric),
        selected_date=args.selected_date,
    )
    payload = build_dashboard_payload(dataset, reference_now=reference_now, state=state)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    print(f"Wrote dashboard data for {len(dataset.entries)} entries to {args.output}")

    if args.embed_html:
        html = args.embed_html.read_text(encoding="utf-8")
        args.embed_html.write_text(embed_dataset(html, dataset), encoding="utf-8")
        print(f"Embedded dataset into {args.embed_html}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""End-to-end checks for the dashboard build step."""

from __future__ import annotations

import json
import sys
from datetime import date, datetime
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from puzzle_board import build_dashboard_data as builder  # noqa: E402
from puzzle_board.aggregates import get_recent_activity, process_dataset  # noqa: E402
from puzzle_board.data.load_dataset import extract_embedded_json  # noqa: E402
from puzzle_board.dataset import Dataset  # noqa: E402
from puzzle_board.leaderboards import FilterState  # noqa: E402

PAYLOAD = {
    "players": {"alice": "Alice Smith", "bob": "Bob Jones"},
    "games": {
        "zip": {"hasTime": True, "hasBacktracks": True},
        "pinpoint": {"hasGuesses": True},
    },
    "entries": [
        {"playerId": "alice", "game": "zip", "gameNum": 166, "date": "2025-08-30", "metrics": {"time": 30, "backtracks": 2}},
        {"playerId": "alice", "game": "zip", "gameNum": 167, "date": "2025-08-31", "metrics": {"time": 25, "backtracks": 5}},
        {"playerId": "bob", "game": "zip", "gameNum": 167, "date": "2025-08-31", "metrics": {"time": 40, "backtracks": 0}},
        {"playerId": "bob", "game": "pinpoint", "gameNum": 488, "date": "2025-08-31", "metrics": {"guesses": 3}},
    ],
}


@pytest.fixture
def dataset() -> Dataset:
    return Dataset.from_payload(PAYLOAD)


def test_dashboard_payload_sections(dataset: Dataset) -> None:
    payload = builder.build_dashboard_payload(dataset, reference_now=date(2025, 8, 31))

    assert payload["referenceDate"] == "2025-08-31"
    assert payload["summary"] == {"players": 2, "games": 2, "entries": 4}
    assert payload["timeRanges"] == {"daily": 3, "weekly": 4, "allTime": 4}
    assert set(payload["profiles"]) == {"alice", "bob"}
    assert payload["playerStats"]["alice"]["bestTimes"] == {"zip": 25}

    zip_stats = payload["gameStats"]["zip"]
    assert zip_stats["totalPlays"] == 3
    assert zip_stats["uniquePlayers"] == 2
    assert zip_stats["bestTimeFormatted"] == "25s"
    assert zip_stats["avgTime"] == pytest.approx(95 / 3)
    assert zip_stats["summary"] == {"totalGames": 3, "best": "25s", "average": "32s", "worst": "40s"}
    assert payload["gameStats"]["pinpoint"]["bestTimeFormatted"] == "N/A"

    assert [(item["playerId"], item["gameNum"]) for item in payload["recentActivity"]] == [
        ("alice", 167),
        ("bob", 167),
        ("bob", 488),
        ("alice", 166),
    ]


def test_default_leaderboards_keep_best_entry_per_player(dataset: Dataset) -> None:
    payload = builder.build_dashboard_payload(dataset, reference_now=datetime(2025, 8, 31, 23, 0))
    board = payload["leaderboards"]
    assert board["timeRange"] == "allTime"
    assert board["showWorstPerformers"] is False

    zip_card = board["games"]["zip"]
    assert zip_card["metric"] == "time"
    assert zip_card["metricChoices"] == ["time", "backtracks"]
    assert zip_card["headline"] == "25s"
    assert [(row["rank"], row["playerId"], row["value"]) for row in zip_card["rows"]] == [
        (1, "alice", 25),
        (2, "bob", 40),
    ]
    assert zip_card["rows"][0]["player"] == "Alice"

    pinpoint_card = board["games"]["pinpoint"]
    assert pinpoint_card["metricChoices"] == []
    assert pinpoint_card["headline"] == "3 guesses"


def test_daily_leaderboard_uses_selected_date(dataset: Dataset) -> None:
    today = builder.build_dashboard_payload(
        dataset, reference_now=date(2025, 8, 31), state=FilterState(time_range="daily")
    )
    assert [row["value"] for row in today["leaderboards"]["games"]["zip"]["rows"]] == [25, 40]

    earlier = builder.build_dashboard_payload(
        dataset,
        reference_now=date(2025, 8, 31),
        state=FilterState(time_range="daily", selected_date="2025-08-30"),
    )
    assert list(earlier["leaderboards"]["games"]) == ["zip"]
    assert earlier["leaderboards"]["games"]["zip"]["rows"][0]["gameNum"] == 166


def test_main_writes_dashboard_and_embeds_dataset(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], dataset: Dataset
) -> None:
    data_path = tmp_path / "game_data.json"
    data_path.write_text(json.dumps(PAYLOAD), encoding="utf-8")
    page = tmp_path / "index.html"
    page.write_text("<html><body><div id=\"app\"></div></body></html>", encoding="utf-8")
    output = tmp_path / "public" / "dashboard.json"

    exit_code = builder.main(
        [
            "--data",
            str(data_path),
            "--output",
            str(output),
            "--date",
            "2025-08-31",
            "--worst",
            "--metric",
            "zip=backtracks",
            "--embed-html",
            str(page),
        ]
    )
    assert exit_code == 0

    payload = json.loads(output.read_text(encoding="utf-8"))
    zip_card = payload["leaderboards"]["games"]["zip"]
    assert payload["leaderboards"]["showWorstPerformers"] is True
    assert zip_card["metric"] == "backtracks"
    assert [(row["playerId"], row["valueFormatted"]) for row in zip_card["rows"]] == [
        ("alice", "5 backtracks"),
        ("bob", "0 backtracks"),
    ]

    embedded = json.loads(extract_embedded_json(page.read_text(encoding="utf-8")))
    assert Dataset.from_payload(embedded) == dataset

    out = capsys.readouterr().out
    assert "Wrote dashboard data for 4 entries" in out
    assert "Embedded dataset into" in out


def test_main_rejects_missing_dataset(tmp_path: Path) -> None:
    with pytest.raises(SystemExit, match="does not exist"):
        builder.main(["--data", str(tmp_path / "missing.json"), "--output", str(tmp_path / "out.json")])


def test_main_rejects_malformed_game_config(tmp_path: Path) -> None:
    broken = json.loads(json.dumps(PAYLOAD))
    broken["games"]["zip"] = True
    data_path = tmp_path / "game_data.json"
    data_path.write_text(json.dumps(broken), encoding="utf-8")
    with pytest.raises(SystemExit, match="must be an object"):
        builder.main(["--data", str(data_path), "--output", str(tmp_path / "out.json")])


@pytest.mark.parametrize("time_range", ["allTime", "daily", "weekly"])
def test_empty_dataset_builds_empty_sections(time_range: str) -> None:
    payload = builder.build_dashboard_payload(
        Dataset.empty(), reference_now=date(2025, 8, 31), state=FilterState(time_range=time_range)
    )
    assert payload["summary"] == {"players": 0, "games": 0, "entries": 0}
    assert payload["gameStats"] == {}
    assert payload["playerStats"] == {}
    assert payload["recentActivity"] == []
    assert payload["timeRanges"] == {"daily": 0, "weekly": 0, "allTime": 0}
    assert payload["leaderboards"]["games"] == {}
    assert payload["profiles"] == {}


def test_empty_dataset_processes_to_empty_results() -> None:
    processed = process_dataset(Dataset.empty(), date(2025, 8, 31))
    assert processed.game_stats == {}
    assert processed.player_stats == {}
    assert processed.recent_activity == []
    assert get_recent_activity([]) == []
    assert all(entries == [] for entries in processed.time_ranges.values())


def test_leaderboard_cards_name_the_game_kind(dataset: Dataset) -> None:
    payload = builder.build_dashboard_payload(dataset, reference_now=date(2025, 8, 31))
    cards = payload["leaderboards"]["games"]
    assert cards["zip"]["kind"] == "timed-backtracks"
    assert cards["pinpoint"]["kind"] == "guesses"


@pytest.mark.parametrize("choice",["zip", "zip=score", "=time"])
def test_bad_metric_choice_is_a_usage_error(choice: str) -> None:
    with pytest.raises(SystemExit):
        builder.parse_args(["--metric", choice])

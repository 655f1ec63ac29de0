"""Whole-dataset statistics: per-game stats, per-player stats and time ranges.

Every function here is a pure function of its inputs. Results are rebuilt from
scratch whenever the dataset changes; nothing is cached between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Mapping

from puzzle_board.dataset import Dataset, DatasetIntegrityError, Entry, GameConfig
from puzzle_board.metrics import Metric, get_metric_value

LEADERBOARD_SIZE = 10
RECENT_ENTRIES_PER_GAME = 5
RECENT_ACTIVITY_LIMIT = 15
WEEKLY_WINDOW_DAYS = 7

DAILY = "daily"
WEEKLY = "weekly"
ALL_TIME = "allTime"

# Daily puzzle numbers published on the reference date; one puzzle per day.
GAME_NUMBER_REFERENCE_DATE = date(2025, 8, 30)
GAME_NUMBER_REFERENCES = {
    "zip": 166,
    "queens": 487,
    "tango": 327,
    "pinpoint": 487,
    "minisudoku": 19,
    "crossclimb": 487,
}


@dataclass
class GameStat:
    total_plays: int = 0
    unique_players: int = 0
    best_time: int | None = None
    avg_time: float = 0.0
    leaderboard: list[Entry] = field(default_factory=list)
    recent_entries: list[Entry] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "totalPlays": self.total_plays,
            "uniquePlayers": self.unique_players,
            "bestTime": self.best_time,
            "avgTime": self.avg_time,
            "leaderboard": [entry.to_payload() for entry in self.leaderboard],
            "recentEntries": [entry.to_payload() for entry in self.recent_entries],
        }


@dataclass
class TimeAverage:
    total: int = 0
    count: int = 0
    average: float | None = None


@dataclass
class PlayerStat:
    total_games: int = 0
    games_by_type: dict[str, int] = field(default_factory=dict)
    best_times: dict[str, int] = field(default_factory=dict)
    avg_times: dict[str, TimeAverage] = field(default_factory=dict)
    current_streak: int = 0
    longest_streak: int = 0
    favorite_game: str | None = None
    total_time: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "totalGames": self.total_games,
            "gamesByType": dict(self.games_by_type),
            "bestTimes": dict(self.best_times),
            "avgTimes": {
                game: {"total": avg.total, "count": avg.count, "average": avg.average}
                for game, avg in self.avg_times.items()
            },
            "currentStreak": self.current_streak,
            "longestStreak": self.longest_streak,
            "favoriteGame": self.favorite_game,
            "totalTime": self.total_time,
        }


@dataclass
class ProcessedData:
    game_stats: dict[str, GameStat]
    player_stats: dict[str, PlayerStat]
    recent_activity: list[Entry]
    time_ranges: dict[str, list[Entry]]


def compute_game_stats(entries: Iterable[Entry], games: Mapping[str, GameConfig]) -> dict[str, GameStat]:
    """Aggregate play counts, times and a top-10 leaderboard for every known game.

    Entries for games missing from ``games`` are ignored.
    """

    entries = list(entries)
    stats = {game_id: GameStat() for game_id in games}
    unique_players: dict[str, set[str]] = {game_id: set() for game_id in games}
    timed_plays = {game_id: 0 for game_id in games}

    for entry in entries:
        stat = stats.get(entry.game)
        if stat is None:
            continue
        stat.total_plays += 1
        unique_players[entry.game].add(entry.player_id)

        time_value = entry.metric(Metric.TIME)
        if time_value is not None:
            if stat.best_time is None or time_value < stat.best_time:
                stat.best_time = time_value
            timed_plays[entry.game] += 1
            n = timed_plays[entry.game]
            stat.avg_time = (stat.avg_time * (n - 1) + time_value) / n

        stat.recent_entries.insert(0, entry)
        del stat.recent_entries[RECENT_ENTRIES_PER_GAME:]

    for game_id, config in games.items():
        metric = config.default_metric
        game_entries = [entry for entry in entries if entry.game == game_id]
        game_entries.sort(key=lambda entry: get_metric_value(entry, metric))
        stats[game_id].leaderboard = game_entries[:LEADERBOARD_SIZE]
        stats[game_id].unique_players = len(unique_players[game_id])

    return stats


def _streaks(play_dates: Iterable[date]) -> tuple[int, int]:
    """Return ``(current, longest)`` runs of consecutive play days.

    The current run is the one ending on the latest play date.
    """

    ordered = sorted(set(play_dates))
    if not ordered:
        return 0, 0
    longest = run = 1
    for previous, current in zip(ordered, ordered[1:]):
        run = run + 1 if current - previous == timedelta(days=1) else 1
        longest = max(longest, run)
    return run, longest


def compute_player_stats(entries: Iterable[Entry], players: Mapping[str, str]) -> dict[str, PlayerStat]:
    stats = {player_id: PlayerStat() for player_id in players}
    play_dates: dict[str, set[date]] = {player_id: set() for player_id in players}

    for entry in entries:
        stat = stats.get(entry.player_id)
        if stat is None:
            raise DatasetIntegrityError(
                f"Entry for {entry.game} #{entry.game_num} references unknown player {entry.player_id!r}"
            )
        stat.total_games += 1
        stat.games_by_type[entry.game] = stat.games_by_type.get(entry.game, 0) + 1
        play_dates[entry.player_id].add(entry.played_on)

        time_value = entry.metric(Metric.TIME)
        if time_value is None:
            continue
        stat.total_time += time_value
        best = stat.best_times.get(entry.game)
        if best is None or time_value < best:
            stat.best_times[entry.game] = time_value
        bucket = stat.avg_times.setdefault(entry.game, TimeAverage())
        bucket.total += time_value
        bucket.count += 1

    for player_id, stat in stats.items():
        for bucket in stat.avg_times.values():
            bucket.average = bucket.total / bucket.count

        max_games = 0
        for game, count in stat.games_by_type.items():
            if count > max_games:
                max_games = count
                stat.favorite_game = game

        stat.current_streak, stat.longest_streak = _streaks(play_dates[player_id])

    return stats


def get_recent_activity(entries: Iterable[Entry], limit: int = RECENT_ACTIVITY_LIMIT) -> list[Entry]:
    """Return the latest ``limit`` entries by calendar date, newest first.

    Entries sharing a date keep their input order; the order between them is
    otherwise unspecified.
    """

    ordered = sorted(entries, key=lambda entry: entry.played_on, reverse=True)
    return ordered[:limit]


def _calendar_date(reference_now: date | datetime) -> date:
    if isinstance(reference_now, datetime):
        return reference_now.date()
    return reference_now


def compute_time_range_stats(entries: Iterable[Entry], reference_now: date | datetime) -> dict[str, list[Entry]]:
    """Partition entries into the named time ranges used by the leaderboards.

    Dates are compared as calendar dates exactly as stored; no timezone
    conversion is applied to either side.
    """

    entries = list(entries)
    today = _calendar_date(reference_now)
    week_start = today - timedelta(days=WEEKLY_WINDOW_DAYS - 1)
    return {
        DAILY: [entry for entry in entries if entry.date == today.isoformat()],
        WEEKLY: [entry for entry in entries if week_start <= entry.played_on <= today],
        ALL_TIME: entries,
    }


def game_number_to_date(game_id: str, game_num: int) -> str:
    """Map a daily puzzle number to the ISO date it was published."""

    reference_num = GAME_NUMBER_REFERENCES.get(game_id.lower())
    if reference_num is None:
        return GAME_NUMBER_REFERENCE_DATE.isoformat()
    return (GAME_NUMBER_REFERENCE_DATE + timedelta(days=game_num - reference_num)).isoformat()


def process_dataset(dataset: Dataset, reference_now: date | datetime) -> ProcessedData:
    return ProcessedData(
        game_stats=compute_game_stats(dataset.entries, dataset.games),
        player_stats=compute_player_stats(dataset.entries, dataset.players),
        recent_activity=get_recent_activity(dataset.entries),
        time_ranges=compute_time_range_stats(dataset.entries, reference_now),
    )

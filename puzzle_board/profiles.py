"""Player profile, trend and head-to-head comparison summaries."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, Sequence

from puzzle_board.aggregates import ProcessedData
from puzzle_board.dataset import Dataset, DatasetIntegrityError, Entry, GameConfig
from puzzle_board.metrics import Metric, format_metric_value, get_metric_value, player_display_name

TREND_THRESHOLD = 0.1
TREND_SERIES_LENGTH = 20
PLACEHOLDER = "-"
NO_DATA = "No data"


@dataclass(frozen=True)
class Trend:
    direction: str  # "up" (improving), "down" (declining) or "flat"
    value: float = 0.0

    @property
    def label(self) -> str:
        return {"up": "Improving", "down": "Declining"}.get(self.direction, "Stable")


@dataclass
class GamePerformance:
    game: str
    metric: str
    games: int
    average: float
    best: int
    worst: int
    latest: int
    improvement: Trend
    consistency: float


@dataclass
class PlayerProfile:
    player_id: str
    name: str
    display_name: str
    total_games: int
    total_time: int
    favorite_game: str | None
    current_streak: int
    longest_streak: int
    games: list[GamePerformance] = field(default_factory=list)
    trend: list[dict[str, Any]] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        for performance in payload["games"]:
            performance["improvement"]["label"] = Trend(**performance["improvement"]).label
        return payload


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def player_game_series(entries: Iterable[Entry], player_id: str, game_id: str) -> list[Entry]:
    """Return one player's entries for a game in puzzle-number order."""

    series = [entry for entry in entries if entry.player_id == player_id and entry.game == game_id]
    series.sort(key=lambda entry: entry.game_num)
    return series


def calculate_improvement(values: Sequence[float]) -> Trend:
    """Compare the first and second half averages; lower values mean improvement."""

    if len(values) < 2:
        return Trend("flat")
    midpoint = len(values) // 2
    difference = _mean(values[:midpoint]) - _mean(values[midpoint:])
    if abs(difference) < TREND_THRESHOLD:
        return Trend("flat")
    return Trend("up" if difference > 0 else "down", abs(difference))


def calculate_consistency(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    mean = _mean(values)
    variance = _mean([(value - mean) ** 2 for value in values])
    return round(math.sqrt(variance), 1)


def build_game_performance(game_id: str, series: Sequence[Entry], config: GameConfig) -> GamePerformance | None:
    if not series:
        return None
    metric = config.default_metric
    values = [get_metric_value(entry, metric) for entry in series]
    return GamePerformance(
        game=game_id,
        metric=metric.value,
        games=len(values),
        average=_mean(values),
        best=min(values),
        worst=max(values),
        latest=values[-1],
        improvement=calculate_improvement(values),
        consistency=calculate_consistency(values),
    )


def build_player_profile(dataset: Dataset, processed: ProcessedData, player_id: str) -> PlayerProfile:
    stat = processed.player_stats.get(player_id)
    if stat is None or player_id not in dataset.players:
        raise DatasetIntegrityError(f"Unknown player {player_id!r}")

    player_entries = dataset.player_entries(player_id)
    performances: list[GamePerformance] = []
    for game_id in dict.fromkeys(entry.game for entry in player_entries):
        config = dataset.games.get(game_id)
        if config is None:
            continue
        performance = build_game_performance(game_id, player_game_series(player_entries, player_id, game_id), config)
        if performance is not None:
            performances.append(performance)

    recent = sorted(player_entries, key=lambda entry: entry.played_on)[-TREND_SERIES_LENGTH:]
    trend = []
    for entry in recent:
        config = dataset.games.get(entry.game)
        if config is None:
            continue
        trend.append(
            {
                "date": entry.date,
                "game": entry.game,
                "value": get_metric_value(entry, config.default_metric),
            }
        )

    return PlayerProfile(
        player_id=player_id,
        name=dataset.players[player_id],
        display_name=player_display_name(dataset.players, player_id),
        total_games=stat.total_games,
        total_time=stat.total_time,
        favorite_game=stat.favorite_game,
        current_streak=stat.current_streak,
        longest_streak=stat.longest_streak,
        games=performances,
        trend=trend,
    )


def comparison_summary(entries: Iterable[Entry], game_id: str, config: GameConfig) -> dict[str, Any]:
    """Best, average and worst values for one game across every player."""

    game_entries = sorted((entry for entry in entries if entry.game == game_id), key=lambda entry: entry.game_num)
    summary: dict[str, Any] = {
        "totalGames": len(game_entries),
        "best": PLACEHOLDER,
        "average": PLACEHOLDER,
        "worst": PLACEHOLDER,
    }
    if config.has_time:
        metric = Metric.TIME
    elif config.has_guesses:
        metric = Metric.GUESSES
    else:
        return summary

    values = [value for value in (entry.metric(metric) for entry in game_entries) if value is not None]
    if not values:
        return summary
    summary["best"] = format_metric_value(min(values), metric)
    summary["average"] = format_metric_value(round(_mean(values)), metric)
    summary["worst"] = format_metric_value(max(values), metric)
    return summary


def comparison_rows(dataset: Dataset, game_id: str, player_ids: Iterable[str]) -> list[dict[str, Any]]:
    config = dataset.games.get(game_id)
    if config is None:
        return []
    rows = []
    for player_id in player_ids:
        name = dataset.players.get(player_id) or player_display_name(dataset.players, player_id)
        series = player_game_series(dataset.entries, player_id, game_id)
        performance = build_game_performance(game_id, series, config)
        if performance is None:
            rows.append({"playerId": player_id, "player": name, "status": NO_DATA})
            continue
        rows.append(
            {
                "playerId": player_id,
                "player": name,
                "games": performance.games,
                "average": round(performance.average, 1),
                "best": performance.best,
                "latest": performance.latest,
                "trend": performance.improvement.direction,
                "trendValue": round(performance.improvement.value, 1),
            }
        )
    return rows

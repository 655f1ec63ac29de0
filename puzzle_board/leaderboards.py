"""Filtered per-game leaderboards for the dashboard's current view.

The view state (time range, best/worst toggle, per-game metric) is passed in
explicitly as a :class:`FilterState` on every call and every leaderboard is
recomputed from the entries it is given.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from puzzle_board.aggregates import ALL_TIME, DAILY, ProcessedData
from puzzle_board.dataset import Dataset, Entry, GameConfig
from puzzle_board.metrics import (
    EMPTY_VALUE,
    Metric,
    format_metric_value,
    game_icon,
    get_default_metric,
    get_metric_value,
    player_display_name,
)


@dataclass(frozen=True)
class FilterState:
    time_range: str = ALL_TIME
    show_worst_performers: bool = False
    selected_metrics: Mapping[str, Metric] = field(default_factory=dict, hash=False)
    selected_date: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "selected_metrics", MappingProxyType(dict(self.selected_metrics)))

    def metric_for(self, game_id: str, config: GameConfig) -> Metric:
        return self.selected_metrics.get(game_id) or get_default_metric(config)

    def with_metric(self, game_id: str, metric: Metric) -> "FilterState":
        metrics = dict(self.selected_metrics)
        metrics[game_id] = metric
        return replace(self, selected_metrics=metrics)

    def toggled(self) -> "FilterState":
        return replace(self, show_worst_performers=not self.show_worst_performers)


def available_metrics(config: GameConfig) -> list[Metric]:
    return list(config.metrics)


def metric_choices(config: GameConfig) -> list[Metric]:
    """Metrics offered by the per-game selector; empty when there is nothing to switch."""

    metrics = available_metrics(config)
    return metrics if len(metrics) > 1 else []


def filter_entries(
    dataset: Dataset,
    state: FilterState,
    time_ranges: Mapping[str, list[Entry]],
    reference_date: date | None = None,
) -> list[Entry]:
    if state.time_range == DAILY:
        selected = state.selected_date or (reference_date or date.today()).isoformat()
        return [entry for entry in dataset.entries if entry.date == selected]
    if state.time_range == ALL_TIME:
        return list(dataset.entries)
    partition = time_ranges.get(state.time_range)
    if partition is None:
        return list(dataset.entries)
    return list(partition)


def _collapse_per_player(entries: Iterable[Entry], metric: Metric, worst: bool) -> list[Entry]:
    kept: dict[str, Entry] = {}
    for entry in entries:
        current = kept.get(entry.player_id)
        if current is None:
            kept[entry.player_id] = entry
            continue
        new_value = get_metric_value(entry, metric)
        current_value = get_metric_value(current, metric)
        if (new_value > current_value) if worst else (new_value < current_value):
            kept[entry.player_id] = entry
    return list(kept.values())


def compute_filtered_game_stats(
    entries: Iterable[Entry],
    games: Mapping[str, GameConfig],
    state: FilterState,
) -> dict[str, list[Entry]]:
    """Group already time-filtered entries by game and rank them.

    The all-time view keeps each player's best entry (worst entry when
    ``show_worst_performers`` is set) before sorting. Ascending order in best
    mode, descending in worst mode. Missing metric values compare as ``0``.
    """

    grouped: dict[str, list[Entry]] = {}
    for entry in entries:
        if entry.game not in games:
            continue
        grouped.setdefault(entry.game, []).append(entry)

    worst = state.show_worst_performers
    for game_id, game_entries in grouped.items():
        metric = state.metric_for(game_id, games[game_id])
        if state.time_range == ALL_TIME:
            game_entries = _collapse_per_player(game_entries, metric, worst)
        grouped[game_id] = sorted(
            game_entries,
            key=lambda entry: get_metric_value(entry, metric),
            reverse=worst,
        )
    return grouped


def format_best_metric(entries: list[Entry], metric: Metric) -> str:
    if not entries:
        return EMPTY_VALUE
    return format_metric_value(get_metric_value(entries[0], metric), metric)


def build_leaderboard_view(
    dataset: Dataset,
    processed: ProcessedData,
    state: FilterState,
    *,
    reference_date: date | None = None,
    nicknames: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the JSON-ready leaderboards for ``state``, one card per game."""

    entries = filter_entries(dataset, state, processed.time_ranges, reference_date)
    ranked = compute_filtered_game_stats(entries, dataset.games, state)

    cards: dict[str, Any] = {}
    for game_id, game_entries in ranked.items():
        config = dataset.games[game_id]
        metric = state.metric_for(game_id, config)
        cards[game_id] = {
            "icon": game_icon(game_id),
            "kind": config.kind.slug,
            "metric": metric.value,
            "metricChoices": [choice.value for choice in metric_choices(config)],
            "headline": format_best_metric(game_entries, metric),
            "rows": [
                {
                    "rank": rank,
                    "playerId": entry.player_id,
                    "player": player_display_name(dataset.players, entry.player_id, nicknames),
                    "gameNum": entry.game_num,
                    "date": entry.date,
                    "value": get_metric_value(entry, metric),
                    "valueFormatted": format_metric_value(get_metric_value(entry, metric), metric),
                }
                for rank, entry in enumerate(game_entries, start=1)
            ],
        }
    return {
        "timeRange": state.time_range,
        "showWorstPerformers": state.show_worst_performers,
        "games": cards,
    }

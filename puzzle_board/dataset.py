"""Dataset records for the puzzle dashboard and their load-time validation.

A dataset is loaded once and never mutated: players map an identifier to a
display name, games map an identifier to the metrics the game records, and
entries are the individual plays. Validation happens here, at load time, so
the aggregation modules can assume every entry resolves to a known player.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Any, Mapping

from puzzle_board.metrics import METRIC_PRIORITY, GameKind, Metric


class DatasetValidationError(ValueError):
    """Raised when a dataset payload fails load-time validation."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        summary = "; ".join(self.errors[:5])
        if len(self.errors) > 5:
            summary += f" (and {len(self.errors) - 5} more)"
        super().__init__(f"Invalid dataset: {summary}")


class DatasetIntegrityError(LookupError):
    """Raised when an entry references a player the dataset does not define."""


REQUIRED_ENTRY_FIELDS = ("playerId", "game", "date", "metrics")
GAME_FLAGS = ("hasTime", "hasGuesses", "hasBacktracks")


@dataclass(frozen=True)
class GameConfig:
    has_time: bool = False
    has_guesses: bool = False
    has_backtracks: bool = False
    kind: GameKind = field(init=False, repr=False, compare=False)
    metrics: tuple[Metric, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        flags = {
            Metric.TIME: self.has_time,
            Metric.GUESSES: self.has_guesses,
            Metric.BACKTRACKS: self.has_backtracks,
        }
        object.__setattr__(self, "kind", GameKind.classify(self.has_time, self.has_guesses, self.has_backtracks))
        object.__setattr__(self, "metrics", tuple(metric for metric in METRIC_PRIORITY if flags[metric]))

    @property
    def default_metric(self) -> Metric:
        return self.kind.default_metric

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "GameConfig":
        return cls(
            has_time=bool(payload.get("hasTime")),
            has_guesses=bool(payload.get("hasGuesses")),
            has_backtracks=bool(payload.get("hasBacktracks")),
        )

    def to_payload(self) -> dict[str, bool]:
        payload: dict[str, bool] = {}
        if self.has_time:
            payload["hasTime"] = True
        if self.has_guesses:
            payload["hasGuesses"] = True
        if self.has_backtracks:
            payload["hasBacktracks"] = True
        return payload


@dataclass(frozen=True)
class Entry:
    player_id: str
    game: str
    game_num: int
    date: str
    metrics: Mapping[Metric, int] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    @property
    def played_on(self) -> date:
        return date.fromisoformat(self.date)

    def metric(self, metric: Metric) -> int | None:
        return self.metrics.get(metric)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Entry":
        raw_metrics = payload.get("metrics") or {}
        metrics: dict[Metric, int] = {}
        for metric in METRIC_PRIORITY:
            value = raw_metrics.get(metric.value)
            # ``null`` (e.g. a Pinpoint share without a guess count) means absent.
            if value is not None:
                metrics[metric] = int(value)
        return cls(
            player_id=str(payload["playerId"]),
            game=str(payload["game"]),
            game_num=int(payload.get("gameNum") or 0),
            date=str(payload["date"]).strip(),
            metrics=metrics,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "playerId": self.player_id,
            "game": self.game,
            "gameNum": self.game_num,
            "date": self.date,
            "metrics": {metric.value: value for metric, value in self.metrics.items()},
        }


@dataclass(frozen=True)
class Dataset:
    players: Mapping[str, str]
    games: Mapping[str, GameConfig]
    entries: tuple[Entry, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "players", MappingProxyType(dict(self.players)))
        object.__setattr__(self, "games", MappingProxyType(dict(self.games)))
        object.__setattr__(self, "entries", tuple(self.entries))

    @classmethod
    def empty(cls) -> "Dataset":
        return cls(players={}, games={}, entries=())

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Dataset":
        """Validate ``payload`` and build the dataset, raising on any rejection."""

        errors = _entry_errors(payload)
        if errors:
            raise DatasetValidationError(errors)
        players = {str(player_id): str(name) for player_id, name in (payload.get("players") or {}).items()}
        games = {
            str(game_id): GameConfig.from_payload(config or {})
            for game_id, config in (payload.get("games") or {}).items()
        }
        entries = tuple(Entry.from_payload(raw) for raw in payload.get("entries") or [])
        return cls(players=players, games=games, entries=entries)

    def to_payload(self) -> dict[str, Any]:
        return {
            "players": dict(self.players),
            "games": {game_id: config.to_payload() for game_id, config in self.games.items()},
            "entries": [entry.to_payload() for entry in self.entries],
        }

    def player_entries(self, player_id: str) -> list[Entry]:
        return [entry for entry in self.entries if entry.player_id == player_id]


def _is_iso_date(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        date.fromisoformat(value.strip())
    except ValueError:
        return False
    return True


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _entry_errors(payload: Mapping[str, Any]) -> list[str]:
    errors: list[str] = []
    players = payload.get("players") or {}
    entries = payload.get("entries") or []
    if not isinstance(players, Mapping):
        return ["Players must be an object keyed by player id"]
    games = payload.get("games") or {}
    if not isinstance(games, Mapping):
        return ["Games must be an object keyed by game id"]
    if not isinstance(entries, list):
        return ["Entries must be a list"]

    for game_id, config in games.items():
        if config is None:
            continue
        if not isinstance(config, Mapping):
            errors.append(f"Game {game_id!r} must be an object")
            continue
        for flag in GAME_FLAGS:
            if flag in config and not isinstance(config[flag], bool):
                errors.append(f"Game {game_id!r} has a non-boolean {flag} flag: {config[flag]!r}")

    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, Mapping):
            errors.append(f"Entry {index} is not an object")
            continue
        missing = [key for key in REQUIRED_ENTRY_FIELDS if entry.get(key) in (None, "")]
        if missing or not isinstance(entry["metrics"], Mapping):
            errors.append(f"Entry {index} is missing required fields")
            continue
        if not _is_iso_date(entry["date"]):
            errors.append(f"Entry {index} has an invalid date: {entry['date']!r}")
        game_num = entry.get("gameNum")
        if game_num is not None and not _is_count(game_num):
            errors.append(f"Entry {index} has an invalid game number: {game_num!r}")
        for key, value in entry["metrics"].items():
            if value is None:
                continue
            if key not in {metric.value for metric in Metric}:
                errors.append(f"Entry {index} has an unknown metric: {key!r}")
            elif not _is_count(value):
                errors.append(f"Entry {index} has an invalid {key} value: {value!r}")
        if str(entry["playerId"]) not in players:
            errors.append(f"Entry {index} references unknown player {entry['playerId']!r}")
    return errors


def validate_payload(payload: Mapping[str, Any]) -> list[str]:
    """Return every validation problem for ``payload`` (empty when it is valid)."""

    errors: list[str] = []
    if not payload.get("players"):
        errors.append("No players found")
    if not payload.get("games"):
        errors.append("No games found")
    if not payload.get("entries"):
        errors.append("No game entries found")
    errors.extend(_entry_errors(payload))
    return errors


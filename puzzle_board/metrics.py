"""Metric types, game kinds and display formatting shared by the build steps."""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class Metric(str, Enum):
    """A numeric performance measure. Lower is better for every metric."""

    TIME = "time"
    GUESSES = "guesses"
    BACKTRACKS = "backtracks"

    @property
    def label(self) -> str:
        return self.value.capitalize()


# Priority order used to pick a game's default ranking metric.
METRIC_PRIORITY: tuple[Metric, ...] = (Metric.TIME, Metric.GUESSES, Metric.BACKTRACKS)


class GameKind(Enum):
    TIMED = ("timed", Metric.TIME)
    TIMED_WITH_BACKTRACKS = ("timed-backtracks", Metric.TIME)
    GUESSES = ("guesses", Metric.GUESSES)
    BACKTRACKS = ("backtracks", Metric.BACKTRACKS)
    UNMETERED = ("unmetered", Metric.TIME)

    def __init__(self, slug: str, default_metric: Metric) -> None:
        self.slug = slug
        self.default_metric = default_metric

    @classmethod
    def classify(cls, has_time: bool, has_guesses: bool, has_backtracks: bool) -> "GameKind":
        if has_time:
            return cls.TIMED_WITH_BACKTRACKS if has_backtracks else cls.TIMED
        if has_guesses:
            return cls.GUESSES
        if has_backtracks:
            return cls.BACKTRACKS
        return cls.UNMETERED


GAME_ICONS = {
    "zip": "🏁",
    "tango": "🎯",
    "queens": "👑",
    "crossclimb": "🪜",
    "minisudoku": "🔢",
    "pinpoint": "🎯",
}
DEFAULT_GAME_ICON = "🎮"

UNKNOWN_PLAYER = "Unknown"
EMPTY_VALUE = "N/A"


def parse_metric(value: str) -> Metric:
    try:
        return Metric(value.strip().lower())
    except ValueError as exc:
        choices = ", ".join(metric.value for metric in Metric)
        raise ValueError(f"Unknown metric '{value}' (expected one of: {choices})") from exc


def get_default_metric(config: Any) -> Metric:
    """Return the ranking metric for a game: time, then guesses, then backtracks."""

    return config.kind.default_metric


def get_metric_value(entry: Any, metric: Metric) -> int:
    """Return the entry's value for ``metric``; a missing value counts as ``0``.

    The zero default means an entry without its primary metric ranks as if it
    had the best possible score.
    """

    return entry.metrics.get(metric) or 0


def format_time(seconds: int | float) -> str:
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        minutes, remaining = divmod(seconds, 60)
        return f"{minutes}:{remaining:02d}"
    hours, rest = divmod(seconds, 3600)
    minutes, remaining = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{remaining:02d}"


def format_metric_value(value: int | float, metric: Metric) -> str:
    if metric is Metric.TIME:
        return format_time(value)
    if metric is Metric.GUESSES:
        return f"{value} guesses"
    return f"{value} backtracks"


def format_metric(metrics: Mapping[Metric, int], config: Any) -> str:
    """Format an entry's headline value for its game, or ``N/A``."""

    time_value = metrics.get(Metric.TIME)
    if config.has_time and time_value is not None:
        return format_time(time_value)
    guesses = metrics.get(Metric.GUESSES)
    if config.has_guesses and guesses is not None:
        return f"{guesses} guesses"
    return EMPTY_VALUE


def game_icon(game_id: str) -> str:
    return GAME_ICONS.get(game_id, DEFAULT_GAME_ICON)


def player_display_name(
    players: Mapping[str, str],
    player_id: str,
    nicknames: Mapping[str, str] | None = None,
) -> str:
    if nicknames and player_id in nicknames:
        return nicknames[player_id]
    name = (players.get(player_id) or "").strip()
    if not name:
        return UNKNOWN_PLAYER
    return name.split()[0]


def player_initials(players: Mapping[str, str], player_id: str) -> str:
    name = (players.get(player_id) or "").strip()
    if not name:
        return "?"
    return "".join(part[0] for part in name.split()).upper()[:3]

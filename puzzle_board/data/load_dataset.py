"""Load a puzzle dataset from a JSON file, a dashboard page or a URL.

The dashboard page embeds the dataset as JSON inside a
``<script id="game-data" type="application/json">`` element; the same element
is rewritten by :func:`embed_dataset` when the page is rebuilt.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import requests
from bs4 import BeautifulSoup

from puzzle_board.dataset import Dataset

DATA_SCRIPT_ID = "game-data"
HTML_SUFFIXES = {".html", ".htm"}


class DatasetLoadError(RuntimeError):
    """Raised when a dataset source cannot be read or decoded."""


def _json_hints(raw: str) -> list[str]:
    hints: list[str] = []
    text = raw.strip()
    if "<!--" in text:
        hints.append("found HTML comments in the JSON block; remove them")
    if not text.startswith("{"):
        hints.append("JSON should start with '{'")
    if not text.endswith("}"):
        hints.append("JSON should end with '}'")
    return hints


def parse_dataset_json(raw: str, *, source: str = "<string>") -> dict[str, Any]:
    if not raw or not raw.strip():
        raise DatasetLoadError(f"Dataset source {source} is empty")
    try:
        payload = json.loads(raw.strip())
    except json.JSONDecodeError as exc:
        hints = _json_hints(raw)
        detail = f" ({'; '.join(hints)})" if hints else ""
        raise DatasetLoadError(f"Failed to parse dataset JSON from {source}: {exc.msg}{detail}") from exc
    if not isinstance(payload, dict):
        raise DatasetLoadError(f"Dataset JSON from {source} must be an object")
    return payload


def extract_embedded_json(html: str, *, source: str = "<html>") -> str:
    soup = BeautifulSoup(html, "html.parser")
    script = soup.find("script", id=DATA_SCRIPT_ID)
    if script is None:
        raise DatasetLoadError(
            f"Could not find the {DATA_SCRIPT_ID} script element in {source}; "
            "the page must embed the dataset JSON."
        )
    content = script.string or script.get_text()
    if not content or not content.strip():
        raise DatasetLoadError(f"The {DATA_SCRIPT_ID} script element in {source} is empty")
    return content


def fetch_text(url: str, *, timeout: int = 30) -> tuple[str, str]:
    """Return ``(body, content_type)`` for ``url``."""

    try:
        response = requests.get(url, timeout=timeout, headers={"Accept": "application/json, text/html"})
        response.raise_for_status()
    except requests.RequestException as exc:
        raise DatasetLoadError(f"Unable to fetch dataset {url}: {exc}") from exc
    return response.text, response.headers.get("Content-Type", "")


def _looks_like_html(body: str, content_type: str) -> bool:
    if "html" in content_type.lower():
        return True
    return body.lstrip().startswith("<")


def load_payload(source: str | Path, *, timeout: int = 30) -> dict[str, Any]:
    text_source = str(source)
    if text_source.startswith(("http://", "https://")):
        body, content_type = fetch_text(text_source, timeout=timeout)
        if _looks_like_html(body, content_type):
            body = extract_embedded_json(body, source=text_source)
        return parse_dataset_json(body, source=text_source)

    path = Path(source)
    if not path.exists():
        raise DatasetLoadError(f"Dataset source {path} does not exist")
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() in HTML_SUFFIXES:
        raw = extract_embedded_json(raw, source=str(path))
    return parse_dataset_json(raw, source=str(path))


def load_dataset(source: str | Path, *, timeout: int = 30) -> Dataset:
    """Load and validate the dataset at ``source``.

    Raises :class:`DatasetLoadError` when the source cannot be read and
    :class:`~puzzle_board.dataset.DatasetValidationError` when its records are
    rejected.
    """

    return Dataset.from_payload(load_payload(source, timeout=timeout))


def embed_dataset(html: str, dataset: Dataset) -> str:
    """Return ``html`` with the dataset written into its ``game-data`` element."""

    soup = BeautifulSoup(html, "html.parser")
    script = soup.find("script", id=DATA_SCRIPT_ID)
    if script is None:
        script = soup.new_tag("script", id=DATA_SCRIPT_ID, type="application/json")
        target = soup.body or soup
        target.append(script)
    # "</" would close the script element early.
    script.string = json.dumps(dataset.to_payload(), ensure_ascii=False, indent=2).replace("</", "<\\/")
    return str(soup)

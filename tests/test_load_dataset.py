"""Tests for reading datasets from files, dashboard pages and URLs."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
import requests
from bs4 import BeautifulSoup

sys.path.append(str(Path(__file__).resolve().parents[1]))

from puzzle_board.data import load_dataset as loader  # noqa: E402
from puzzle_board.dataset import Dataset, DatasetValidationError  # noqa: E402

PAYLOAD = {
    "players": {"alice": "Alice </script> Smith"},
    "games": {"queens": {"hasTime": True}},
    "entries": [
        {"playerId": "alice", "game": "queens", "gameNum": 487, "date": "2025-08-30", "metrics": {"time": 95}},
    ],
}

PAGE = """<!DOCTYPE html>
<html>
<head><title>Puzzle board</title></head>
<body>
  <div id="app"></div>
  <script id="game-data" type="application/json">{body}</script>
</body>
</html>
"""


class _FakeResponse:
    def __init__(self, text: str, content_type: str, status: int = 200) -> None:
        self.text = text
        self.headers = {"Content-Type": content_type}
        self.status_code = status

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


def test_load_json_file(tmp_path: Path) -> None:
    path = tmp_path / "game_data.json"
    path.write_text(json.dumps(PAYLOAD), encoding="utf-8")
    dataset = loader.load_dataset(path)
    assert dataset.entries[0].game == "queens"


def test_load_embedded_html(tmp_path: Path) -> None:
    path = tmp_path / "index.html"
    path.write_text(PAGE.format(body=json.dumps(PAYLOAD).replace("</", "<\\/")), encoding="utf-8")
    dataset = loader.load_dataset(path)
    assert dataset.players["alice"] == "Alice </script> Smith"


def test_missing_script_element(tmp_path: Path) -> None:
    path = tmp_path / "index.html"
    path.write_text("<html><body><p>No data</p></body></html>", encoding="utf-8")
    with pytest.raises(loader.DatasetLoadError, match="game-data"):
        loader.load_dataset(path)


def test_empty_script_element(tmp_path: Path) -> None:
    path = tmp_path / "index.html"
    path.write_text(PAGE.format(body="   "), encoding="utf-8")
    with pytest.raises(loader.DatasetLoadError, match="empty"):
        loader.load_dataset(path)


def test_invalid_json_reports_hints() -> None:
    with pytest.raises(loader.DatasetLoadError) as excinfo:
        loader.parse_dataset_json("<!-- data --> {\"players\": ")
    message = str(excinfo.value)
    assert "HTML comments" in message
    assert "should end with '}'" in message
    assert isinstance(excinfo.value.__cause__, json.JSONDecodeError)


def test_non_object_json_is_rejected() -> None:
    with pytest.raises(loader.DatasetLoadError, match="must be an object"):
        loader.parse_dataset_json("[1, 2, 3]")


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(loader.DatasetLoadError, match="does not exist"):
        loader.load_dataset(tmp_path / "nope.json")


def test_validation_errors_propagate(tmp_path: Path) -> None:
    broken = json.loads(json.dumps(PAYLOAD))
    broken["entries"][0]["playerId"] = "bob"
    path = tmp_path / "game_data.json"
    path.write_text(json.dumps(broken), encoding="utf-8")
    with pytest.raises(DatasetValidationError):
        loader.load_dataset(path)


@pytest.mark.parametrize(
    ("body", "content_type"),
    [
        (json.dumps(PAYLOAD), "application/json"),
        (PAGE.format(body=json.dumps(PAYLOAD).replace("</", "<\\/")), "text/html; charset=utf-8"),
    ],
)
def test_load_from_url(monkeypatch: pytest.MonkeyPatch, body: str, content_type: str) -> None:
    calls: list[str] = []

    def fake_get(url: str, **kwargs: object) -> _FakeResponse:
        calls.append(url)
        assert kwargs["timeout"] == 30
        return _FakeResponse(body, content_type)

    monkeypatch.setattr(loader.requests, "get", fake_get)
    dataset = loader.load_dataset("https://example.com/data")
    assert calls == ["https://example.com/data"]
    assert dataset.entries[0].metrics
    assert len(dataset.entries) == 1


def test_http_errors_become_load_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(loader.requests, "get", lambda url, **kwargs: _FakeResponse("", "text/plain", 404))
    with pytest.raises(loader.DatasetLoadError, match="Unable to fetch") as excinfo:
        loader.load_dataset("https://example.com/missing.json")
    assert isinstance(excinfo.value.__cause__, requests.HTTPError)


def test_embed_dataset_replaces_existing_block() -> None:
    dataset = Dataset.from_payload(PAYLOAD)
    html = loader.embed_dataset(PAGE.format(body="{}"), dataset)
    soup = BeautifulSoup(html, "html.parser")
    scripts = soup.find_all("script", id="game-data")
    assert len(scripts) == 1
    assert soup.find(id="app") is not None
    assert json.loads(loader.extract_embedded_json(html)) == PAYLOAD


def test_embed_dataset_creates_missing_block() -> None:
    dataset = Dataset.from_payload(PAYLOAD)
    html = loader.embed_dataset("<html><body><div id='app'></div></body></html>", dataset)
    script = BeautifulSoup(html, "html.parser").find("script", id="game-data")
    assert script is not None
    assert script["type"] == "application/json"
    assert Dataset.from_payload(json.loads(script.string)) == dataset

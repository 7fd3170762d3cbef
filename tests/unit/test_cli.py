from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import pytest

from nero_tasks import cli
from nero_tasks.cli import build_parser, main
from nero_tasks.storage.files import utc_now
from nero_tasks.storage.results import ResultStore
from nero_tasks.storage.views import ViewStateStore
from nero_tasks.tasks.models import TaskKind
from nero_tasks.tasks.payloads import CoachReply


@pytest.fixture
def state_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    state_dir = tmp_path / "state"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NERO_STATE_DIR", str(state_dir))
    # Keep the root logger untouched so captured streams stay valid across tests.
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)
    return state_dir


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_results_lists_persisted_envelopes(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    ResultStore(state_dir / "results").save(
        TaskKind.FITNESS_COACH_CHAT, "coach_1", CoachReply(text="hi")
    )

    assert main(["results"]) == 0
    out = capsys.readouterr().out
    assert "coach_1" in out
    assert "fitness_coach_chat" in out


def test_cleanup_removes_expired_results(
    state_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    results = ResultStore(state_dir / "results")
    results.save(TaskKind.FITNESS_COACH_CHAT, "old", CoachReply(text="old"))
    path = state_dir / "results" / "old.json"
    raw = json.loads(path.read_text(encoding="utf-8"))
    raw["saved_at"] = (utc_now() - timedelta(days=8)).isoformat()
    path.write_text(json.dumps(raw), encoding="utf-8")

    assert main(["cleanup"]) == 0
    assert "Removed 1 results" in capsys.readouterr().out
    assert results.list_ids() == []


def test_show_view(state_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["show-view", "AIChatView"]) == 1

    views = ViewStateStore(state_dir / "views", state_dir / "associations.json")
    views.save_state("AIChatView", {"entries": []}, "coach_9", True)
    views.associate("coach_9", "AIChatView")
    capsys.readouterr()

    assert main(["show-view", "AIChatView", "--associations"]) == 0
    out = capsys.readouterr().out
    assert '"remembered_task_id": "coach_9"' in out
    assert "associated: coach_9" in out


def test_show_view_rejects_unknown_screens(state_dir: Path) -> None:
    with pytest.raises(SystemExit):
        main(["show-view", "SettingsView"])

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

from nero_tasks.storage.files import utc_now
from nero_tasks.storage.views import ViewStateStore


def _store(tmp_path: Path, max_age: timedelta = timedelta(hours=24)) -> ViewStateStore:
    return ViewStateStore(
        tmp_path / "views",
        tmp_path / "associations.json",
        snapshot_max_age=max_age,
    )


def test_snapshot_roundtrip(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save_state("MacroChatView", {"entries": [{"text": "2 eggs"}]}, "macro_meal_7", True)

    snapshot = store.load_state("MacroChatView")

    assert snapshot is not None
    assert snapshot.view_kind == "MacroChatView"
    assert snapshot.state == {"entries": [{"text": "2 eggs"}]}
    assert snapshot.remembered_task_id == "macro_meal_7"
    assert snapshot.is_loading is True


def test_snapshots_are_kept_per_view_kind(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save_state("AIChatView", {}, None, False)
    store.save_state("MacroChatView", {}, "macro_meal_7", True)

    ai = store.load_state("AIChatView")
    assert ai is not None
    assert ai.remembered_task_id is None
    assert store.load_state("WorkoutEditChatView") is None


def test_stale_snapshot_is_ignored_but_kept_on_disk(tmp_path: Path) -> None:
    store = _store(tmp_path, max_age=timedelta(hours=24))
    store.save_state("AIChatView", {"entries": []}, "coach_1", True)

    later = utc_now() + timedelta(hours=25)
    assert store.load_state("AIChatView", now=later) is None
    assert (tmp_path / "views" / "AIChatView.json").exists()
    assert store.load_state("AIChatView") is not None

    store.cleanup(timedelta(hours=24), now=later)
    assert not (tmp_path / "views" / "AIChatView.json").exists()


def test_snapshot_for_another_screen_reads_as_absent(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save_state("MacroChatView", {}, "macro_meal_7", True)
    views = tmp_path / "views"
    (views / "MacroChatView.json").rename(views / "AIChatView.json")

    assert store.load_state("AIChatView") is None


def test_corrupt_snapshot_reads_as_absent(tmp_path: Path) -> None:
    store = _store(tmp_path)
    (tmp_path / "views").mkdir()
    (tmp_path / "views" / "AIChatView.json").write_text("\x00garbage", encoding="utf-8")

    assert store.load_state("AIChatView") is None


def test_clear_state(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save_state("AIChatView", {}, None, False)
    store.clear_state("AIChatView")
    store.clear_state("AIChatView")

    assert store.load_state("AIChatView") is None


def test_associations_are_listed_per_view_oldest_first(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.associate("wp_1", "WorkoutEditChatView")
    store.associate("macro_meal_7", "MacroChatView")
    store.associate("wp_2", "WorkoutEditChatView")

    assert store.associations_for("WorkoutEditChatView") == ["wp_1", "wp_2"]
    assert store.associations_for("MacroChatView") == ["macro_meal_7"]
    assert store.view_for("wp_2") == "WorkoutEditChatView"
    assert store.view_for("unknown") is None


def test_reassociating_same_view_keeps_first_timestamp(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.associate("wp_1", "WorkoutEditChatView")
    first = json.loads((tmp_path / "associations.json").read_text(encoding="utf-8"))

    store.associate("wp_1", "WorkoutEditChatView")
    second = json.loads((tmp_path / "associations.json").read_text(encoding="utf-8"))

    assert first == second


def test_clear_association(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.associate("coach_1", "AIChatView")

    assert store.clear_association("coach_1") is True
    assert store.clear_association("coach_1") is False
    assert store.associations_for("AIChatView") == []


def test_malformed_association_file_reads_as_empty(tmp_path: Path) -> None:
    (tmp_path / "associations.json").write_text('["not", "a", "map"]', encoding="utf-8")
    store = _store(tmp_path)

    assert store.associations_for("AIChatView") == []
    store.associate("coach_1", "AIChatView")
    assert store.associations_for("AIChatView") == ["coach_1"]


def test_cleanup_evicts_old_snapshots_and_associations(tmp_path: Path) -> None:
    store = _store(tmp_path, max_age=timedelta(days=30))
    store.save_state("AIChatView", {}, None, False)
    store.associate("coach_1", "AIChatView")
    store.associate("coach_2", "AIChatView")

    assoc_path = tmp_path / "associations.json"
    raw = json.loads(assoc_path.read_text(encoding="utf-8"))
    raw["coach_1"]["created_at"] = (utc_now() - timedelta(days=2)).isoformat()
    assoc_path.write_text(json.dumps(raw), encoding="utf-8")

    removed = store.cleanup(timedelta(days=1), now=utc_now())

    assert removed == 1
    assert store.associations_for("AIChatView") == ["coach_2"]
    assert store.load_state("AIChatView") is not None

    removed = store.cleanup(timedelta(days=1), now=utc_now() + timedelta(days=3))
    assert removed == 2
    assert store.load_state("AIChatView") is None
    assert store.associations_for("AIChatView") == []

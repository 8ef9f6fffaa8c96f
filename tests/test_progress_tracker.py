"""Tests for the client-side quiz progress tracker."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from app.client.progress import (
    ANSWERED_STORAGE_KEY,
    SET_POSITION_STORAGE_KEY,
    JsonFileStorage,
    MemoryStorage,
    ProgressTracker,
)

QUESTIONS = [
    {"id": 1, "options": ["a", "b", "c"], "answer": "c"},
    {"id": 2, "options": ["a", "b"], "answer": "a"},
    {"id": 3, "options": ["a", "b"], "answer": "b"},
]


def test_answer_survives_reload(tmp_path: Path) -> None:
    path = tmp_path / "progress.json"
    ProgressTracker(JsonFileStorage(path)).record_answer(42, 2)

    reloaded = ProgressTracker(JsonFileStorage(path))

    assert reloaded.is_answered(42) is True
    assert reloaded.selected_option(42) == 2
    assert json.loads(json.loads(path.read_text())[ANSWERED_STORAGE_KEY]) == {"42": 2}


def test_first_answer_wins() -> None:
    tracker = ProgressTracker(MemoryStorage())

    assert tracker.record_answer(1, 0) is True
    assert tracker.record_answer(1, 2) is False
    assert tracker.selected_option(1) == 0


def test_delete_progress_keeps_positions(tmp_path: Path) -> None:
    tracker = ProgressTracker(JsonFileStorage(tmp_path / "progress.json"))
    tracker.record_answer(1, 0)
    tracker.save_position("SPID", 4)

    tracker.delete_progress()

    assert tracker.answers() == {}
    assert tracker.is_answered(1) is False
    assert tracker.restore_position("SPID", 10) == 4


def test_legacy_id_list_reads_as_unknown_selection() -> None:
    storage = MemoryStorage({ANSWERED_STORAGE_KEY: "[5, 7]"})
    tracker = ProgressTracker(storage)

    assert tracker.answers() == {5: None, 7: None}
    assert tracker.is_answered(5) is True
    assert tracker.selected_option(5) is None
    assert tracker.record_answer(5, 1) is False

    assert tracker.record_answer(9, 1) is True
    assert json.loads(storage.get_item(ANSWERED_STORAGE_KEY)) == {"5": None, "7": None, "9": 1}


@pytest.mark.parametrize(
    "saved,count,expected",
    [
        (None, 10, 0),
        (3, 10, 3),
        (12, 5, 4),
        (3, 0, 0),
        (-2, 5, 0),
    ],
)
def test_restore_position_is_clamped(saved, count, expected) -> None:
    tracker = ProgressTracker(MemoryStorage())
    if saved is not None:
        tracker.save_position("set", saved)

    assert tracker.restore_position("set", count) == expected


def test_positions_are_per_set() -> None:
    tracker = ProgressTracker(MemoryStorage())
    tracker.save_position("A", 1)
    tracker.save_position("B", 2)

    assert tracker.positions() == {"A": 1, "B": 2}


def test_wrong_answers() -> None:
    tracker = ProgressTracker(MemoryStorage({ANSWERED_STORAGE_KEY: json.dumps({"1": 0, "2": 0, "3": None})}))

    assert tracker.wrong_answers(QUESTIONS) == [1]


def test_corrupt_storage_means_no_progress() -> None:
    storage = MemoryStorage({ANSWERED_STORAGE_KEY: "{broken", SET_POSITION_STORAGE_KEY: "[]"})
    tracker = ProgressTracker(storage)

    assert tracker.answers() == {}
    assert tracker.restore_position("any", 3) == 0
    assert tracker.record_answer(1, 1) is True


def test_unexpected_payload_shape_means_no_progress() -> None:
    tracker = ProgressTracker(MemoryStorage({ANSWERED_STORAGE_KEY: '"text"'}))
    assert tracker.answers() == {}


def test_storage_failures_are_swallowed() -> None:
    storage = MagicMock()
    storage.get_item.side_effect = OSError("disk gone")
    storage.set_item.side_effect = OSError("read-only")
    storage.remove_item.side_effect = OSError("read-only")
    tracker = ProgressTracker(storage)

    assert tracker.answers() == {}
    assert tracker.record_answer(1, 0) is False
    tracker.save_position("A", 1)
    tracker.delete_progress()


def test_delete_progress_over_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "progress.json"
    path.write_text("{broken", encoding="utf-8")
    tracker = ProgressTracker(JsonFileStorage(path))

    tracker.delete_progress()

    assert tracker.answers() == {}


def test_delete_progress_swallows_value_errors() -> None:
    storage = MagicMock()
    storage.remove_item.side_effect = ValueError("bad document")

    ProgressTracker(storage).delete_progress()


def test_corrupt_file_is_replaced_by_next_write(tmp_path: Path) -> None:
    path = tmp_path / "progress.json"
    path.write_text("{broken", encoding="utf-8")
    tracker = ProgressTracker(JsonFileStorage(path))

    assert tracker.record_answer(1, 2) is True
    tracker.save_position("SPID", 4)

    reloaded = ProgressTracker(JsonFileStorage(path))
    assert reloaded.is_answered(1)
    assert reloaded.selected_option(1) == 2
    assert reloaded.restore_position("SPID", 10) == 4


def test_non_object_file_is_replaced_by_next_write(tmp_path: Path) -> None:
    path = tmp_path / "progress.json"
    path.write_text("[1, 2]", encoding="utf-8")
    storage = JsonFileStorage(path)

    assert storage.get_item(ANSWERED_STORAGE_KEY) is None
    storage.set_item("k", "v")
    assert json.loads(path.read_text(encoding="utf-8")) == {"k": "v"}


def test_json_file_storage_roundtrip_and_remove(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "store.json"
    storage = JsonFileStorage(path)

    assert storage.get_item("k") is None
    storage.set_item("k", "v")
    assert JsonFileStorage(path).get_item("k") == "v"

    storage.remove_item("k")
    assert storage.get_item("k") is None
    assert not path.with_name("store.json.tmp").exists()

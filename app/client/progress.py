"""Quiz progress kept in durable client-side storage.

Two storage keys are used, matching the browser client's localStorage layout:

- ``mcqs-answered-questions``: answered question ids mapped to the selected
  option index. Older clients stored a plain JSON list of ids; those entries
  read back as answered with an unknown selection.
- ``mcqs-set-positions``: question set name mapped to the last viewed index.

Every read and write failure is logged and swallowed. Missing or unreadable
data means "no progress yet"; the quiz must keep working without it.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)

ANSWERED_STORAGE_KEY = "mcqs-answered-questions"
SET_POSITION_STORAGE_KEY = "mcqs-set-positions"


class MemoryStorage:
    """String key-value storage living only as long as the process."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage:
    """String key-value storage persisted as one JSON document on disk.

    Every mutation rewrites the file through a temporary sibling and an atomic
    rename, so a crash leaves either the old or the new document.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> dict[str, str]:
        """Return the stored document.

        An unreadable document counts as empty, so the next write replaces it.
        """
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as fh:
            try:
                data = json.load(fh)
            except ValueError as exc:
                logger.warning("progress.storage_corrupt", extra={"error": str(exc)})
                return {}
        if not isinstance(data, dict):
            logger.warning(
                "progress.storage_corrupt",
                extra={"error": f"expected a JSON object, got {type(data).__name__}"},
            )
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f"{self.path.name}.tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(items, fh, ensure_ascii=False, indent=2)
        os.replace(tmp, self.path)

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            items = self._read_all()
            items[key] = value
            self._write_all(items)

    def remove_item(self, key: str) -> None:
        with self._lock:
            items = self._read_all()
            if items.pop(key, None) is not None:
                self._write_all(items)


def _parse_answers(raw: Any) -> dict[int, int | None]:
    if isinstance(raw, list):
        # Legacy format: ids only
        return {int(qid): None for qid in raw}
    if isinstance(raw, dict):
        return {
            int(qid): (int(option) if option is not None else None)
            for qid, option in raw.items()
        }
    raise ValueError(f"unexpected answered-questions payload: {type(raw).__name__}")


class ProgressTracker:
    """Per-question answers and per-set positions for one browser profile.

    Args:
        storage: Object exposing ``get_item``, ``set_item`` and
            ``remove_item`` over string values (``JsonFileStorage``,
            ``MemoryStorage``).
    """

    def __init__(self, storage: Any) -> None:
        self.storage = storage

    def _load(self, key: str) -> Any:
        try:
            raw = self.storage.get_item(key)
            return json.loads(raw) if raw else None
        except (OSError, ValueError) as exc:
            logger.error("progress.load_failed", extra={"storage_key": key, "error": str(exc)})
            return None

    def _save(self, key: str, value: Any) -> bool:
        try:
            self.storage.set_item(key, json.dumps(value))
        except (OSError, TypeError, ValueError) as exc:
            logger.error("progress.save_failed", extra={"storage_key": key, "error": str(exc)})
            return False
        return True

    def answers(self) -> dict[int, int | None]:
        """Answered question ids mapped to the selected option (None if unknown)."""
        raw = self._load(ANSWERED_STORAGE_KEY)
        if raw is None:
            return {}
        try:
            return _parse_answers(raw)
        except (TypeError, ValueError) as exc:
            logger.error(
                "progress.load_failed",
                extra={"storage_key": ANSWERED_STORAGE_KEY, "error": str(exc)},
            )
            return {}

    def record_answer(self, question_id: int, option_index: int) -> bool:
        """Record the first answer to a question.

        Returns:
            True if the answer was stored. False if the question was already
            answered or the storage write failed.
        """
        answered = self.answers()
        if question_id in answered:
            return False
        answered[question_id] = option_index
        return self._save(ANSWERED_STORAGE_KEY, {str(qid): opt for qid, opt in answered.items()})

    def is_answered(self, question_id: int) -> bool:
        return question_id in self.answers()

    def selected_option(self, question_id: int) -> int | None:
        return self.answers().get(question_id)

    def delete_progress(self) -> None:
        """Forget every answer. Set positions are kept."""
        try:
            self.storage.remove_item(ANSWERED_STORAGE_KEY)
        except (OSError, ValueError) as exc:
            logger.error(
                "progress.delete_failed",
                extra={"storage_key": ANSWERED_STORAGE_KEY, "error": str(exc)},
            )

    def positions(self) -> dict[str, int]:
        raw = self._load(SET_POSITION_STORAGE_KEY)
        if not isinstance(raw, dict):
            return {}
        return {str(name): idx for name, idx in raw.items() if isinstance(idx, int)}

    def save_position(self, set_name: str, index: int) -> None:
        positions = self.positions()
        positions[set_name] = index
        self._save(SET_POSITION_STORAGE_KEY, positions)

    def restore_position(self, set_name: str, question_count: int) -> int:
        """Index to resume a set at, clamped to the set's current size.

        Returns 0 when nothing was saved or the set is empty.
        """
        saved = self.positions().get(set_name, 0)
        if question_count <= 0:
            return 0
        return max(0, min(saved, question_count - 1))

    def wrong_answers(self, questions: Iterable[Mapping[str, Any]]) -> list[int]:
        """Ids of answered questions whose recorded option is not the correct one.

        Questions answered under the legacy format have no recorded option
        and are skipped.
        """
        answered = self.answers()
        wrong: list[int] = []
        for q in questions:
            selected = answered.get(q["id"])
            if selected is None:
                continue
            options = list(q["options"])
            correct = options.index(q["answer"]) if q["answer"] in options else None
            if selected != correct:
                wrong.append(q["id"])
        return wrong

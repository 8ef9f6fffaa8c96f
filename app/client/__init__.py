"""Client-side helpers for quiz frontends."""

from app.client.progress import JsonFileStorage, MemoryStorage, ProgressTracker

__all__ = ["JsonFileStorage", "MemoryStorage", "ProgressTracker"]

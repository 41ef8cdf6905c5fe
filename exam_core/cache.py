"""In-memory response cache for text and audio results.

Text keys use only the first TEXT_KEY_PREFIX_CHARS characters of the problem
text, so two problems that agree on that prefix share a cache entry. Audio keys
use the full summary text.
"""
from __future__ import annotations

import hashlib
import threading
from collections import OrderedDict
from typing import Generic, Optional, TypeVar, Union

from .types import ProblemInput, Subject, TaskKind


TEXT_KEY_PREFIX_CHARS = 50

V = TypeVar("V", bound=Union[str, bytes])


def text_cache_key(subject: Subject, task: TaskKind, problem: ProblemInput) -> str:
    key = f"{subject.value}|{task.value}|{problem.clean_text[:TEXT_KEY_PREFIX_CHARS]}"
    if problem.has_image:
        h = hashlib.sha256(problem.image_payload.encode("utf-8")).hexdigest()
        key += f"|img:{h[:16]}"
    return key


def audio_cache_key(text: str) -> str:
    return f"TTS|{text}"


class ResponseCache(Generic[V]):
    """LRU map of completed results.

    max_entries=0 keeps every entry for the life of the process.
    """

    def __init__(self, max_entries: int = 0):
        if max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self.max_entries = max_entries
        self._data: "OrderedDict[str, V]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[V]:
        with self._lock:
            if key not in self._data:
                return None
            self._data.move_to_end(key)
            return self._data[key]

    def put(self, key: str, value: V) -> None:
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            if self.max_entries:
                while len(self._data) > self.max_entries:
                    self._data.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

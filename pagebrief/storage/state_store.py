"""Shared, observable key/value state for job status.

The store is the single source of truth observers render from. All writes go
through ``merge_patch``; every committed merge that changes a value is
published to subscribers in commit order.
"""

import copy
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Set

logger = logging.getLogger(__name__)


@dataclass
class FieldChange:
    old: Any
    new: Any


@dataclass
class StoreChange:
    """One committed merge as seen by subscribers."""
    changed_fields: Set[str] = field(default_factory=set)
    values: Dict[str, FieldChange] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "changed_fields": sorted(self.changed_fields),
            "values": {
                key: {"old": change.old, "new": change.new}
                for key, change in self.values.items()
            },
        }


StoreCallback = Callable[[StoreChange], None]


class StateStore(ABC):
    """Base store: locking, merge semantics and change publication.

    Backends only implement how the flat state is loaded and persisted.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[StoreCallback] = []
        self._pending: Deque[StoreChange] = deque()
        self._dispatching = False

    @abstractmethod
    def _load_state(self) -> Dict[str, Any]:
        """Return the current persisted state. Called with the lock held."""
        ...

    @abstractmethod
    def _save_state(self, state: Dict[str, Any], patch: Dict[str, Any]) -> None:
        """Persist ``state`` after ``patch`` was merged into it. Called with the lock held."""
        ...

    def merge_patch(self, patch: Dict[str, Any]) -> None:
        """Atomically merge ``patch`` into the state and notify subscribers."""
        if not patch:
            return
        with self._lock:
            state = self._load_state()
            change = StoreChange()
            for key, value in patch.items():
                old = state.get(key)
                if key in state and old == value:
                    continue
                change.changed_fields.add(key)
                change.values[key] = FieldChange(old=copy.deepcopy(old), new=copy.deepcopy(value))
                state[key] = copy.deepcopy(value)
            if not change.changed_fields:
                return
            self._save_state(state, patch)
            self._pending.append(change)
        self._dispatch()

    def read_all(self) -> Dict[str, Any]:
        """Snapshot of the whole state."""
        with self._lock:
            return copy.deepcopy(self._load_state())

    def subscribe(self, callback: StoreCallback) -> Callable[[], None]:
        """Register ``callback`` for every committed merge. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _dispatch(self) -> None:
        # Merges made from inside a callback are queued behind the current one.
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._pending:
                change = self._pending.popleft()
                for callback in list(self._subscribers):
                    try:
                        callback(change)
                    except Exception:
                        logger.exception("State subscriber %r failed", callback)
        finally:
            self._dispatching = False


class InMemoryStateStore(StateStore):
    """Process-local store. State lives as long as the process."""

    def __init__(self, initial: Dict[str, Any] = None):
        super().__init__()
        self._state: Dict[str, Any] = dict(initial or {})

    def _load_state(self) -> Dict[str, Any]:
        return self._state

    def _save_state(self, state: Dict[str, Any], patch: Dict[str, Any]) -> None:
        self._state = state


class JsonFileStateStore(StateStore):
    """Durable store backed by a JSON file.

    The file is re-read before every merge so several processes can share it.
    There is no cross-process lock; concurrent writers are last-write-wins.
    """

    def __init__(self, path: str):
        super().__init__()
        self._path = os.path.abspath(path)
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    @property
    def path(self) -> str:
        return self._path

    def _load_state(self) -> Dict[str, Any]:
        if not os.path.exists(self._path):
            return {}
        with open(self._path, "r", encoding="utf-8") as src:
            content = src.read()
        if not content.strip():
            return {}
        return json.loads(content)

    def _save_state(self, state: Dict[str, Any], patch: Dict[str, Any]) -> None:
        directory = os.path.dirname(self._path) or "."
        fd, tmp_path = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as dst:
                json.dump(state, dst, ensure_ascii=False, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

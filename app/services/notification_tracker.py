from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Optional, Protocol

from app.services.clock import Clock
from app.utils.time import epoch_ms

logger = logging.getLogger(__name__)

CHECK_IN_AVAILABLE = "check-in-available"


class FlagStore(Protocol):
    def get(self, key: str) -> Optional[int]: ...

    def set(self, key: str, value: int) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryFlagStore:
    def __init__(self):
        self._data: dict[str, int] = {}

    def get(self, key: str) -> Optional[int]:
        return self._data.get(key)

    def set(self, key: str, value: int) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileFlagStore:
    """
    Flags kept in a small JSON file so they survive process restarts.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        return json.loads(self.path.read_text(encoding="utf-8") or "{}")

    def _dump(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> Optional[int]:
        with self._lock:
            value = self._load().get(key)
        return int(value) if value is not None else None

    def set(self, key: str, value: int) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._dump(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if data.pop(key, None) is not None:
                self._dump(data)


class NotificationTracker:
    """
    Per-user, per-event-class "already shown" flags with a fixed validity
    window. Store failures never reach the caller: a failed read counts as
    "not shown" and a failed write is dropped.
    """

    def __init__(self, store: FlagStore, clock: Clock, ttl_hours: float = 24):
        self.store = store
        self.clock = clock
        self.ttl_ms = int(ttl_hours * 3600 * 1000)

    @staticmethod
    def key(user_id, flag: str) -> str:
        return f"{user_id}:{flag}"

    def has_shown(self, user_id, flag: str = CHECK_IN_AVAILABLE) -> bool:
        try:
            shown_at = self.store.get(self.key(user_id, flag))
        except Exception as e:
            logger.warning("Could not read notification flag %s for %s: %s", flag, user_id, e)
            return False
        if shown_at is None:
            return False
        return epoch_ms(self.clock.now()) - shown_at < self.ttl_ms

    def mark_shown(self, user_id, flag: str = CHECK_IN_AVAILABLE) -> None:
        try:
            self.store.set(self.key(user_id, flag), epoch_ms(self.clock.now()))
        except Exception as e:
            logger.warning("Could not store notification flag %s for %s: %s", flag, user_id, e)

    def reset(self, user_id, flag: str = CHECK_IN_AVAILABLE) -> None:
        try:
            self.store.delete(self.key(user_id, flag))
        except Exception as e:
            logger.warning("Could not clear notification flag %s for %s: %s", flag, user_id, e)


def build_flag_store(path: str | None) -> FlagStore:
    return FileFlagStore(path) if path else MemoryFlagStore()

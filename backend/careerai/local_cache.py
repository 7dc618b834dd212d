"""Client-local key-value sinks used as the offline mirror of session state."""

from __future__ import annotations

import json
import logging
import re
import threading
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

USER_DATA_KEY = "careerAI_userData"
DRAFT_KEY = "careerAI_tempAssessment"

ASSESSMENT_FIELD = "assessmentData"
RECOMMENDATIONS_FIELD = "recommendations"
SKILL_ANALYSIS_FIELD = "skillAnalysis"
CHAT_HISTORY_FIELD = "chatHistory"

_SAFE_NAMESPACE = re.compile(r"[^a-zA-Z0-9_.-]+")


class LocalCache(Protocol):
    """Synchronous JSON blob storage; writes are assumed to succeed."""

    def read_blob(self, key: str) -> Optional[Any]:  # pragma: no cover - protocol definition
        ...

    def write_blob(self, key: str, value: Any) -> None:  # pragma: no cover - protocol definition
        ...

    def remove_blob(self, key: str) -> None:  # pragma: no cover - protocol definition
        ...


class InMemoryLocalCache:
    """Dict-backed cache storing serialised JSON text, like browser storage."""

    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}
        self._lock = threading.RLock()

    def read_blob(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._entries.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unparseable cache entry %s", key)
            return None

    def write_blob(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        with self._lock:
            self._entries[key] = encoded

    def remove_blob(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def put_raw(self, key: str, raw: str) -> None:
        with self._lock:
            self._entries[key] = raw


class JsonFileLocalCache:
    """One JSON document per client namespace on disk; the whole file is rewritten on each write."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def _load_unlocked(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError):
            logger.exception("Failed to read local cache file %s", self._path)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring local cache file %s with non-object root", self._path)
            return {}
        return raw

    def _write_unlocked(self, entries: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(entries, handle, indent=2)
        tmp_path.replace(self._path)

    def read_blob(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._load_unlocked().get(key)
        return deepcopy(value)

    def write_blob(self, key: str, value: Any) -> None:
        with self._lock:
            entries = self._load_unlocked()
            entries[key] = json.loads(json.dumps(value))
            self._write_unlocked(entries)

    def remove_blob(self, key: str) -> None:
        with self._lock:
            entries = self._load_unlocked()
            if key in entries:
                entries.pop(key)
                self._write_unlocked(entries)


class LocalCacheFactory:
    """Hands out one cache per client namespace, stable across identities."""

    def __init__(self, root: Optional[Path] = None) -> None:
        self._root = root
        self._caches: Dict[str, LocalCache] = {}
        self._lock = threading.RLock()

    def for_client(self, client_id: str) -> LocalCache:
        namespace = _SAFE_NAMESPACE.sub("-", client_id.strip()) or "default"
        with self._lock:
            cache = self._caches.get(namespace)
            if cache is None:
                if self._root is None:
                    cache = InMemoryLocalCache()
                else:
                    cache = JsonFileLocalCache(self._root / f"{namespace}.json")
                self._caches[namespace] = cache
            return cache


def update_user_blob(cache: LocalCache, field: str, value: Any) -> None:
    """Read-modify-write one field of the user data blob (last writer wins)."""
    current = cache.read_blob(USER_DATA_KEY)
    blob: Dict[str, Any] = dict(current) if isinstance(current, dict) else {}
    blob[field] = value
    cache.write_blob(USER_DATA_KEY, blob)


__all__ = [
    "ASSESSMENT_FIELD",
    "CHAT_HISTORY_FIELD",
    "DRAFT_KEY",
    "InMemoryLocalCache",
    "JsonFileLocalCache",
    "LocalCache",
    "LocalCacheFactory",
    "RECOMMENDATIONS_FIELD",
    "SKILL_ANALYSIS_FIELD",
    "USER_DATA_KEY",
    "update_user_blob",
]

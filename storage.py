# storage.py
"""
Key-value persistence behind AppState.

Layout mirrors the browser build: one key per entity collection, each a
JSON-serialized array, plus a few scalar keys (theme, language) and the
per-user ``profilePic_<id>`` keys.
"""
import json
import logging
import threading
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from db import KVEntry, engine, init_db, make_engine

log = logging.getLogger("greencity.storage")


class KeyValueStore:
    """get/set/delete/list over JSON values. Last write wins per key."""

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def keys(self, prefix: str = "") -> List[str]:
        raise NotImplementedError

    def ping(self) -> bool:
        return True


class MemoryStore(KeyValueStore):
    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key, default=None):
        with self._lock:
            raw = self._data.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    def set(self, key, value):
        raw = json.dumps(value)
        with self._lock:
            self._data[key] = raw

    def delete(self, key):
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix=""):
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))


class SqlStore(KeyValueStore):
    def __init__(self, url: Optional[str] = None):
        self.engine = make_engine(url) if url else engine
        self._session = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def create_schema(self):
        init_db(bind=self.engine)

    def get(self, key, default=None):
        with self._session() as db:
            row = db.get(KVEntry, key)
            if row is None:
                return default
            try:
                return json.loads(row.value)
            except ValueError:
                log.error("Corrupt JSON under key %s; returning default", key)
                return default

    def set(self, key, value):
        raw = json.dumps(value)
        with self._session() as db:
            try:
                row = db.get(KVEntry, key)
                if row is None:
                    db.add(KVEntry(key=key, value=raw))
                else:
                    row.value = raw
                db.commit()
            except Exception:
                db.rollback()
                raise

    def delete(self, key):
        with self._session() as db:
            db.query(KVEntry).filter(KVEntry.key == key).delete()
            db.commit()

    def keys(self, prefix=""):
        with self._session() as db:
            q = db.query(KVEntry.key)
            if prefix:
                q = q.filter(KVEntry.key.startswith(prefix))
            return sorted(k for (k,) in q.all())

    def ping(self):
        try:
            self.keys("__ping__")
            return True
        except Exception as e:
            log.warning("Store ping failed: %s", e)
            return False


def make_store(backend: str) -> KeyValueStore:
    if backend == "memory":
        return MemoryStore()
    if backend == "sql":
        store = SqlStore()
        store.create_schema()
        return store
    raise ValueError(f"Unknown STORE_BACKEND: {backend}")

"""
Path-addressed document store over the relational tables.

Two collections are exposed, `users` and `breakdowns`. A path is either a
collection (`breakdowns`) or one record in it (`breakdowns/<id>`). Every write
publishes the full post-write value of the touched paths to their live
subscribers before the write call returns.
"""
import itertools
import logging
import secrets
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple
from sqlalchemy import delete as sql_delete, select, update
from sqlalchemy.orm import sessionmaker
from app.models.account import Account
from app.models.breakdown import Breakdown

logger = logging.getLogger(__name__)

Callback = Callable[[Optional[Any]], None]

COLLECTIONS = {
    "users": Account,
    "breakdowns": Breakdown,
}


_last_key_ns = 0
_key_lock = threading.Lock()


def generate_key() -> str:
    """Unique key that sorts in creation order."""
    global _last_key_ns
    with _key_lock:
        _last_key_ns = max(time.time_ns(), _last_key_ns + 1)
        stamp = _last_key_ns
    return f"{stamp:016x}{secrets.token_hex(4)}"


def parse_path(path: str) -> Tuple[str, Optional[str]]:
    parts = [p for p in path.strip("/").split("/") if p]
    if not parts or len(parts) > 2 or parts[0] not in COLLECTIONS:
        raise ValueError(f"Unsupported store path: {path!r}")
    return parts[0], parts[1] if len(parts) == 2 else None


class RecordStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._subscribers: Dict[str, Dict[int, Callback]] = {}
        self._handles = itertools.count(1)
        self._registry_lock = threading.Lock()
        # Fan-out is serialized so a subscriber's latest delivery is always the latest committed state
        self._publish_lock = threading.RLock()

    # Reads

    def read_once(self, path: str) -> Optional[Any]:
        collection, key = parse_path(path)
        model = COLLECTIONS[collection]
        with self._session_factory() as db:
            if key is not None:
                row = db.get(model, key)
                return row.to_document() if row is not None else None

            rows = db.execute(select(model).order_by(model.id)).scalars().all()
            if not rows:
                return None
            return {row.id: row.to_document() for row in rows}

    def subscribe(self, path: str, callback: Callback) -> Callable[[], None]:
        """
        Register `callback` for `path`. It is called with the current value right
        away and again after every change. Returns the unsubscribe handle.
        """
        normalized = "/".join(p for p in parse_path(path) if p)
        handle = next(self._handles)
        with self._publish_lock:
            with self._registry_lock:
                self._subscribers.setdefault(normalized, {})[handle] = callback
            self._deliver(callback, self.read_once(normalized), normalized)

        def unsubscribe():
            with self._registry_lock:
                callbacks = self._subscribers.get(normalized)
                if callbacks is None:
                    return
                callbacks.pop(handle, None)
                if not callbacks:
                    del self._subscribers[normalized]

        return unsubscribe

    def subscriber_count(self, path: str) -> int:
        normalized = "/".join(p for p in parse_path(path) if p)
        with self._registry_lock:
            return len(self._subscribers.get(normalized, {}))

    # Writes

    def create(self, path: str, value: Dict[str, Any]) -> str:
        collection, key = parse_path(path)
        if key is not None:
            raise ValueError("create() appends to a collection path")
        model = COLLECTIONS[collection]
        key = generate_key()
        with self._session_factory() as db:
            db.add(model(id=key, **model.columns_from_document(value)))
            db.commit()
        self._publish(collection, key)
        return key

    def set(self, path: str, value: Dict[str, Any]):
        """Point write: replace the whole record at `path`."""
        collection, key = self._record_path(path)
        model = COLLECTIONS[collection]
        with self._session_factory() as db:
            db.execute(sql_delete(model).where(model.id == key))
            db.add(model(id=key, **model.columns_from_document(value)))
            db.commit()
        self._publish(collection, key)

    def patch(self, path: str, partial: Dict[str, Any], expect: Optional[Dict[str, Any]] = None) -> bool:
        """
        Merge `partial` into the record at `path`, touching only the fields it names.
        With `expect`, the write only lands if those fields still hold the given
        values. Returns whether a record was written.
        """
        collection, key = self._record_path(path)
        model = COLLECTIONS[collection]
        columns = model.columns_from_document(partial)

        stmt = update(model).where(model.id == key)
        for column, expected in model.columns_from_document(expect or {}).items():
            stmt = stmt.where(getattr(model, column) == expected)

        with self._session_factory() as db:
            if not columns:
                return db.get(model, key) is not None
            result = db.execute(stmt.values(**columns))
            db.commit()
            written = result.rowcount > 0

        if written:
            self._publish(collection, key)
        return written

    def delete(self, path: str):
        collection, key = self._record_path(path)
        model = COLLECTIONS[collection]
        with self._session_factory() as db:
            result = db.execute(sql_delete(model).where(model.id == key))
            db.commit()
            removed = result.rowcount > 0
        if removed:
            self._publish(collection, key)

    # Fan-out

    def _record_path(self, path: str) -> Tuple[str, str]:
        collection, key = parse_path(path)
        if key is None:
            raise ValueError(f"Expected a record path, got {path!r}")
        return collection, key

    def _publish(self, collection: str, key: str):
        with self._publish_lock:
            for path in (collection, f"{collection}/{key}"):
                with self._registry_lock:
                    callbacks = list(self._subscribers.get(path, {}).values())
                if not callbacks:
                    continue
                value = self.read_once(path)
                for callback in callbacks:
                    self._deliver(callback, value, path)

    def _deliver(self, callback: Callback, value: Optional[Any], path: str):
        try:
            callback(value)
        except Exception:
            logger.exception("Subscriber callback failed for %s", path)

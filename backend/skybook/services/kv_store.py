from __future__ import annotations
from typing import Callable, Dict, List, Optional, Protocol
from sqlalchemy.orm import Session

from skybook.models.kv_entry import KeyValueEntry


class KeyValueStore(Protocol):
    """Durable string -> string storage. Calls are synchronous."""

    def get(self, key: str) -> Optional[str]: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...
    def list_keys(self, prefix: str = "") -> List[str]: ...


class InMemoryStore:
    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def list_keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class SqlKeyValueStore:
    """KeyValueStore over the kv_entries table; each call runs in its own session."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[str]:
        with self._session_factory() as db:
            entry = db.get(KeyValueEntry, key)
            return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        with self._session_factory() as db:
            entry = db.get(KeyValueEntry, key)
            if entry:
                entry.value = value
            else:
                db.add(KeyValueEntry(key=key, value=value))
            db.commit()

    def delete(self, key: str) -> None:
        with self._session_factory() as db:
            db.query(KeyValueEntry).filter(KeyValueEntry.key == key).delete()
            db.commit()

    def list_keys(self, prefix: str = "") -> List[str]:
        with self._session_factory() as db:
            q = db.query(KeyValueEntry.key)
            if prefix:
                # autoescape keeps '%' and '_' in booking ids literal
                q = q.filter(KeyValueEntry.key.startswith(prefix, autoescape=True))
            return [k for (k,) in q.order_by(KeyValueEntry.key).all()]

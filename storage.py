from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from errors import PersistenceError
from log import get_logger
from models import VaultSnapshot

logger = get_logger("storage")


class Storage(Protocol):
    def read(self, key: str) -> str | None: ...

    def write(self, key: str, payload: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local key/value storage, the server-side stand-in for browser local storage."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def read(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def write(self, key: str, payload: str) -> None:
        with self._lock:
            self._data[key] = payload

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class JsonFileStorage:
    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> str | None:
        path = self._path(key)
        try:
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Could not read {path}: {exc}") from exc

    def write(self, key: str, payload: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, path)
        except OSError as exc:
            if tmp_path.exists():
                tmp_path.unlink()
            raise PersistenceError(f"Could not write {path}: {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Could not remove {self._path(key)}: {exc}") from exc


class SqlStorage:
    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session: Session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise PersistenceError(str(exc)) from exc
        finally:
            session.close()

    def read(self, key: str) -> str | None:
        with self._session() as db:
            return db.scalar(select(VaultSnapshot.payload).where(VaultSnapshot.key == key))

    def write(self, key: str, payload: str) -> None:
        with self._session() as db:
            row = db.get(VaultSnapshot, key)
            if row is None:
                db.add(VaultSnapshot(key=key, payload=payload))
            else:
                row.payload = payload

    def remove(self, key: str) -> None:
        with self._session() as db:
            db.execute(delete(VaultSnapshot).where(VaultSnapshot.key == key))


def build_storage(backend: str, data_dir: str | Path = "data", session_factory: sessionmaker | None = None) -> Storage:
    logger.info("Using %s vault backend", backend)
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return JsonFileStorage(data_dir)
    if backend == "sql":
        if session_factory is None:
            raise RuntimeError("The sql vault backend needs a session factory.")
        return SqlStorage(session_factory)
    raise RuntimeError(f"Unknown vault backend: {backend}")

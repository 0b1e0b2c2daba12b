from __future__ import annotations

import hashlib
import json
import re
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlsplit

from pydantic import ValidationError

from selfheal.config.schema import StorageConfig
from selfheal.core.exceptions import FingerprintNotFoundError, RepositoryUnavailableError
from selfheal.core.metadata import Fingerprint, utc_now

_UNSAFE_KEY_CHARS = re.compile(r"[^\w\-]+")
_MAX_NAME_PREFIX = 64


def page_key_from_url(url: str) -> str:
    """Derives the storage partition for a page, e.g. ``localhost_/login.html``."""

    parts = urlsplit(url)
    host = parts.hostname or parts.netloc or "local"
    return f"{host}_{parts.path or '/'}"


def storage_name(key: str) -> str:
    """Readable, collision-free file name for a page key or element id."""

    prefix = _UNSAFE_KEY_CHARS.sub("_", key)[:_MAX_NAME_PREFIX]
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
    return f"{prefix}-{digest}"


@dataclass(slots=True)
class _SharedLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class KeyedLocks:
    """One lock per (page key, element id); distinct keys never contend.

    Entries live only while some thread holds or waits on them.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str], _SharedLock] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: tuple[str, str]) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _SharedLock()
            entry.holders += 1
            return entry.lock

    def _checkin(self, key: tuple[str, str]) -> None:
        with self._guard:
            entry = self._locks[key]
            entry.holders -= 1
            if entry.holders == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, page_key: str, *element_ids: str) -> Iterator[None]:
        # sorted acquisition keeps two concurrent rekeys from deadlocking
        keys = sorted({(page_key, element_id) for element_id in element_ids})
        checked_out: list[tuple[str, str]] = []
        acquired: list[threading.Lock] = []
        try:
            for key in keys:
                lock = self._checkout(key)
                checked_out.append(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in reversed(checked_out):
                self._checkin(key)


class FingerprintRepository(ABC):
    """Keyed fingerprint storage partitioned by page key."""

    def __init__(self) -> None:
        self.locks = KeyedLocks()

    @abstractmethod
    def _load(self, page_key: str, element_id: str) -> Fingerprint | None:
        raise NotImplementedError

    @abstractmethod
    def _store(self, page_key: str, fingerprint: Fingerprint) -> None:
        raise NotImplementedError

    @abstractmethod
    def _delete(self, page_key: str, element_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_page(self, page_key: str) -> list[Fingerprint]:
        raise NotImplementedError

    def get(self, page_key: str, element_id: str) -> Fingerprint | None:
        with self.locks.hold(page_key, element_id):
            return self._load(page_key, element_id)

    def put(self, page_key: str, element_id: str, fingerprint: Fingerprint) -> Fingerprint:
        """Upserts the latest observation, keeping any existing history."""

        with self.locks.hold(page_key, element_id):
            existing = self._load(page_key, element_id)
            history = list(existing.history) if existing else list(fingerprint.history)
            record = fingerprint.model_copy(
                update={"element_id": element_id, "history": history, "last_seen_at": utc_now()}
            )
            self._store(page_key, record)
            return record

    def rekey(
        self,
        page_key: str,
        old_id: str,
        new_id: str,
        observed: Fingerprint | None = None,
    ) -> Fingerprint:
        with self.locks.hold(page_key, old_id, new_id):
            previous = self._load(page_key, old_id)
            if previous is None:
                raise FingerprintNotFoundError(page_key, old_id)
            history = list(previous.history)
            if new_id != old_id:
                displaced = self._load(page_key, new_id)
                if displaced is not None:
                    history = _merge_history(displaced.history, history)
                history = _merge_history(history, [old_id])
            source = observed or previous
            record = source.model_copy(
                update={"element_id": new_id, "history": history, "last_seen_at": utc_now()}
            )
            self._store(page_key, record)
            if new_id != old_id:
                self._delete(page_key, old_id)
            return record


class InMemoryFingerprintRepository(FingerprintRepository):
    def __init__(self) -> None:
        super().__init__()
        self._pages: dict[str, dict[str, Fingerprint]] = {}
        self._pages_guard = threading.Lock()

    def _load(self, page_key: str, element_id: str) -> Fingerprint | None:
        with self._pages_guard:
            record = self._pages.get(page_key, {}).get(element_id)
        return record.model_copy(deep=True) if record else None

    def _store(self, page_key: str, fingerprint: Fingerprint) -> None:
        with self._pages_guard:
            page = self._pages.setdefault(page_key, {})
            page[fingerprint.element_id] = fingerprint.model_copy(deep=True)

    def _delete(self, page_key: str, element_id: str) -> None:
        with self._pages_guard:
            page = self._pages.get(page_key)
            if page is None:
                return
            page.pop(element_id, None)
            if not page:
                del self._pages[page_key]

    def list_page(self, page_key: str) -> list[Fingerprint]:
        with self._pages_guard:
            page = dict(self._pages.get(page_key, {}))
        return [page[key].model_copy(deep=True) for key in sorted(page)]


class JsonFileFingerprintRepository(FingerprintRepository):
    """One directory per page key, one JSON document per fingerprint."""

    def __init__(self, root: str | Path = "snapshots") -> None:
        super().__init__()
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise RepositoryUnavailableError(f"Cannot create storage at {self.root}: {exc}") from exc

    def page_dir(self, page_key: str) -> Path:
        return self.root / storage_name(page_key)

    def fingerprint_path(self, page_key: str, element_id: str) -> Path:
        return self.page_dir(page_key) / f"{storage_name(element_id)}.json"

    def _load(self, page_key: str, element_id: str) -> Fingerprint | None:
        try:
            return self._read(self.fingerprint_path(page_key, element_id), page_key)
        except FileNotFoundError:
            return None

    def _store(self, page_key: str, fingerprint: Fingerprint) -> None:
        path = self.fingerprint_path(page_key, fingerprint.element_id)
        temporary = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temporary.write_text(
                json.dumps({"page_key": page_key, **fingerprint.to_payload()}, indent=2),
                encoding="utf-8",
            )
            temporary.replace(path)
        except OSError as exc:
            raise RepositoryUnavailableError(f"Cannot write {path}: {exc}") from exc

    def _delete(self, page_key: str, element_id: str) -> None:
        try:
            self.fingerprint_path(page_key, element_id).unlink(missing_ok=True)
        except OSError as exc:
            raise RepositoryUnavailableError(f"Cannot delete fingerprint {element_id}: {exc}") from exc

    def list_page(self, page_key: str) -> list[Fingerprint]:
        directory = self.page_dir(page_key)
        if not directory.exists():
            return []
        records: list[Fingerprint] = []
        for path in sorted(directory.glob("*.json")):
            try:
                records.append(self._read(path, page_key))
            except FileNotFoundError:
                # moved away by a concurrent rekey
                continue
        return sorted(records, key=lambda record: record.element_id)

    @staticmethod
    def _read(path: Path, page_key: str) -> Fingerprint:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise
        except (OSError, ValueError) as exc:
            raise RepositoryUnavailableError(f"Cannot read fingerprint {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise RepositoryUnavailableError(f"Cannot read fingerprint {path}: not a JSON object")
        stored_key = payload.pop("page_key", None)
        if stored_key != page_key:
            raise RepositoryUnavailableError(
                f"Fingerprint {path} belongs to page {stored_key!r}, not {page_key!r}"
            )
        try:
            return Fingerprint.model_validate(payload)
        except ValidationError as exc:
            raise RepositoryUnavailableError(f"Cannot read fingerprint {path}: {exc}") from exc


def create_repository(storage: StorageConfig) -> FingerprintRepository:
    if storage.backend == "memory":
        return InMemoryFingerprintRepository()
    return JsonFileFingerprintRepository(storage.directory)


def _merge_history(first: list[str], second: list[str]) -> list[str]:
    merged = list(first)
    for element_id in second:
        if element_id not in merged:
            merged.append(element_id)
    return merged

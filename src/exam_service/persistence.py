"""
Key-value persistence for generation state, sessions and attempts.

Records are stored as JSON blobs under slash-separated keys, e.g.
``generation/<sessionId>``. ``FileBlobStore`` maps each key to a JSON file
and replaces files atomically so a crash never leaves a torn checkpoint.
"""

import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Protocol, TypeVar

from pydantic import BaseModel

from exam_service.analytics import AttemptRecord
from exam_service.core.data_models import ExamResult, ExamSession
from exam_service.generation.state import GenerationState

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+(/[A-Za-z0-9_.-]+)*$")

GENERATION_PREFIX = "generation/"
SESSION_PREFIX = "session/"
RESULT_PREFIX = "result/"
ATTEMPT_PREFIX = "attempt/"


class InvalidKeyError(ValueError):
    pass


def validate_key(key: str) -> str:
    if not _KEY_RE.match(key) or any(part in (".", "..") for part in key.split("/")):
        raise InvalidKeyError(f"Invalid storage key: {key!r}")
    return key


class BlobStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self, prefix: str = "") -> list[str]: ...


class InMemoryBlobStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(validate_key(key))

    def put(self, key: str, value: str) -> None:
        self._data[validate_key(key)] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(validate_key(key), None) is not None

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class FileBlobStore:
    """Stores each key as ``<root>/<key>.json``."""

    SUFFIX = ".json"

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self._root / f"{validate_key(key)}{self.SUFFIX}"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def put(self, key: str, value: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp"
            )
            tmp = Path(tmp_name)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                    f.flush()
                    os.fsync(f.fileno())
                tmp.replace(path)
            except BaseException:
                tmp.unlink(missing_ok=True)
                raise

    def delete(self, key: str) -> bool:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return False
            path.unlink()
            return True

    def keys(self, prefix: str = "") -> list[str]:
        if not self._root.exists():
            return []
        found = []
        for path in self._root.rglob(f"*{self.SUFFIX}"):
            key = path.relative_to(self._root).as_posix()[: -len(self.SUFFIX)]
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)


class ExamRepository:
    """Typed access to the records of the exam service."""

    def __init__(self, store: BlobStore) -> None:
        self._store = store

    def _load(self, key: str, model: type[M]) -> M | None:
        raw = self._store.get(key)
        if raw is None:
            return None
        return model.model_validate_json(raw)

    def _save(self, key: str, record: BaseModel) -> None:
        self._store.put(key, record.model_dump_json(by_alias=True))

    # --- Generation state ---

    def save_generation_state(self, state: GenerationState) -> None:
        self._save(GENERATION_PREFIX + state.session_id, state)

    def load_generation_state(self, session_id: str) -> GenerationState | None:
        return self._load(GENERATION_PREFIX + session_id, GenerationState)

    def delete_generation_state(self, session_id: str) -> bool:
        return self._store.delete(GENERATION_PREFIX + session_id)

    def list_generation_ids(self) -> list[str]:
        return [
            k[len(GENERATION_PREFIX) :] for k in self._store.keys(GENERATION_PREFIX)
        ]

    # --- Sessions and results ---

    def save_session(self, session: ExamSession) -> None:
        self._save(SESSION_PREFIX + session.session_id, session)

    def load_session(self, session_id: str) -> ExamSession | None:
        return self._load(SESSION_PREFIX + session_id, ExamSession)

    def save_result(self, session_id: str, result: ExamResult) -> None:
        self._save(RESULT_PREFIX + session_id, result)

    def load_result(self, session_id: str) -> ExamResult | None:
        return self._load(RESULT_PREFIX + session_id, ExamResult)

    def discard_session(self, session_id: str) -> bool:
        """Remove the session, its generation state and its result."""
        removed = [
            self._store.delete(prefix + session_id)
            for prefix in (GENERATION_PREFIX, SESSION_PREFIX, RESULT_PREFIX)
        ]
        return any(removed)

    # --- Attempts ---

    def save_attempt(self, attempt: AttemptRecord) -> None:
        self._save(ATTEMPT_PREFIX + attempt.session_id, attempt)

    def list_attempts(self) -> list[AttemptRecord]:
        attempts = []
        for key in self._store.keys(ATTEMPT_PREFIX):
            attempt = self._load(key, AttemptRecord)
            if attempt is not None:
                attempts.append(attempt)
        return sorted(attempts, key=lambda a: a.submitted_at)

"""
Fingerprinting and caching of validated generation batches.
"""

import hashlib
import json
import time
from collections.abc import Callable
from typing import Protocol

from exam_service.core.data_models import RawItem
from exam_service.generation.base import GenerationRequest


def request_fingerprint(request: GenerationRequest) -> str:
    """SHA-256 over the canonical JSON of the request."""
    payload = request.model_dump(mode="json", by_alias=True)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ResponseCache(Protocol):
    def get(self, fingerprint: str) -> list[RawItem] | None: ...

    def set(
        self,
        fingerprint: str,
        items: list[RawItem],
        ttl_seconds: float | None = None,
    ) -> None: ...


class InMemoryResponseCache:
    """Process-local TTL cache. Expired entries are dropped on read."""

    def __init__(
        self,
        ttl_seconds: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, list[RawItem]]] = {}

    def get(self, fingerprint: str) -> list[RawItem] | None:
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        expires_at, items = entry
        if self._clock() > expires_at:
            del self._entries[fingerprint]
            return None
        return list(items)

    def set(
        self,
        fingerprint: str,
        items: list[RawItem],
        ttl_seconds: float | None = None,
    ) -> None:
        ttl = self._ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[fingerprint] = (self._clock() + ttl, list(items))

    def __len__(self) -> int:
        return len(self._entries)

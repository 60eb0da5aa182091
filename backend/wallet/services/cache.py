"""Wallet read cache with typed keys and an injectable clock."""
from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from django.conf import settings
from django.core.cache import caches
from django.core.cache.backends.base import BaseCache

Clock = Callable[[], float]

DEFAULT_TTL_SECONDS = 300


class CacheKind(str, Enum):
    WALLET = "wallet"
    BALANCE = "balance"


@dataclass(frozen=True)
class CacheKey:
    kind: CacheKind
    user_id: str

    def render(self) -> str:
        return f"{self.kind.value}_{self.user_id}"


@dataclass(frozen=True)
class _Entry:
    stored_at: float
    value: Any


class WalletCache:
    """Cache wallet reads per user.

    Freshness is decided against ``clock`` rather than left to the backend, so
    tests can advance time explicitly and every backend (local memory, Redis)
    expires entries identically.
    """

    def __init__(
        self,
        backend: Optional[BaseCache] = None,
        *,
        ttl_seconds: Optional[int] = None,
        clock: Clock = time.time,
    ) -> None:
        self.backend = backend if backend is not None else caches["default"]
        if ttl_seconds is None:
            ttl_seconds = getattr(settings, "WALLET_CACHE_TTL_SECONDS", DEFAULT_TTL_SECONDS)
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def get(self, key: CacheKey) -> Optional[Any]:
        entry = self.backend.get(key.render())
        if not isinstance(entry, _Entry):
            return None
        if self.clock() - entry.stored_at >= self.ttl_seconds:
            self.backend.delete(key.render())
            return None
        return entry.value

    def set(self, key: CacheKey, value: Any) -> None:
        if self.ttl_seconds <= 0:
            return
        self.backend.set(key.render(), _Entry(stored_at=self.clock(), value=value), timeout=self.ttl_seconds)

    def invalidate(self, key: CacheKey) -> None:
        self.backend.delete(key.render())

    def invalidate_user(self, user_id: Any) -> None:
        self.backend.delete_many([CacheKey(kind, str(user_id)).render() for kind in CacheKind])

"""Query cache and the generic repository every page fetches through.

``Repository.for_session(session).fetch(path)`` returns a :class:`Result`.
Entries are keyed by request identity (path, query params and the session
principal) so two users never share cached data. Listeners registered with
``QueryCache.subscribe`` are notified whenever an entry is stored or
invalidated; that notification is the hook views use to refresh.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Mapping, TypeVar

from ..core.errors import BackendError, SessionExpired
from ..session import Session
from .backend import BackendClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class QueryKey:
    path: str
    params: tuple[tuple[str, str], ...] = ()
    scope: str = ""

    @classmethod
    def of(cls, path: str, params: Mapping[str, Any] | None = None, scope: str = "") -> "QueryKey":
        items = tuple(sorted((str(k), str(v)) for k, v in (params or {}).items() if v is not None))
        return cls(path=path, params=items, scope=scope)

    def matches(self, path_prefix: str | None = None, scope: str | None = None) -> bool:
        if scope is not None and self.scope != scope:
            return False
        if path_prefix is not None and not self.path.startswith(path_prefix):
            return False
        return True


@dataclass(frozen=True)
class Result(Generic[T]):
    data: T | None = None
    error: BackendError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        if self.error is not None or self.data is None:
            return default
        return self.data


@dataclass(frozen=True)
class CacheEvent:
    kind: str  # "updated" or "invalidated"
    key: QueryKey


Listener = Callable[[CacheEvent], None]


@dataclass
class _Entry:
    data: Any
    stored_at: float = field(default_factory=time.monotonic)


class QueryCache:
    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[QueryKey, _Entry] = {}
        self._listeners: list[tuple[QueryKey | None, Listener]] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: QueryKey) -> bool:
        return self.get(key) is not _MISSING

    def _expired(self, entry: _Entry) -> bool:
        return self.ttl_seconds is not None and self._clock() - entry.stored_at > self.ttl_seconds

    def get(self, key: QueryKey) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        if self._expired(entry):
            del self._entries[key]
            return _MISSING
        return entry.data

    def set(self, key: QueryKey, data: Any) -> None:
        self.prune()
        self._entries[key] = _Entry(data=data, stored_at=self._clock())
        self._notify(CacheEvent("updated", key))

    def invalidate(self, path_prefix: str | None = None, scope: str | None = None) -> int:
        stale = [key for key in self._entries if key.matches(path_prefix, scope)]
        for key in stale:
            del self._entries[key]
            self._notify(CacheEvent("invalidated", key))
        return len(stale)

    def clear(self) -> None:
        self.invalidate()

    def prune(self) -> int:
        """Drop expired entries, including those of sessions that never came back."""

        expired = [key for key, entry in self._entries.items() if self._expired(entry)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def subscribe(self, listener: Listener, key: QueryKey | None = None) -> Callable[[], None]:
        """Register ``listener``; ``key=None`` listens to every entry. Returns the unsubscribe callable."""

        registration = (key, listener)
        self._listeners.append(registration)

        def unsubscribe() -> None:
            if registration in self._listeners:
                self._listeners.remove(registration)

        return unsubscribe

    def _notify(self, event: CacheEvent) -> None:
        for key, listener in list(self._listeners):
            if key is None or key == event.key:
                listener(event)


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


_MISSING: Any = _Missing()


class Repository:
    """Process-wide fetch layer: one cache, one backend client, many sessions."""

    def __init__(self, cache: QueryCache, backend: BackendClient) -> None:
        self.cache = cache
        self.backend = backend
        self._inflight: dict[QueryKey, asyncio.Future] = {}

    def for_session(self, session: Session) -> "SessionRepository":
        return SessionRepository(self, session)

    async def fetch(self, key: QueryKey, cookies: Mapping[str, str]) -> Result[Any]:
        cached = self.cache.get(key)
        if cached is not _MISSING:
            return Result(data=cached)

        pending = self._inflight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._inflight[key] = future
        try:
            result = await self._load(key, cookies)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark as retrieved so a future nobody waited on is not logged as unhandled.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)

    async def _load(self, key: QueryKey, cookies: Mapping[str, str]) -> Result[Any]:
        try:
            data = await self.backend.get_json(key.path, cookies, params=dict(key.params) or None)
        except SessionExpired:
            raise
        except BackendError as exc:
            logger.warning(
                "Fetch failed for %s",
                key.path,
                extra={"extra_data": {"query": key.path, "status": exc.status_code, "scope": key.scope}},
            )
            return Result(error=exc)
        self.cache.set(key, data)
        return Result(data=data)

    def invalidate(self, path_prefix: str | None = None, scope: str | None = None) -> int:
        return self.cache.invalidate(path_prefix=path_prefix, scope=scope)


class SessionRepository:
    """Repository view bound to one signed-in user."""

    def __init__(self, repository: Repository, session: Session) -> None:
        self.repository = repository
        self.session = session

    def key(self, path: str, params: Mapping[str, Any] | None = None) -> QueryKey:
        return QueryKey.of(path, params, scope=self.session.principal)

    async def fetch(self, path: str, params: Mapping[str, Any] | None = None) -> Result[Any]:
        return await self.repository.fetch(self.key(path, params), self.session.backend_cookies)

    async def fetch_many(self, *paths: str) -> list[Result[Any]]:
        return list(await asyncio.gather(*(self.fetch(path) for path in paths)))

    def invalidate(self, path_prefix: str | None = None) -> int:
        return self.repository.invalidate(path_prefix=path_prefix, scope=self.session.principal)

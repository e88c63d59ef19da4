"""
Content Cache Module.

Keeps a value computed from a file's contents and recomputes it only when
the file actually changed. Filesystem checks are debounced, concurrent
refreshes of one entry share a single probe, and the last good value is
returned together with an error when a refresh fails.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar, Union

from .digest import Digest, load_file
from .errors import CacheError, RecomputeError, SourceReadError
from .runtime import BlockingRuntime

logger = logging.getLogger(__name__)

T = TypeVar("T")

Compute = Callable[[str], Union[T, Awaitable[T]]]
LoadResult = tuple[T, Union[CacheError, None]]

DEFAULT_CHECK_INTERVAL = 2.0  # seconds

_UNSET: Any = object()


def _identity(src: str) -> Any:
    return src


def _collect_failure(task: asyncio.Task[Any]) -> None:
    # Every waiter may have given up, read the exception so it is not lost
    if not task.cancelled() and task.exception() is not None:
        logger.error("Cache refresh failed", exc_info=task.exception())


@dataclass
class CacheEntry(Generic[T]):
    """ソース1件分のキャッシュ状態"""

    value: T
    digest: Digest | None = None
    last_check: float | None = None


class _EntryCache(Generic[T]):
    """Lock-protected entry plus its refresh state machine."""

    def __init__(
        self,
        seed: T,
        check_interval: float,
        clock: Callable[[], float],
        runtime: BlockingRuntime | None,
    ) -> None:
        self.check_interval = check_interval
        self._clock = clock
        self._runtime = runtime
        self._lock = threading.Lock()
        self._entry: CacheEntry[T] = CacheEntry(value=seed)
        self._refresh: asyncio.Task[LoadResult[T]] | None = None

    def snapshot(self) -> CacheEntry[T]:
        with self._lock:
            return dataclasses.replace(self._entry)

    async def load(self, path: Path, compute: Compute[T]) -> LoadResult[T]:
        loop = asyncio.get_running_loop()
        with self._lock:
            entry = self._entry
            if (
                entry.last_check is not None
                and self._clock() - entry.last_check < self.check_interval
            ):
                return entry.value, None

            task = self._refresh
            if task is None or task.done() or task.get_loop() is not loop:
                task = loop.create_task(
                    self._refresh_from(path, entry.digest, entry.value, compute)
                )
                task.add_done_callback(_collect_failure)
                self._refresh = task

        # Callers that give up waiting must not cancel the shared refresh.
        return await asyncio.shield(task)

    async def _refresh_from(
        self, path: Path, digest: Digest | None, value: T, compute: Compute[T]
    ) -> LoadResult[T]:
        try:
            probe = await self._run_blocking(load_file, path, digest)
        except (OSError, UnicodeDecodeError) as e:
            self._commit()
            return value, SourceReadError(path, e)

        if probe.contents is None:
            self._commit(probe.digest)
            return value, None

        logger.debug("Reloading file `%s`", path)
        try:
            new_value = compute(probe.contents)
            if inspect.isawaitable(new_value):
                new_value = await new_value
        except Exception as e:
            # Remember the rejected digest so the same bytes are not re-parsed.
            self._commit(probe.digest)
            return value, RecomputeError(path, e)

        self._commit(probe.digest, new_value)
        return new_value, None

    def _commit(self, digest: Digest | None = None, value: Any = _UNSET) -> None:
        with self._lock:
            self._entry.last_check = self._clock()
            if digest is not None:
                self._entry.digest = digest
            if value is not _UNSET:
                self._entry.value = value

    async def _run_blocking(self, fn: Callable[..., Any], *args: Any) -> Any:
        if self._runtime is not None:
            return await self._runtime.run(fn, *args)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: fn(*args))


class Cache(Generic[T]):
    """
    Self-invalidating cache for a single source file.

    Usage:
        config = Cache("_config.yaml", SiteConfig(), parse_site_config)
        value, err = await config.load()
        if err:
            logger.warning("Error reloading `%s`: %s", config.path, err)
    """

    def __init__(
        self,
        path: str | Path,
        seed: T,
        compute: Compute[T] | None = None,
        *,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        runtime: BlockingRuntime | None = None,
    ) -> None:
        self._path = Path(path)
        self._compute = compute or _identity
        self._cache: _EntryCache[T] = _EntryCache(seed, check_interval, clock, runtime)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def entry(self) -> CacheEntry[T]:
        """Snapshot of the current entry state (for diagnostics)."""
        return self._cache.snapshot()

    async def load(self, compute: Compute[T] | None = None) -> LoadResult[T]:
        """
        Return the current value, refreshing it from disk if necessary.

        Args:
            compute: Overrides the recomputation function for this call

        Returns:
            (value, error) where value is always usable: the fresh value,
            the last good value, or the seed. error is a CacheError when
            the refresh failed, otherwise None.
        """
        return await self._cache.load(self._path, compute or self._compute)

    reload = load


class CacheMap(Generic[T]):
    """Self-invalidating caches keyed by source path, one lock per entry."""

    def __init__(
        self,
        compute: Compute[T] | None = None,
        seed: Callable[[], T] | None = None,
        *,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        runtime: BlockingRuntime | None = None,
    ) -> None:
        self._compute = compute or _identity
        self._seed = seed or (lambda: None)
        self.check_interval = check_interval
        self._clock = clock
        self._runtime = runtime
        self._lock = threading.Lock()
        self._entries: dict[Path, _EntryCache[T]] = {}

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        with self._lock:
            return Path(path) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def entry(self, path: str | Path) -> CacheEntry[T] | None:
        with self._lock:
            cache = self._entries.get(Path(path))
        return cache.snapshot() if cache is not None else None

    async def load(
        self, path: str | Path, compute: Compute[T] | None = None
    ) -> LoadResult[T]:
        """Same contract as Cache.load(), for the entry of ``path``."""
        path = Path(path)
        with self._lock:
            cache = self._entries.get(path)
            if cache is None:
                cache = _EntryCache(
                    self._seed(), self.check_interval, self._clock, self._runtime
                )
                self._entries[path] = cache
        return await cache.load(path, compute or self._compute)

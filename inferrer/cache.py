"""Probe memoization and cross-call prefetching.

A :class:`MemoizingProbe` lives for one inference call and guarantees each
path reaches the underlying probe at most once per kind of question. Every path it dispatches is
recorded in a :class:`LearnedPathSet`, which outlives the call; the next
call fires reads for all learned paths up front so that the rules, which
probe one path at a time, mostly find their answers already in flight.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from .metrics import PROBE_CACHE_TOTAL
from .probe import ProbeContext

logger = logging.getLogger(__name__)


class LearnedPathSet:
    """Append-only record of every path probed so far."""

    def __init__(self, paths: Iterable[str] = ()):
        self._paths: Set[str] = set(paths)
        self._lock = threading.Lock()

    def add(self, path: str) -> None:
        with self._lock:
            self._paths.add(path)

    def snapshot(self) -> List[str]:
        with self._lock:
            return sorted(self._paths)

    def clear(self) -> None:
        with self._lock:
            self._paths.clear()

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)


def _log_unconsumed(task: "asyncio.Task[Any]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Probe task %s finished with %r", task.get_name(), exc)


class InflightTasks:
    """Probe tasks not yet finished, possibly spread over several event loops."""

    def __init__(self):
        self._tasks: Set["asyncio.Task[Any]"] = set()
        self._lock = threading.Lock()

    def track(self, task: "asyncio.Task[Any]") -> None:
        with self._lock:
            self._tasks.add(task)
        task.add_done_callback(self._discard)

    def _discard(self, task: "asyncio.Task[Any]") -> None:
        with self._lock:
            self._tasks.discard(task)

    def pending(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> List["asyncio.Task[Any]"]:
        with self._lock:
            tasks = list(self._tasks)
        return [task for task in tasks if not task.done() and (loop is None or task.get_loop() is loop)]

    async def drain(self) -> None:
        """Wait for the tasks of the running loop; other loops' tasks are left alone."""
        pending = self.pending(asyncio.get_running_loop())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)


class MemoizingProbe:
    """Per-call cache in front of a :class:`ProbeContext`.

    ``read`` and ``exists`` each reach the wrapped probe at most once per
    path. A probe whose ``exists`` is defined as ``bool(read)`` can say so
    with ``exists_from_read = True``; both calls then share the read task,
    so prefetched reads also answer ``exists``. ``inflight`` is the
    caller's :class:`InflightTasks`, which keeps unawaited prefetches
    referenced until they complete.
    """

    def __init__(
        self,
        probe: ProbeContext,
        learned: LearnedPathSet,
        *,
        inflight: Optional[InflightTasks] = None,
    ):
        self.probe = probe
        self.learned = learned
        self.inflight = inflight if inflight is not None else InflightTasks()
        self._reads: Dict[str, "asyncio.Task[Optional[str]]"] = {}
        self._presence: Dict[str, "asyncio.Task[bool]"] = {}

    @property
    def dispatched(self) -> List[str]:
        return list(dict.fromkeys([*self._reads, *self._presence]))

    def _dispatch(
        self, memo: Dict[str, "asyncio.Task[Any]"], path: str, call: Callable[[str], Awaitable[Any]]
    ) -> "asyncio.Task[Any]":
        task = memo.get(path)
        if task is not None:
            return task
        self.learned.add(path)
        task = asyncio.ensure_future(call(path))
        task.add_done_callback(_log_unconsumed)
        self.inflight.track(task)
        memo[path] = task
        return task

    async def read(self, path: str) -> Optional[str]:
        PROBE_CACHE_TOTAL.labels("hit" if path in self._reads else "miss").inc()
        return await asyncio.shield(self._dispatch(self._reads, path, self.probe.read))

    async def exists(self, path: str) -> bool:
        if getattr(self.probe, "exists_from_read", False):
            return bool(await self.read(path))
        PROBE_CACHE_TOTAL.labels("hit" if path in self._presence else "miss").inc()
        return await asyncio.shield(self._dispatch(self._presence, path, self.probe.exists))

    def prefetch(self, paths: Iterable[str]) -> int:
        """Dispatch reads for ``paths`` without waiting; returns how many were new."""
        fired = 0
        for path in paths:
            if path in self._reads:
                continue
            self._dispatch(self._reads, path, self.probe.read)
            fired += 1
        if fired:
            PROBE_CACHE_TOTAL.labels("prefetch").inc(fired)
        return fired

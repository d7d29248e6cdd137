"""Probe surface consumed by the detector rules.

Rules only ever see ``exists(path)`` and ``read(path)``. Everything that
talks to a real content source sits behind :class:`RepositoryProbe`, which
turns transport and content failures into ``None``/``False`` so that a
flaky provider can never break a rule.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, wait_random

from .metrics import PROBE_REQUESTS_TOTAL
from .model import WorkspaceConfig

logger = logging.getLogger(__name__)

RETRY_INITIAL_WAIT = 0.1
RETRY_MAX_WAIT = 2.0
RETRY_JITTER = 0.1


@runtime_checkable
class ProbeContext(Protocol):
    async def exists(self, path: str) -> bool: ...

    async def read(self, path: str) -> Optional[str]: ...


@runtime_checkable
class FileProvider(Protocol):
    """External collaborator serving file content for one repository snapshot."""

    async def get_file_content(self, repository: Any, path: str) -> Optional[str]: ...


@dataclass
class InferenceContext:
    """Per-call state: the probe bound to one snapshot plus the config being built."""

    probe: ProbeContext
    config: WorkspaceConfig = field(default_factory=WorkspaceConfig)

    async def exists(self, path: str) -> bool:
        return await self.probe.exists(path)

    async def read(self, path: str) -> Optional[str]:
        return await self.probe.read(path)


class RepositoryProbe:
    """Bind a :class:`FileProvider` to one repository handle.

    Each read is bounded by ``timeout_seconds`` and retried up to
    ``attempts`` times. Whatever still fails is logged and reported as
    absent. ``exists`` is derived from ``read``: empty content counts as
    missing.
    """

    exists_from_read = True

    def __init__(
        self,
        provider: FileProvider,
        repository: Any,
        *,
        timeout_seconds: Optional[float] = 30.0,
        attempts: int = 1,
    ):
        self.provider = provider
        self.repository = repository
        self.timeout_seconds = timeout_seconds
        self.attempts = max(1, int(attempts))

    async def _read_once(self, path: str) -> Optional[str]:
        pending = self.provider.get_file_content(self.repository, path)
        if self.timeout_seconds is None:
            return await pending
        return await asyncio.wait_for(pending, self.timeout_seconds)

    async def read(self, path: str) -> Optional[str]:
        content: Optional[str] = None
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.attempts),
                wait=wait_exponential(multiplier=RETRY_INITIAL_WAIT, max=RETRY_MAX_WAIT)
                + wait_random(0, RETRY_JITTER),
                reraise=True,
            ):
                with attempt:
                    content = await self._read_once(path)
        except Exception as exc:
            logger.debug("Probe for %s in %s failed: %r", path, self.repository, exc)
            PROBE_REQUESTS_TOTAL.labels("error").inc()
            return None
        PROBE_REQUESTS_TOTAL.labels("found" if content else "missing").inc()
        return content

    async def exists(self, path: str) -> bool:
        return bool(await self.read(path))


class MappingProbe:
    """In-memory snapshot keyed by repository-relative path.

    ``exists`` is key presence, so an empty file still exists here. Only
    :class:`RepositoryProbe` folds empty content into "missing".
    """

    def __init__(self, files: Mapping[str, str]):
        self.files = dict(files)

    async def exists(self, path: str) -> bool:
        return path in self.files

    async def read(self, path: str) -> Optional[str]:
        return self.files.get(path)


class LocalFileProvider:
    """Serve files from a checkout on disk; the repository handle is its path."""

    encoding = "utf-8"

    async def get_file_content(self, repository: Any, path: str) -> Optional[str]:
        root = Path(repository).expanduser().resolve()
        target = (root / path).resolve()
        if target != root and root not in target.parents:
            logger.debug("Refusing to read %s outside of %s", path, root)
            return None
        if not target.is_file():
            return None
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read_text, target)

    def _read_text(self, target: Path) -> str:
        return target.read_text(encoding=self.encoding)


__all__ = [
    "FileProvider",
    "InferenceContext",
    "LocalFileProvider",
    "MappingProbe",
    "ProbeContext",
    "RepositoryProbe",
]

from __future__ import annotations

import asyncio
import sys
from collections import Counter
from pathlib import Path
from typing import Dict, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

if sys.version_info < (3, 10):
    pytest.exit("workspace-inferrer requires Python 3.10+", returncode=0)


class StubProvider:
    """File provider over a dict; the first read of a path can be delayed."""

    def __init__(self, files: Dict[str, str], *, first_delay: float = 0.0, failing: tuple = ()):
        self.files = dict(files)
        self.first_delay = first_delay
        self.failing = set(failing)
        self.calls: Counter = Counter()

    async def get_file_content(self, repository, path: str) -> Optional[str]:
        self.calls[path] += 1
        if self.first_delay and self.calls[path] == 1:
            await asyncio.sleep(self.first_delay)
        if path in self.failing:
            raise ConnectionError(f"provider unavailable for {path}")
        return self.files.get(path)


class CountingProbe:
    """Raw probe context that records every read it serves."""

    exists_from_read = True

    def __init__(self, files: Dict[str, str], *, delay: float = 0.0):
        self.files = dict(files)
        self.delay = delay
        self.reads: Counter = Counter()

    async def read(self, path: str) -> Optional[str]:
        self.reads[path] += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.files.get(path)

    async def exists(self, path: str) -> bool:
        return bool(await self.read(path))


@pytest.fixture
def stub_provider():
    return StubProvider


@pytest.fixture
def counting_probe():
    return CountingProbe

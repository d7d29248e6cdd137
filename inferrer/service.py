"""Guess a workspace configuration for a repository served by a file provider."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from .cache import InflightTasks, LearnedPathSet, MemoizingProbe
from .config import InferrerConfig
from .engine import ConfigInferrer
from .metrics import INFERENCE_DURATION
from .model import WorkspaceConfig
from .probe import FileProvider, InferenceContext, RepositoryProbe
from .serializer import dump_config

logger = logging.getLogger(__name__)


@dataclass
class ConfigurationResult:
    source: str
    text: str
    config: Optional[WorkspaceConfig] = None


class ConfigurationGuesser:
    """Long-lived front door to the inferrer.

    One guesser owns one :class:`LearnedPathSet`; keep a single instance per
    process to benefit from prefetching across calls.
    """

    def __init__(
        self,
        provider: FileProvider,
        *,
        settings: Optional[InferrerConfig] = None,
        inferrer: Optional[ConfigInferrer] = None,
        learned: Optional[LearnedPathSet] = None,
    ):
        self.provider = provider
        self.settings = settings or InferrerConfig()
        self.inferrer = inferrer or ConfigInferrer(disabled=self.settings.disabled_rules)
        self.learned = learned if learned is not None else LearnedPathSet()
        self._inflight = InflightTasks()

    def _repository_probe(self, repository: Any) -> RepositoryProbe:
        return RepositoryProbe(
            self.provider,
            repository,
            timeout_seconds=self.settings.probe_timeout_seconds,
            attempts=self.settings.probe_attempts,
        )

    async def guess_configuration(self, repository: Any) -> Optional[WorkspaceConfig]:
        started = time.monotonic()
        probe = MemoizingProbe(self._repository_probe(repository), self.learned, inflight=self._inflight)
        if self.settings.prefetch:
            fired = probe.prefetch(self.learned.snapshot())
            logger.debug("Prefetching %d learned paths for %s", fired, repository)
        config = await self.inferrer.infer(InferenceContext(probe=probe))
        elapsed = time.monotonic() - started
        outcome = "inferred" if config.tasks else "empty"
        INFERENCE_DURATION.labels(outcome).observe(elapsed)
        logger.info(
            "Guessed configuration for %s in %.3fs (%s, %d paths probed)",
            repository,
            elapsed,
            outcome,
            len(probe.dispatched),
        )
        if not config.tasks:
            return None
        return config

    async def guess_configuration_text(self, repository: Any) -> Optional[str]:
        config = await self.guess_configuration(repository)
        if config is None:
            return None
        return dump_config(config)

    async def fetch_repository_configuration(self, repository: Any) -> Optional[str]:
        """Raw content of the repository's own configuration file, if any."""
        return await self._repository_probe(repository).read(self.settings.config_file)

    async def resolve_configuration(self, repository: Any) -> Optional[ConfigurationResult]:
        explicit = await self.fetch_repository_configuration(repository)
        if explicit:
            return ConfigurationResult(source="repository", text=explicit)
        config = await self.guess_configuration(repository)
        if config is None:
            return None
        return ConfigurationResult(source="inferred", text=dump_config(config), config=config)

    async def wait_for_prefetch(self) -> None:
        """Let this loop's outstanding prefetch reads finish; they are otherwise left to complete on their own."""
        await self._inflight.drain()

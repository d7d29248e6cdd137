from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from .metrics import RULE_FAILURES_TOTAL
from .model import WorkspaceConfig
from .probe import InferenceContext
from .rules import DEFAULT_RULES, Rule, RuleId

logger = logging.getLogger(__name__)


class ConfigInferrer:
    """Run detector rules one after another against a single context."""

    def __init__(self, rules: Optional[Sequence[Rule]] = None, *, disabled: Iterable[str] = ()):
        skip = {RuleId(name) for name in disabled}
        declared = DEFAULT_RULES if rules is None else rules
        self.rules: List[Rule] = [rule for rule in declared if rule.id not in skip]

    @property
    def rule_ids(self) -> List[str]:
        return [rule.id.value for rule in self.rules]

    async def infer(self, ctx: InferenceContext) -> WorkspaceConfig:
        for rule in self.rules:
            try:
                await rule.detect(ctx)
            except Exception as exc:
                RULE_FAILURES_TOTAL.labels(rule.id.value).inc()
                logger.warning("Rule '%s' failed, skipping: %s", rule.id.value, exc, exc_info=True)
        return ctx.config

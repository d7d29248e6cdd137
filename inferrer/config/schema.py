from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..rules import RuleId

DEFAULT_CONFIG_PATH = "configs/inferrer.yaml"
CONFIG_ENV_VAR = "INFERRER_CONFIG"

logger = logging.getLogger(__name__)


class InferrerBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class InferrerConfig(InferrerBaseModel):
    config_file: str = Field(default=".gitpod.yml")
    prefetch: bool = Field(default=True)
    probe_timeout_seconds: Optional[float] = Field(default=30.0, gt=0)
    probe_attempts: int = Field(default=1, ge=1, le=10)
    disabled_rules: List[str] = Field(default_factory=list)
    log_level: str = Field(default="WARNING")

    @field_validator("config_file")
    @classmethod
    def validate_config_file(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("config_file must be a non-empty path")
        return value.strip()

    @field_validator("disabled_rules", mode="before")
    @classmethod
    def validate_disabled_rules(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        known = {rule.value for rule in RuleId}
        names: List[str] = []
        for item in value:
            name = str(item).strip().lower()
            if name not in known:
                raise ValueError(f"unknown rule '{item}'; expected one of {', '.join(sorted(known))}")
            if name not in names:
                names.append(name)
        return names

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = str(value).upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"log_level '{value}' is not a logging level name")
        return level

    def dump(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


def load_config(path: Optional[str] = None) -> InferrerConfig:
    """Load settings from YAML; a missing file yields the defaults."""
    config_path = Path(path or os.getenv(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        logger.debug("Inferrer config %s not found; using defaults", config_path)
        return InferrerConfig()
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{config_path} must contain a mapping at the top level")
    section = raw.get("inferrer", raw)
    return InferrerConfig.model_validate(section or {})

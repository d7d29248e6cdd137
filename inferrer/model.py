"""Structured workspace configuration produced by the inferrer."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

PHASES = ("before", "init", "command")


class Task(BaseModel):
    """One shell command group; each phase holds a ``" && "`` joined chain."""

    before: Optional[str] = None
    init: Optional[str] = None
    command: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class VSCodeConfig(BaseModel):
    extensions: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class WorkspaceConfig(BaseModel):
    tasks: List[Task] = Field(default_factory=list)
    vscode: Optional[VSCodeConfig] = None

    model_config = ConfigDict(extra="forbid")

    @property
    def extensions(self) -> List[str]:
        return list(self.vscode.extensions) if self.vscode else []

    def is_empty(self) -> bool:
        return not self.tasks and not self.extensions

    def dump(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        tasks = [task.model_dump(exclude_none=True) for task in self.tasks]
        if tasks:
            data["tasks"] = tasks
        if self.extensions:
            data["vscode"] = {"extensions": self.extensions}
        return data

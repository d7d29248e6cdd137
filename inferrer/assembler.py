"""Merge primitives shared by every detector rule."""

from __future__ import annotations

from typing import Optional

from .model import PHASES, Task, VSCodeConfig, WorkspaceConfig

SEPARATOR = " && "


def add_command(
    config: WorkspaceConfig,
    command: str,
    phase: str,
    unless: Optional[str] = None,
) -> None:
    """Append ``command`` to ``phase`` of the first task.

    The task is created on first use. When ``unless`` is given and already
    occurs anywhere in the current phase value (substring match, not an
    exact segment match) the command is skipped.
    """
    if phase not in PHASES:
        raise ValueError(f"Unknown task phase '{phase}'; expected one of {', '.join(PHASES)}")
    if not config.tasks:
        config.tasks.append(Task())
    task = config.tasks[0]
    existing = getattr(task, phase)
    if unless and existing and unless in existing:
        return
    setattr(task, phase, f"{existing}{SEPARATOR}{command}" if existing else command)


def add_extension(config: WorkspaceConfig, extension: str) -> None:
    if config.vscode is None:
        config.vscode = VSCodeConfig()
    if extension not in config.vscode.extensions:
        config.vscode.extensions.append(extension)

import asyncio, json, logging
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError
from rich import print as rprint
from rich.markup import escape

from .config import InferrerConfig, load_config
from .model import Task, WorkspaceConfig
from .probe import LocalFileProvider
from .rules import DEFAULT_RULES
from .serializer import dump_config
from .service import ConfigurationGuesser, ConfigurationResult

app = typer.Typer(help="Workspace inferrer: guess how to build and run a repository")

TODO_INIT = 'echo "TODO: Replace with init/build command"'
TODO_COMMAND = 'echo "TODO: Replace with command to start project"'

CONFIG_HELP = "Settings file (defaults to $INFERRER_CONFIG or configs/inferrer.yaml)."


@app.callback()
def main(log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level, overrides settings.")):
    if log_level:
        _configure_logging(log_level)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _settings(config_path: Optional[str]) -> InferrerConfig:
    try:
        settings = load_config(config_path)
    except (ValidationError, ValueError, yaml.YAMLError) as exc:
        rprint(f"[red]Invalid settings:[/red] {escape(str(exc))}")
        raise typer.Exit(2)
    _configure_logging(settings.log_level)
    return settings


def _repository(path: str) -> Path:
    repo = Path(path).expanduser().resolve()
    if not repo.is_dir():
        rprint(f"[red]Not a directory:[/red] {escape(str(repo))}")
        raise typer.Exit(1)
    return repo


async def _resolve(guesser: ConfigurationGuesser, repo: Path, explicit: bool) -> Optional[ConfigurationResult]:
    try:
        if explicit:
            return await guesser.resolve_configuration(repo)
        config = await guesser.guess_configuration(repo)
        if config is None:
            return None
        return ConfigurationResult(source="inferred", text=dump_config(config), config=config)
    finally:
        await guesser.wait_for_prefetch()


async def _guess(guesser: ConfigurationGuesser, repo: Path) -> Optional[WorkspaceConfig]:
    try:
        return await guesser.guess_configuration(repo)
    finally:
        await guesser.wait_for_prefetch()


@app.command()
def guess(
    path: str = typer.Argument(".", help="Repository checkout to inspect."),
    as_json: bool = typer.Option(False, "--json", help="Print the inferred configuration as JSON."),
    explicit: bool = typer.Option(True, "--explicit/--no-explicit", help="Prefer the repository's own configuration file."),
    config_path: Optional[str] = typer.Option(None, "--config-path", help=CONFIG_HELP),
):
    """Print the repository's configuration, inferring one when it ships none."""
    settings = _settings(config_path)
    repo = _repository(path)
    guesser = ConfigurationGuesser(LocalFileProvider(), settings=settings)
    result = asyncio.run(_resolve(guesser, repo, explicit))
    if result is None:
        rprint(f"[yellow]No configuration could be inferred for[/yellow] {escape(str(repo))}")
        raise typer.Exit(1)
    if as_json and result.config is not None:
        print(json.dumps(result.config.dump(), indent=2))
    elif as_json:
        print(json.dumps({"source": result.source, "text": result.text}, indent=2))
    else:
        print(result.text, end="" if result.text.endswith("\n") else "\n")


@app.command()
def rules(config_path: Optional[str] = typer.Option(None, "--config-path", help=CONFIG_HELP)):
    """List detector rules in execution order."""
    settings = _settings(config_path)
    disabled = set(settings.disabled_rules)
    for position, rule in enumerate(DEFAULT_RULES, start=1):
        state = "[red]disabled[/red]" if rule.id.value in disabled else "[green]enabled[/green]"
        rprint(f"{position}. [bold]{rule.id.value}[/bold] {state} - {rule.description}")


@app.command()
def scaffold(
    path: str = typer.Argument(".", help="Repository checkout to inspect."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the configuration here instead of stdout."),
    force: bool = typer.Option(False, "--force", help="Overwrite --output if it exists."),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Use placeholders instead of prompting."),
    config_path: Optional[str] = typer.Option(None, "--config-path", help=CONFIG_HELP),
):
    """Draft a configuration file, asking for commands when none can be inferred."""
    settings = _settings(config_path)
    repo = _repository(path)
    out_path = Path(output).expanduser().resolve() if output else None
    if out_path is not None and out_path.exists() and not force:
        rprint(f"[red]{escape(str(out_path))} already exists;[/red] pass --force to overwrite.")
        raise typer.Exit(1)

    guesser = ConfigurationGuesser(LocalFileProvider(), settings=settings)
    config = asyncio.run(_guess(guesser, repo)) or WorkspaceConfig()
    if not config.tasks:
        init, command = "", ""
        if not non_interactive:
            init = typer.prompt("How to initialize project? (e.g. 'npm install', 'make')", default="", show_default=False)
            command = typer.prompt("How to start project? (e.g. 'npm start', 'yarn watch')", default="", show_default=False)
        config.tasks = [Task(init=init.strip() or TODO_INIT, command=command.strip() or TODO_COMMAND)]

    text = dump_config(config)
    if out_path is None:
        print(text, end="")
        return
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text, encoding="utf-8")
    rprint(f"[green]Wrote configuration to[/green] {escape(str(out_path))}")


if __name__ == "__main__":
    app()

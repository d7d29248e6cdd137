"""Detector rules and their execution order.

Each rule inspects the repository through the inference context and, when
it recognizes a project layout, appends commands and extensions to the
shared configuration. Rules are independent of each other apart from the
order in which they write to the same phase; the order is declared once in
:data:`DEFAULT_RULES`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Tuple

from .assembler import add_command, add_extension
from .probe import InferenceContext


class RuleId(str, Enum):
    NODE = "node"
    JAVA = "java"
    PYTHON = "python"
    GO = "go"
    RUST = "rust"
    MAKE = "make"
    NUGET = "nuget"
    RUBY = "ruby"


Detector = Callable[[InferenceContext], Awaitable[None]]


@dataclass(frozen=True)
class Rule:
    id: RuleId
    detect: Detector
    description: str = ""


async def check_node(ctx: InferenceContext) -> None:
    if not await ctx.exists("package.json"):
        return
    content = await ctx.read("package.json")
    if not content:
        return
    manifest = json.loads(content)
    if await ctx.exists("pnpm-lock.yaml"):
        pm = "pnpm"
    elif await ctx.exists("yarn.lock"):
        pm = "yarn"
    else:
        pm = "npm"
    add_command(ctx.config, f"{pm} install", "init")
    scripts = manifest.get("scripts") if isinstance(manifest, dict) else None
    if isinstance(scripts, dict):
        for script in ("build", "compile"):
            if scripts.get(script):
                add_command(ctx.config, f"{pm} run {script}", "init")
                break
        for script in ("start", "dev", "watch"):
            if scripts.get(script):
                add_command(ctx.config, f"{pm} run {script}", "command")
                break
    add_extension(ctx.config, "dbaeumer.vscode-eslint")


async def check_java(ctx: InferenceContext) -> None:
    for descriptor, extensions in (
        ("build.gradle", ("redhat.java", "vscjava.vscode-java-debug")),
        ("build.gradle.kts", ("fwcd.kotlin", "vscjava.vscode-java-debug")),
    ):
        if await ctx.exists(descriptor):
            tool = "./gradlew" if await ctx.exists("gradlew") else "gradle"
            add_command(ctx.config, f"{tool} build", "init")
            for extension in extensions:
                add_extension(ctx.config, extension)
            return
    if await ctx.exists("pom.xml"):
        tool = "./mvnw" if await ctx.exists("mvnw") else "mvn"
        add_command(ctx.config, f"{tool} install -DskipTests=false", "init")
        for extension in ("redhat.java", "vscjava.vscode-java-debug", "vscjava.vscode-maven"):
            add_extension(ctx.config, extension)


async def is_make_project(ctx: InferenceContext) -> bool:
    return await ctx.exists("Makefile") or await ctx.exists("makefile")


async def check_python(ctx: InferenceContext) -> None:
    # Make-based Python projects encode their own interpreter calls.
    if await is_make_project(ctx):
        return
    if await ctx.exists("requirements.txt"):
        add_command(ctx.config, "pip install -r requirements.txt", "init")
        add_extension(ctx.config, "ms-python.python")
    elif await ctx.exists("setup.py"):
        add_command(ctx.config, "pip install .", "init")
        add_extension(ctx.config, "ms-python.python")
    for entry_point in ("main.py", "app.py", "runserver.py"):
        if await ctx.exists(entry_point):
            add_command(ctx.config, f"python {entry_point}", "command")
            add_extension(ctx.config, "ms-python.python")
            break


async def check_go(ctx: InferenceContext) -> None:
    if not await ctx.exists("go.mod"):
        return
    for command in ("go get", "go build ./...", "go test ./..."):
        add_command(ctx.config, command, "init")
    add_command(ctx.config, "go run .", "command")
    add_extension(ctx.config, "golang.go")


async def check_rust(ctx: InferenceContext) -> None:
    if not await ctx.exists("Cargo.toml"):
        return
    add_command(ctx.config, "cargo build", "init")
    add_command(ctx.config, "cargo watch -x run", "command")
    add_extension(ctx.config, "matklad.rust-analyzer")


async def check_make(ctx: InferenceContext) -> None:
    if await ctx.exists("CMakeLists.txt"):
        add_command(ctx.config, "cmake .", "init")
    elif await is_make_project(ctx):
        add_command(ctx.config, "make", "init")


async def check_nuget(ctx: InferenceContext) -> None:
    if await ctx.exists("packages.config"):
        add_command(ctx.config, "nuget install", "init")


async def check_ruby(ctx: InferenceContext) -> None:
    if await ctx.exists("bin/setup"):
        add_command(ctx.config, "bin/setup", "init")
    elif await ctx.exists("Gemfile"):
        add_command(ctx.config, "bundle install", "init")
    if await ctx.exists("bin/startup"):
        add_command(ctx.config, "bin/startup", "command")
    elif await ctx.exists("bin/rails"):
        add_command(ctx.config, "bin/rails server", "command")


DEFAULT_RULES: Tuple[Rule, ...] = (
    Rule(RuleId.NODE, check_node, "package.json scripts with pnpm, yarn or npm"),
    Rule(RuleId.JAVA, check_java, "Gradle (Groovy or Kotlin DSL) or Maven, wrapper preferred"),
    Rule(RuleId.PYTHON, check_python, "requirements.txt or setup.py and an entry point, unless Make is used"),
    Rule(RuleId.GO, check_go, "go.mod module"),
    Rule(RuleId.RUST, check_rust, "Cargo.toml crate"),
    Rule(RuleId.MAKE, check_make, "CMakeLists.txt, else Makefile"),
    Rule(RuleId.NUGET, check_nuget, "packages.config"),
    Rule(RuleId.RUBY, check_ruby, "bin/setup or Gemfile, bin/startup or bin/rails"),
)


__all__ = ["DEFAULT_RULES", "Rule", "RuleId", "is_make_project"]

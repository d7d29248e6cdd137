from __future__ import annotations

import asyncio
import warnings
from pathlib import Path

from prometheus_client import REGISTRY

from inferrer import probe as probe_mod
from inferrer.config import InferrerConfig
from inferrer.engine import ConfigInferrer
from inferrer.probe import InferenceContext, LocalFileProvider, MappingProbe, RepositoryProbe
from inferrer.service import ConfigurationGuesser


def _probe_outcome(outcome: str) -> float:
    return REGISTRY.get_sample_value("inferrer_probe_requests_total", {"outcome": outcome}) or 0.0


def test_go_repository_scenario(stub_provider) -> None:
    guesser = ConfigurationGuesser(stub_provider({"go.mod": "module example.com/demo"}))
    config = asyncio.run(guesser.guess_configuration("repo"))
    assert config is not None
    assert config.dump() == {
        "tasks": [{"init": "go get && go build ./... && go test ./...", "command": "go run ."}],
        "vscode": {"extensions": ["golang.go"]},
    }


def test_unrecognized_repository_is_absent_not_empty(stub_provider) -> None:
    files = {"README.md": "# docs", "LICENSE": "MIT"}
    guesser = ConfigurationGuesser(stub_provider(files))
    assert asyncio.run(guesser.guess_configuration("repo")) is None
    assert asyncio.run(guesser.guess_configuration_text("repo")) is None

    raw = asyncio.run(ConfigInferrer().infer(InferenceContext(probe=MappingProbe(files))))
    assert raw.tasks == []


def test_guess_configuration_text(stub_provider) -> None:
    guesser = ConfigurationGuesser(stub_provider({"Cargo.toml": "[package]"}))
    text = asyncio.run(guesser.guess_configuration_text("repo"))
    assert text == (
        "tasks:\n"
        "  - init: cargo build\n"
        "    command: cargo watch -x run\n"
        "vscode:\n"
        "  extensions:\n"
        "    - matklad.rust-analyzer\n"
    )


def test_resolve_prefers_repository_file(stub_provider) -> None:
    explicit = "tasks:\n  - init: ./bootstrap.sh\n"
    provider = stub_provider({".gitpod.yml": explicit, "go.mod": "module demo"})
    result = asyncio.run(ConfigurationGuesser(provider).resolve_configuration("repo"))
    assert result is not None
    assert result.source == "repository"
    assert result.text == explicit
    assert result.config is None
    assert "go.mod" not in provider.calls


def test_resolve_honours_configured_file_name(stub_provider) -> None:
    provider = stub_provider({"devenv.yaml": "tasks: []\n", ".gitpod.yml": "ignored"})
    guesser = ConfigurationGuesser(provider, settings=InferrerConfig(config_file="devenv.yaml"))
    assert asyncio.run(guesser.fetch_repository_configuration("repo")) == "tasks: []\n"


def test_resolve_falls_back_to_inference_then_absent(stub_provider) -> None:
    inferred = asyncio.run(
        ConfigurationGuesser(stub_provider({"packages.config": "<packages/>"})).resolve_configuration("repo")
    )
    assert inferred is not None
    assert inferred.source == "inferred"
    assert inferred.text == "tasks:\n  - init: nuget install\n"
    assert inferred.config is not None and inferred.config.tasks[0].init == "nuget install"

    assert asyncio.run(ConfigurationGuesser(stub_provider({})).resolve_configuration("repo")) is None


def test_provider_errors_are_treated_as_absent(stub_provider) -> None:
    provider = stub_provider({"package.json": "{}", "go.mod": "module demo"}, failing=("package.json",))
    errors = _probe_outcome("error")
    config = asyncio.run(ConfigurationGuesser(provider).guess_configuration("repo"))
    assert config is not None
    assert config.tasks[0].init == "go get && go build ./... && go test ./..."
    assert "dbaeumer.vscode-eslint" not in config.extensions
    assert _probe_outcome("error") == errors + 1


def test_slow_provider_hits_timeout() -> None:
    class SlowProvider:
        async def get_file_content(self, repository, path):
            await asyncio.sleep(1)
            return "late"

    probe = RepositoryProbe(SlowProvider(), "repo", timeout_seconds=0.05)
    assert asyncio.run(probe.read("go.mod")) is None
    assert asyncio.run(probe.exists("go.mod")) is False


def test_transient_failures_are_retried(monkeypatch) -> None:
    monkeypatch.setattr(probe_mod, "RETRY_INITIAL_WAIT", 0.001)
    monkeypatch.setattr(probe_mod, "RETRY_JITTER", 0.001)

    class FlakyProvider:
        def __init__(self):
            self.calls = 0

        async def get_file_content(self, repository, path):
            self.calls += 1
            if self.calls < 3:
                raise ConnectionError("reset by peer")
            return "module demo"

    provider = FlakyProvider()
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        assert asyncio.run(RepositoryProbe(provider, "repo", attempts=3).read("go.mod")) == "module demo"
    assert provider.calls == 3

    exhausted = FlakyProvider()
    assert asyncio.run(RepositoryProbe(exhausted, "repo", attempts=2).read("go.mod")) is None
    assert exhausted.calls == 2


def test_empty_file_counts_as_missing_only_behind_a_provider(stub_provider) -> None:
    probe = RepositoryProbe(stub_provider({"yarn.lock": ""}), "repo")
    assert asyncio.run(probe.exists("yarn.lock")) is False
    assert asyncio.run(MappingProbe({"yarn.lock": ""}).exists("yarn.lock")) is True


def test_local_file_provider_reads_checkout(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    (repo / "bin").mkdir(parents=True)
    (repo / "bin" / "rails").write_text("#!/usr/bin/env ruby\n", encoding="utf-8")
    (repo / "Gemfile").write_text("source 'https://rubygems.org'\n", encoding="utf-8")
    (tmp_path / "outside.txt").write_text("secret", encoding="utf-8")
    provider = LocalFileProvider()

    async def scenario():
        return (
            await provider.get_file_content(repo, "Gemfile"),
            await provider.get_file_content(repo, "missing.txt"),
            await provider.get_file_content(repo, "bin"),
            await provider.get_file_content(repo, "../outside.txt"),
        )

    gemfile, missing, directory, outside = asyncio.run(scenario())
    assert gemfile.startswith("source")
    assert missing is None
    assert directory is None
    assert outside is None

    config = asyncio.run(ConfigurationGuesser(provider).guess_configuration(str(repo)))
    assert config is not None
    assert config.dump() == {"tasks": [{"init": "bundle install", "command": "bin/rails server"}]}

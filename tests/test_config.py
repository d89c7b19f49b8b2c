"""Tests for handlergen.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from handlergen.config import (
    DEFAULT_COMMAND_CONTRACTS,
    DEFAULT_OUTPUT_FILENAME,
    DEFAULT_QUERY_CONTRACTS,
    ConfigError,
    HandlerGenConfig,
    load_config,
)


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, HandlerGenConfig)
    assert config.root == tmp_path.resolve()
    assert config.output.file_name == DEFAULT_OUTPUT_FILENAME
    assert config.output.templates_dir is None
    assert config.sources.extensions == [".cs"]
    assert config.contracts.query == list(DEFAULT_QUERY_CONTRACTS)
    assert config.contracts.command == list(DEFAULT_COMMAND_CONTRACTS)
    assert config.exclude_paths == []


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".handlergen.yml"
    config_file.write_text(
        """
output:
  file_name: "Registrations.g.cs"
  templates_dir: "build/templates"
sources:
  extensions: [cs, ".CSX"]
contracts:
  query:
    - "App.Contracts.IRequestHandler"
  command: "App.Contracts.INotificationHandler"
exclude_paths:
  - "Plugins/"
  - "*.g.cs"
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.output.file_name == "Registrations.g.cs"
    assert config.output.templates_dir == tmp_path.resolve() / "build" / "templates"
    assert config.sources.extensions == [".cs", ".csx"]
    assert config.contracts.query == ["App.Contracts.IRequestHandler"]
    assert config.contracts.command == ["App.Contracts.INotificationHandler"]
    assert config.exclude_paths == ["Plugins/", "*.g.cs"]


def test_load_config_keeps_defaults_for_omitted_sections(tmp_path: Path) -> None:
    (tmp_path / ".handlergen.yml").write_text("exclude_paths: [Legacy/]\n", encoding="utf-8")

    config = load_config(tmp_path)

    assert config.exclude_paths == ["Legacy/"]
    assert config.contracts.query == list(DEFAULT_QUERY_CONTRACTS)
    assert config.output.file_name == DEFAULT_OUTPUT_FILENAME


def test_load_config_treats_empty_file_as_defaults(tmp_path: Path) -> None:
    (tmp_path / ".handlergen.yml").write_text("\n", encoding="utf-8")

    config = load_config(tmp_path)

    assert config.sources.extensions == [".cs"]


def test_load_config_rejects_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / ".handlergen.yml").write_text("output: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_rejects_non_mapping_root(tmp_path: Path) -> None:
    (tmp_path / ".handlergen.yml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_load_config_rejects_output_paths(tmp_path: Path) -> None:
    (tmp_path / ".handlergen.yml").write_text(
        "output:\n  file_name: ../escape.cs\n",
        encoding="utf-8",
    )

    with pytest.raises(ConfigError):
        load_config(tmp_path)

"""Configuration loading for handlergen (.handlergen.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".handlergen.yml"
DEFAULT_OUTPUT_FILENAME = "GeneratedMediatorRegistrations.cs"

DEFAULT_QUERY_CONTRACTS = (
    "Mediator.Interfaces.IQueryHandler",
    "Mediator.Interfaces.QueryHandler",
)
DEFAULT_COMMAND_CONTRACTS = (
    "Mediator.Interfaces.ICommandHandler",
    "Mediator.Interfaces.CommandHandler",
)


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class OutputConfig:
    """Where the generated module is written."""

    file_name: str = DEFAULT_OUTPUT_FILENAME
    templates_dir: Optional[Path] = None


@dataclass
class SourceConfig:
    """Which files are ingested from the input folder."""

    extensions: List[str] = field(default_factory=lambda: [".cs"])


@dataclass
class ContractConfig:
    """Fully-qualified generic definitions recognised as handler contracts."""

    query: List[str] = field(default_factory=lambda: list(DEFAULT_QUERY_CONTRACTS))
    command: List[str] = field(default_factory=lambda: list(DEFAULT_COMMAND_CONTRACTS))


@dataclass
class HandlerGenConfig:
    """Represents the settings defined in .handlergen.yml."""

    root: Path
    output: OutputConfig = field(default_factory=OutputConfig)
    sources: SourceConfig = field(default_factory=SourceConfig)
    contracts: ContractConfig = field(default_factory=ContractConfig)
    exclude_paths: List[str] = field(default_factory=list)


def load_config(config_path: Path) -> HandlerGenConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return HandlerGenConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    output = OutputConfig()
    output_data = _as_dict(data.get("output"))
    file_name = _as_str(output_data.get("file_name"))
    if file_name:
        if Path(file_name).name != file_name:
            raise ConfigError("output.file_name must be a bare file name")
        output.file_name = file_name
    templates_dir = _as_str(output_data.get("templates_dir"))
    if templates_dir:
        output.templates_dir = root / templates_dir

    sources = SourceConfig()
    sources_data = _as_dict(data.get("sources"))
    extensions = _as_str_list(sources_data.get("extensions"))
    if extensions:
        sources.extensions = [_normalise_extension(ext) for ext in extensions]

    contracts = ContractConfig()
    contracts_data = _as_dict(data.get("contracts"))
    if "query" in contracts_data:
        contracts.query = _as_str_list(contracts_data.get("query"))
    if "command" in contracts_data:
        contracts.command = _as_str_list(contracts_data.get("command"))

    return HandlerGenConfig(
        root=root,
        output=output,
        sources=sources,
        contracts=contracts,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _normalise_extension(value: str) -> str:
    value = value.strip().lower()
    return value if value.startswith(".") else f".{value}"


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []

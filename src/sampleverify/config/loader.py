"""
Configuration loader for sampleverify.

Handles loading configuration from YAML files and command-line arguments.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import (
    CompilerConfig,
    CompilerKind,
    DocumentConfig,
    ReportConfig,
    VerifyConfig,
)


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""

    pass


def validate_compiler(compiler: CompilerConfig) -> CompilerConfig:
    """Check that the compiler adapter has what it needs to run."""
    if compiler.kind == CompilerKind.COMMAND and not compiler.command:
        raise ConfigurationError(
            "The 'command' compiler requires 'command' to be specified"
        )
    return compiler


def parse_compiler_kind(name: str) -> CompilerKind:
    """Map a compiler name from the command line to a CompilerKind."""
    try:
        return CompilerKind(name.lower())
    except ValueError:
        valid = [k.value for k in CompilerKind]
        raise ConfigurationError(f"Invalid compiler '{name}'. Valid compilers: {valid}")


def load_config_from_yaml(config_path: Path) -> VerifyConfig:
    """Load configuration from a YAML file."""
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

    if raw_config is None:
        raise ConfigurationError("Configuration file is empty")

    try:
        config = VerifyConfig(**raw_config)
    except (TypeError, ValidationError) as e:
        raise ConfigurationError(f"Configuration validation failed:\n{e}")

    # Relative roots are taken relative to the config file
    if not config.documents.root.is_absolute():
        config.documents.root = (config_path.parent / config.documents.root).resolve()

    validate_compiler(config.compiler)
    return config


def create_config_from_args(
    root: Path,
    compiler: str = "python",
    command: list[str] | None = None,
    timeout: int = 60,
    json_report: Path | None = None,
    color: bool = True,
    parallel: bool = False,
    **kwargs: Any,
) -> VerifyConfig:
    """Create configuration from CLI arguments."""
    compiler_kind = parse_compiler_kind(compiler)

    try:
        compiler_config = CompilerConfig(
            kind=compiler_kind,
            command=command or [],
            timeout=timeout,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed:\n{e}")

    validate_compiler(compiler_config)

    document_config = DocumentConfig(root=root)
    if "patterns" in kwargs:
        document_config.patterns = kwargs["patterns"]
    if "exclude_patterns" in kwargs:
        document_config.exclude_patterns = kwargs["exclude_patterns"]

    config_dict: dict[str, Any] = {
        "documents": document_config,
        "compiler": compiler_config,
        "report": ReportConfig(json_path=json_report, color=color),
        "parallel": parallel,
    }
    if "max_concurrency" in kwargs:
        config_dict["max_concurrency"] = kwargs["max_concurrency"]

    return VerifyConfig(**config_dict)


def apply_overrides(
    config: VerifyConfig,
    root: Path | None = None,
    json_report: Path | None = None,
    color: bool | None = None,
    parallel: bool | None = None,
    compiler: str | None = None,
    command: list[str] | None = None,
    timeout: int | None = None,
) -> VerifyConfig:
    """Apply command-line overrides on top of a loaded configuration."""
    if compiler is not None or command is not None or timeout is not None:
        current = config.compiler
        try:
            config.compiler = CompilerConfig(
                kind=parse_compiler_kind(compiler) if compiler is not None else current.kind,
                command=command if command is not None else current.command,
                timeout=timeout if timeout is not None else current.timeout,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}")
        validate_compiler(config.compiler)

    if root is not None:
        config.documents.root = root
    if json_report is not None:
        config.report.json_path = json_report
    if color is not None:
        config.report.color = color
    if parallel is not None:
        config.parallel = parallel
    return config


def generate_default_config(output_path: Path) -> None:
    """Generate a default configuration file."""
    default_config = {
        "documents": {
            "root": ".",
            "patterns": ["*.md"],
            "exclude_patterns": [".git", "node_modules", "venv", ".venv", "__pycache__"],
            "include_file_suffix": ".py",
        },
        "compiler": {
            "kind": "python",
            "command": [],
            "timeout": 60,
        },
        "report": {
            "json_path": None,
            "color": True,
        },
        "parallel": False,
        "max_concurrency": 4,
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)

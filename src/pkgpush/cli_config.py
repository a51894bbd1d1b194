"""
Configuration management for pkgpush.

Settings come from dataclass defaults, an optional JSON or YAML config file
and ``PKGPUSH_*`` environment variables, in increasing order of precedence.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

from .dependency import DependencyCategory
from .error_handling import ErrorCategory, get_error_handler

console = Console(stderr=True)


@dataclass
class DiscoveryConfig:
    """Manifest discovery and dependency extraction settings."""

    manifest_name: str = "package.json"
    dependency_dir: str = "node_modules"
    categories: List[str] = field(
        default_factory=lambda: [
            "dependencies",
            "devDependencies",
            "peerDependencies",
        ]
    )
    local_path_prefixes: List[str] = field(
        default_factory=lambda: [".", "/", "file:", "link:"]
    )


@dataclass
class ReleaseConfig:
    """External tool and upload settings."""

    npm_command: str = "npm"
    aws_command: str = "aws"
    ignore_scripts: bool = True
    tool_timeout_seconds: Optional[float] = None
    owner_env_vars: List[str] = field(default_factory=lambda: ["USERNAME", "USER"])
    anonymous_owner: str = "anon"


@dataclass
class LoggingConfig:
    """Logging and error handling configuration."""

    log_level: str = "WARNING"
    enable_json: bool = True
    log_file_path: Optional[str] = None


@dataclass
class PkgPushConfig:
    """Main configuration containing all subsections."""

    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_global_config: Optional[PkgPushConfig] = None

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_text_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def validate_config_values(config: PkgPushConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Values read from a config file are not coerced, so every check verifies
    the type before looking at the value.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []
    discovery = config.discovery
    release = config.release

    for name in ("manifest_name", "dependency_dir"):
        if not _is_text(getattr(discovery, name)):
            errors.append(f"discovery.{name} must be a non-empty string")

    if not _is_text_list(discovery.categories):
        errors.append("discovery.categories must be a list of strings")
    elif not discovery.categories:
        errors.append("discovery.categories must list at least one category")
    else:
        known_categories = {category.value for category in DependencyCategory}
        for category in discovery.categories:
            if category not in known_categories:
                errors.append(
                    f"discovery.categories contains unknown category: {category}"
                )

    if not _is_text_list(discovery.local_path_prefixes):
        errors.append("discovery.local_path_prefixes must be a list of strings")
    elif any(not prefix for prefix in discovery.local_path_prefixes):
        errors.append("discovery.local_path_prefixes must not contain empty values")

    for name in ("npm_command", "aws_command", "anonymous_owner"):
        if not _is_text(getattr(release, name)):
            errors.append(f"release.{name} must be a non-empty string")
    if not isinstance(release.ignore_scripts, bool):
        errors.append("release.ignore_scripts must be true or false")
    if not _is_text_list(release.owner_env_vars):
        errors.append("release.owner_env_vars must be a list of strings")

    timeout = release.tool_timeout_seconds
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            errors.append("release.tool_timeout_seconds must be a number")
        elif timeout <= 0:
            errors.append("release.tool_timeout_seconds must be positive")

    log_level = config.logging.log_level
    if not isinstance(log_level, str) or log_level.upper() not in _LOG_LEVELS:
        errors.append(f"logging.log_level must be one of {sorted(_LOG_LEVELS)}")
    if not isinstance(config.logging.enable_json, bool):
        errors.append("logging.enable_json must be true or false")
    if config.logging.log_file_path is not None and not isinstance(
        config.logging.log_file_path, str
    ):
        errors.append("logging.log_file_path must be a string")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from a JSON or YAML file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )
        return None

    if not isinstance(data, dict):
        console.print(
            f"⚠️  Config file {config_path} must contain a mapping", style="yellow"
        )
        return None
    return data


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".pkgpush.json",
        Path.cwd() / ".pkgpush.yaml",
        Path.cwd() / ".pkgpush.yml",
        Path.home() / ".config" / "pkgpush" / "config.json",
        Path.home() / ".config" / "pkgpush" / "config.yaml",
        Path.home() / ".pkgpush.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: PkgPushConfig) -> None:
    """Apply PKGPUSH_* environment variable overrides."""

    def get_env_float(key: str) -> Optional[float]:
        try:
            return float(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(
                f"⚠️  Invalid number for {key}, using default", style="yellow"
            )
            return None

    if npm_command := os.environ.get("PKGPUSH_NPM"):
        config.release.npm_command = npm_command
    if aws_command := os.environ.get("PKGPUSH_AWS"):
        config.release.aws_command = aws_command
    if timeout := get_env_float("PKGPUSH_TOOL_TIMEOUT"):
        config.release.tool_timeout_seconds = timeout
    if anonymous := os.environ.get("PKGPUSH_ANONYMOUS_OWNER"):
        config.release.anonymous_owner = anonymous

    if log_level := os.environ.get("PKGPUSH_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()
    if log_file := os.environ.get("PKGPUSH_LOG_FILE"):
        config.logging.log_file_path = log_file


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def build_config(file_config: Optional[Dict[str, Any]] = None) -> PkgPushConfig:
    """Build a configuration from file data plus environment overrides."""
    config = PkgPushConfig()

    if file_config:
        for section_name in ("discovery", "release", "logging"):
            section_data = file_config.get(section_name)
            if isinstance(section_data, dict):
                apply_config_section(
                    getattr(config, section_name), section_data, section_name
                )

    load_environment_overrides(config)
    return config


def load_config() -> PkgPushConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    file_config = None
    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)

    config = build_config(file_config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Ignoring the config file and environment; using default settings.", style="yellow")
        get_error_handler().warning(
            ErrorCategory.CONFIGURATION,
            "Invalid configuration, using defaults",
            "cli_config",
            "load_config",
            details={"errors": validation_errors},
        )
        config = PkgPushConfig()

    _global_config = config
    return config


def get_config() -> PkgPushConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate a sample configuration file body."""
    return json.dumps(PkgPushConfig().to_dict(), indent=2)

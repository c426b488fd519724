"""foliotrack configuration management.

Loads configuration from .foliotrack/config.yaml with sensible defaults.
All settings can be overridden via environment variables (FOLIOTRACK_*).

Config locations (in priority order):
1. Explicit path passed to load_config()
2. .foliotrack/config.yaml (project-local)
3. ~/.foliotrack/config.yaml (user-global)
4. Built-in defaults

Thread Safety:
    Uses threading.Lock for thread-safe lazy initialization.
"""

import os
import threading
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from foliotrack.foundation.errors import config_error


@dataclass(frozen=True, slots=True)
class ScanConfig:
    """Discovery and traversal settings."""

    buckets: tuple[str, ...] = ()
    """Top-level bucket directory names. Empty means every non-hidden top-level directory."""

    max_workers: int = 4
    """Upper bound on parallel project analysis."""

    project_markers: tuple[str, ...] = (
        "package.json",
        "README.md",
        "CLAUDE.md",
        ".git",
        "requirements.txt",
        "pyproject.toml",
        "Dockerfile",
        "docker-compose.yml",
    )
    """Files or directories whose presence marks a candidate project."""

    excluded_dirs: tuple[str, ...] = (
        "node_modules",
        "bower_components",
        "__pycache__",
        "venv",
    )
    """Dependency-cache directories skipped when counting files (hidden dirs are always skipped)."""


@dataclass(frozen=True, slots=True)
class ClassifierConfig:
    """Keyword tables used by the classifier."""

    production_keywords: tuple[str, ...] = ("prod",)
    """Path-segment substrings that mark a production project."""

    obsolete_keywords: tuple[str, ...] = ("obsolete", "deprecated")
    """Path-segment substrings that mark an obsolete project."""

    ai_name_keywords: tuple[str, ...] = (
        "ai", "ml", "agent", "análise", "analysis", "leadgen", "seo",
    )
    """Project-name substrings that suggest an AI/ML project."""

    data_name_keywords: tuple[str, ...] = ("dataset", "data")
    """Project-name substrings that suggest a data-analysis project."""


@dataclass(frozen=True, slots=True)
class RepositoryConfig:
    """Version-control metadata settings."""

    default_branch: str = "main"
    """Branch reported when HEAD cannot be resolved to a branch."""


@dataclass(frozen=True, slots=True)
class StoreConfig:
    """Project store location."""

    path: str = ".foliotrack/projects.db"
    """SQLite database file."""

    backup_dir: str = ".foliotrack/backups"
    """Directory receiving timestamped backups."""


@dataclass(frozen=True, slots=True)
class FolioConfig:
    """Root configuration for foliotrack."""

    scan: ScanConfig = field(default_factory=ScanConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    store: StoreConfig = field(default_factory=StoreConfig)

    verbose: bool = False
    """Log per-project scan progress."""

    debug: bool = False
    """Enable DEBUG logging by default."""


_SECTIONS: dict[str, type] = {
    "scan": ScanConfig,
    "classifier": ClassifierConfig,
    "repository": RepositoryConfig,
    "store": StoreConfig,
}

# Global config instance (lazy-loaded, thread-safe)
_config: FolioConfig | None = None
_config_lock = threading.Lock()


def _get_dataclass_defaults() -> dict[str, Any]:
    """Get defaults from dataclass definitions (single source of truth)."""
    return asdict(FolioConfig())


def _deep_update(base: dict, updates: dict) -> dict:
    """Recursively update a dict with another dict."""
    for key, value in updates.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


def _coerce(raw: str, default: Any) -> Any:
    """Coerce an environment string to the type of the default value."""
    if isinstance(default, bool):
        return raw.lower() in ("true", "1", "yes")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    if isinstance(default, (list, tuple)):
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def _apply_env_overrides(config_dict: dict, environ: dict[str, str] | None = None) -> dict:
    """Apply environment variable overrides.

    Environment variables follow pattern: FOLIOTRACK_SECTION_KEY, where KEY
    may itself contain underscores. Top-level booleans use FOLIOTRACK_KEY.

    Examples:
        FOLIOTRACK_STORE_PATH=/data/projects.db
        FOLIOTRACK_SCAN_MAX_WORKERS=8
        FOLIOTRACK_CLASSIFIER_PRODUCTION_KEYWORDS=prod,live
    """
    prefix = "FOLIOTRACK_"
    environ = os.environ if environ is None else environ

    for key, value in environ.items():
        if not key.startswith(prefix):
            continue
        path_str = key[len(prefix):].lower()

        if path_str in ("verbose", "debug"):
            config_dict[path_str] = _coerce(value, False)
            continue

        for section in _SECTIONS:
            if not path_str.startswith(section + "_"):
                continue
            name = path_str[len(section) + 1:]
            section_dict = config_dict.get(section)
            if not isinstance(section_dict, dict) or name not in section_dict:
                break
            try:
                section_dict[name] = _coerce(value, section_dict[name])
            except ValueError as e:
                raise config_error(f"{section}.{name}", f"cannot parse {key}={value!r}", e) from e
            break

    return config_dict


def _build_section(section_cls: type, data: Any, section: str) -> Any:
    """Build one frozen section dataclass, rejecting unknown keys."""
    if data is None:
        return section_cls()
    if not isinstance(data, dict):
        raise config_error(section, "expected a mapping")

    known = {f.name: f for f in fields(section_cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise config_error(section, f"unknown keys: {', '.join(sorted(unknown))}")

    values: dict[str, Any] = {}
    for name, value in data.items():
        default = getattr(section_cls(), name)
        if isinstance(default, tuple):
            if isinstance(value, str):
                value = [value]
            if not isinstance(value, (list, tuple)):
                raise config_error(f"{section}.{name}", "expected a list")
            value = tuple(str(v) for v in value)
        elif isinstance(default, int) and not isinstance(value, int):
            raise config_error(f"{section}.{name}", "expected an integer")
        values[name] = value
    return section_cls(**values)


def _dict_to_config(data: dict) -> FolioConfig:
    """Convert a dict to FolioConfig."""
    config = FolioConfig(
        scan=_build_section(ScanConfig, data.get("scan"), "scan"),
        classifier=_build_section(ClassifierConfig, data.get("classifier"), "classifier"),
        repository=_build_section(RepositoryConfig, data.get("repository"), "repository"),
        store=_build_section(StoreConfig, data.get("store"), "store"),
        verbose=bool(data.get("verbose", False)),
        debug=bool(data.get("debug", False)),
    )
    if config.scan.max_workers < 1:
        raise config_error("scan.max_workers", "must be at least 1")
    return config


def load_config(path: str | Path | None = None) -> FolioConfig:
    """Load configuration from file with defaults and env overrides.

    Priority (highest to lowest):
    1. Environment variables (FOLIOTRACK_*)
    2. Explicit path if provided
    3. .foliotrack/config.yaml (project-local)
    4. ~/.foliotrack/config.yaml (user-global)
    5. Built-in defaults

    Args:
        path: Optional explicit config file path.

    Returns:
        Merged FolioConfig instance.

    Raises:
        FolioError: If a config file is malformed or holds invalid values.
    """
    global _config

    config_dict = _get_dataclass_defaults()

    config_paths = []
    if path:
        config_paths.append(Path(path))
    config_paths.extend([
        Path(".foliotrack/config.yaml"),
        Path.home() / ".foliotrack" / "config.yaml",
    ])

    for config_path in config_paths:
        if config_path.exists():
            try:
                with open(config_path, encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise config_error(str(config_path), str(e), e) from e
            if not isinstance(file_config, dict):
                raise config_error(str(config_path), "top level must be a mapping")
            _deep_update(config_dict, file_config)
            break  # Use first found config

    config_dict = _apply_env_overrides(config_dict)

    _config = _dict_to_config(config_dict)
    return _config


def get_config() -> FolioConfig:
    """Get the current configuration, loading if needed.

    Thread-safe with double-check locking.
    """
    global _config

    if _config is not None:
        return _config

    with _config_lock:
        if _config is None:
            _config = load_config()
        return _config


def reset_config() -> None:
    """Reset the global config (useful for testing)."""
    global _config
    with _config_lock:
        _config = None

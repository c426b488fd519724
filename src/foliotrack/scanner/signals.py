"""Project signal gathering.

Collect the marker files and manifest contents that the classifier works
from. Everything here goes through the prober, so missing or unreadable
files show up as absent signals rather than exceptions.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from foliotrack.catalog.models import Dependency
from foliotrack.scanner.probe import FilesystemProber, ProbeOutcome

logger = logging.getLogger(__name__)

# Python dependency manifests, in lookup order
PYTHON_MANIFESTS: tuple[str, ...] = (
    "requirements.txt",
    "pyproject.toml",
    "scripts/requirements.txt",
    "Pipfile",
)

# Root-level files that make a directory a Python project
PYTHON_PROJECT_FILES: tuple[str, ...] = ("requirements.txt", "pyproject.toml", "Pipfile")

_REQUIREMENT_RE = re.compile(r"^([A-Za-z0-9][A-Za-z0-9._-]*)\s*(?:\[[^\]]*\])?\s*(.*)$")


@dataclass(frozen=True, slots=True)
class MarkerSet:
    """Top-level entries of a project directory."""

    name: str
    """Directory name (the project's display name)."""

    files: frozenset[str] = frozenset()
    dirs: frozenset[str] = frozenset()

    listing: ProbeOutcome = ProbeOutcome.FOUND
    """Outcome of listing the directory itself."""

    def has(self, name: str) -> bool:
        return name in self.files or name in self.dirs

    def has_file(self, name: str) -> bool:
        return name in self.files

    def has_dir(self, name: str) -> bool:
        return name in self.dirs

    def files_with_suffix(self, *suffixes: str) -> list[str]:
        lowered = tuple(s.lower() for s in suffixes)
        return sorted(f for f in self.files if f.lower().endswith(lowered))

    @property
    def has_python_manifest(self) -> bool:
        return any(self.has_file(name) for name in PYTHON_PROJECT_FILES)


@dataclass(frozen=True, slots=True)
class Manifests:
    """Parsed dependency manifests of a project.

    A manifest that is missing or malformed contributes nothing; its probe
    outcome is kept in `outcomes` for diagnostics.
    """

    package_json: dict[str, Any] | None = None
    npm_dependencies: dict[str, str] = field(default_factory=dict)
    npm_dev_dependencies: dict[str, str] = field(default_factory=dict)

    pyproject: dict[str, Any] | None = None
    python_dependencies: dict[str, str] = field(default_factory=dict)
    """Normalized package name -> version specifier ("" when unpinned)."""

    python_dev_dependencies: frozenset[str] = frozenset()

    root_python_dependencies: frozenset[str] = frozenset()
    """Names declared by the root-level Python manifests only."""

    outcomes: dict[str, ProbeOutcome] = field(default_factory=dict)

    @property
    def npm_all(self) -> dict[str, str]:
        """Runtime and development dependencies merged."""
        return {**self.npm_dependencies, **self.npm_dev_dependencies}

    def has_npm(self, *names: str) -> bool:
        merged = self.npm_all
        return any(name in merged for name in names)

    def has_python(self, *names: str) -> bool:
        return any(normalize_name(name) in self.python_dependencies for name in names)

    def has_root_python(self, *names: str) -> bool:
        return any(normalize_name(name) in self.root_python_dependencies for name in names)

    @property
    def description(self) -> str | None:
        """First description found in package.json or pyproject.toml."""
        if self.package_json:
            desc = self.package_json.get("description")
            if isinstance(desc, str) and desc.strip():
                return desc.strip()
        if self.pyproject:
            tool = self.pyproject.get("tool")
            for table in (
                self.pyproject.get("project"),
                tool.get("poetry") if isinstance(tool, dict) else None,
            ):
                if isinstance(table, dict):
                    desc = table.get("description")
                    if isinstance(desc, str) and desc.strip():
                        return desc.strip()
        return None

    def dependencies(self) -> tuple[Dependency, ...]:
        """Declared npm and pip dependencies as catalog records."""
        deps = [
            Dependency(name=name, version=version, type="npm")
            for name, version in self.npm_dependencies.items()
        ]
        deps.extend(
            Dependency(name=name, version=version, type="npm", is_dev=True)
            for name, version in self.npm_dev_dependencies.items()
            if name not in self.npm_dependencies
        )
        deps.extend(
            Dependency(
                name=name,
                version=version,
                type="pip",
                is_dev=name in self.python_dev_dependencies,
            )
            for name, version in self.python_dependencies.items()
        )
        return tuple(deps)


def normalize_name(name: str) -> str:
    """Normalize a Python distribution name (PEP 503)."""
    return re.sub(r"[-_.]+", "-", name).lower()


def gather_markers(path: Path, prober: FilesystemProber) -> MarkerSet:
    """List the top-level files and directories of a project."""
    listing = prober.list_children(path)
    if not listing.found:
        logger.debug("No listing for %s (%s)", path, listing.outcome.value)
        return MarkerSet(name=path.name, listing=listing.outcome)

    children = listing.value or ()
    return MarkerSet(
        name=path.name,
        files=frozenset(c.name for c in children if c.is_file),
        dirs=frozenset(c.name for c in children if c.is_dir),
    )


def read_manifests(path: Path, prober: FilesystemProber) -> Manifests:
    """Read and parse package.json and the Python dependency manifests."""
    outcomes: dict[str, ProbeOutcome] = {}

    package_json: dict[str, Any] | None = None
    npm_deps: dict[str, str] = {}
    npm_dev: dict[str, str] = {}
    result = prober.read_json(path / "package.json")
    outcomes["package.json"] = result.outcome
    if result.found:
        package_json = result.value
        npm_deps = _string_map(package_json.get("dependencies"))
        npm_dev = _string_map(package_json.get("devDependencies"))

    pyproject: dict[str, Any] | None = None
    python_deps: dict[str, str] = {}
    python_dev: set[str] = set()
    root_python: set[str] = set()

    for name in PYTHON_MANIFESTS:
        manifest = path / name
        if name.endswith("requirements.txt"):
            text = prober.read_text(manifest)
            outcomes[name] = text.outcome
            if text.found:
                requirements = parse_requirements(text.value or "")
                _merge(python_deps, requirements)
                if name in PYTHON_PROJECT_FILES:
                    root_python.update(requirements)
            continue

        doc = prober.read_toml(manifest)
        outcomes[name] = doc.outcome
        if not doc.found:
            continue
        data = doc.value or {}
        if name == "pyproject.toml":
            pyproject = data
            runtime, dev = parse_pyproject(data)
        else:
            runtime, dev = parse_pipfile(data)
        _merge(python_deps, runtime)
        _merge(python_deps, dev)
        python_dev.update(n for n in dev if n not in runtime)
        root_python.update(runtime)
        root_python.update(dev)

    for name, outcome in outcomes.items():
        if outcome is ProbeOutcome.UNREADABLE:
            logger.debug("Ignoring unreadable manifest %s in %s", name, path)

    return Manifests(
        package_json=package_json,
        npm_dependencies=npm_deps,
        npm_dev_dependencies=npm_dev,
        pyproject=pyproject,
        python_dependencies=python_deps,
        python_dev_dependencies=frozenset(python_dev),
        root_python_dependencies=frozenset(root_python),
        outcomes=outcomes,
    )


def parse_requirement(line: str) -> tuple[str, str] | None:
    """Parse one requirement specifier into (normalized name, version spec)."""
    line = line.split("#", 1)[0].split(";", 1)[0].strip()
    if not line or line.startswith("-"):
        return None
    match = _REQUIREMENT_RE.match(line)
    if not match:
        return None
    return normalize_name(match.group(1)), match.group(2).strip()


def parse_requirements(text: str) -> dict[str, str]:
    """Parse requirements.txt content. Options and comments are skipped."""
    deps: dict[str, str] = {}
    for line in text.splitlines():
        parsed = parse_requirement(line)
        if parsed and parsed[0] not in deps:
            deps[parsed[0]] = parsed[1]
    return deps


def parse_pyproject(data: dict[str, Any]) -> tuple[dict[str, str], dict[str, str]]:
    """Runtime and optional/dev dependencies from a pyproject.toml document."""
    runtime: dict[str, str] = {}
    dev: dict[str, str] = {}

    project = data.get("project")
    if isinstance(project, dict):
        _merge(runtime, _parse_specifiers(project.get("dependencies")))
        optional = project.get("optional-dependencies")
        if isinstance(optional, dict):
            for group in optional.values():
                _merge(dev, _parse_specifiers(group))

    tool = data.get("tool")
    poetry = tool.get("poetry") if isinstance(tool, dict) else None
    if isinstance(poetry, dict):
        _merge(runtime, _parse_table(poetry.get("dependencies")))
        _merge(dev, _parse_table(poetry.get("dev-dependencies")))
        groups = poetry.get("group")
        if isinstance(groups, dict):
            for group in groups.values():
                if isinstance(group, dict):
                    _merge(dev, _parse_table(group.get("dependencies")))

    return runtime, dev


def parse_pipfile(data: dict[str, Any]) -> tuple[dict[str, str], dict[str, str]]:
    """Runtime and dev dependencies from a Pipfile document."""
    return _parse_table(data.get("packages")), _parse_table(data.get("dev-packages"))


def _parse_specifiers(values: Any) -> dict[str, str]:
    if not isinstance(values, list):
        return {}
    deps: dict[str, str] = {}
    for value in values:
        if isinstance(value, str):
            parsed = parse_requirement(value)
            if parsed:
                deps.setdefault(*parsed)
    return deps


def _parse_table(table: Any) -> dict[str, str]:
    """Parse a {name: version-or-table} mapping (Poetry, Pipfile)."""
    if not isinstance(table, dict):
        return {}
    deps: dict[str, str] = {}
    for name, spec in table.items():
        if name.lower() == "python":
            continue
        if isinstance(spec, dict):
            spec = spec.get("version", "")
        deps[normalize_name(name)] = "" if spec in ("*", None) else str(spec)
    return deps


def _string_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items()}


def _merge(target: dict[str, str], source: dict[str, str]) -> None:
    for name, spec in source.items():
        target.setdefault(name, spec)


def iter_json_names(markers: MarkerSet, *needles: str) -> Iterable[str]:
    """Top-level .json files whose name contains any of the needles."""
    for name in markers.files_with_suffix(".json"):
        lowered = name.lower()
        if any(n in lowered for n in needles):
            yield name

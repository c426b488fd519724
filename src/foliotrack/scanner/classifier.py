"""Project classification.

Status comes from path segments, type from an ordered rule table (first match
wins), and technologies from a non-exclusive pass over dependency tables and
directory conventions. All rules are plain data so they can be tested and
extended one at a time.

Example:
    >>> classifier = Classifier()
    >>> result = classifier.classify(markers, manifests, ("1 - DEV", "myapp"))
    >>> result.type
    <ProjectType.WEB_APP: 'web-app'>
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from foliotrack.catalog.models import (
    DeploymentInfo,
    ProjectStatus,
    ProjectType,
    TechCategory,
    Technology,
)
from foliotrack.foundation.config import ClassifierConfig
from foliotrack.scanner.signals import Manifests, MarkerSet, iter_json_names

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProjectFacts:
    """Everything a rule may look at."""

    markers: MarkerSet
    manifests: Manifests
    name: str
    """Lowercased project directory name."""


Predicate = Callable[[ProjectFacts], bool]


@dataclass(frozen=True, slots=True)
class ClassificationRule:
    """One step of the project-type decision chain."""

    name: str
    predicate: Predicate
    result: ProjectType


@dataclass(frozen=True, slots=True)
class StatusRule:
    """Path-segment keywords that imply a status."""

    name: str
    keywords: tuple[str, ...]
    result: ProjectStatus

    def matches(self, segments: Sequence[str]) -> bool:
        lowered = [s.lower() for s in segments]
        return any(k.lower() in seg for seg in lowered for k in self.keywords)


@dataclass(frozen=True, slots=True)
class ConventionRule:
    """A marker-based technology tag, independent of manifest content."""

    predicate: Predicate
    technology: Technology


@dataclass(frozen=True, slots=True)
class Classification:
    """Classifier output for one project."""

    type: ProjectType
    status: ProjectStatus
    technologies: tuple[Technology, ...]
    matched_rule: str
    """Name of the type rule that fired."""


# =============================================================================
# Dependency tables
# =============================================================================

FRONTEND_PACKAGES = ("next", "react", "vue", "svelte", "angular", "@angular/core")
SERVER_PACKAGES = ("express", "fastify", "@nestjs/core")
AUTOMATION_PACKAGES = ("n8n",)
PYTHON_WEB_PACKAGES = ("fastapi", "flask", "django")
PYTHON_DATA_PACKAGES = ("pandas", "numpy", "scikit-learn")

# npm package -> (display name, category)
NPM_TECHNOLOGIES: tuple[tuple[str, str, TechCategory], ...] = (
    ("next", "Next.js", TechCategory.FRONTEND),
    ("react", "React", TechCategory.FRONTEND),
    ("vue", "Vue.js", TechCategory.FRONTEND),
    ("svelte", "Svelte", TechCategory.FRONTEND),
    ("angular", "Angular", TechCategory.FRONTEND),
    ("@angular/core", "Angular", TechCategory.FRONTEND),
    ("vite", "Vite", TechCategory.FRONTEND),
    ("webpack", "Webpack", TechCategory.FRONTEND),
    ("tailwindcss", "Tailwind CSS", TechCategory.FRONTEND),
    ("@shadcn/ui", "shadcn/ui", TechCategory.FRONTEND),
    ("@mui/material", "Material-UI", TechCategory.FRONTEND),
    ("typescript", "TypeScript", TechCategory.FRONTEND),
    ("esm", "ES Modules", TechCategory.FRONTEND),
    ("express", "Express.js", TechCategory.BACKEND),
    ("fastify", "Fastify", TechCategory.BACKEND),
    ("@nestjs/core", "NestJS", TechCategory.BACKEND),
    ("mongoose", "MongoDB", TechCategory.DATABASE),
    ("pg", "PostgreSQL", TechCategory.DATABASE),
    ("mysql", "MySQL", TechCategory.DATABASE),
    ("sqlite3", "SQLite", TechCategory.DATABASE),
    ("openai", "OpenAI", TechCategory.AI_ML),
    ("@anthropic-ai/sdk", "Anthropic Claude", TechCategory.AI_ML),
    ("@google/generative-ai", "Google Gemini", TechCategory.AI_ML),
    ("mistralai", "Mistral AI", TechCategory.AI_ML),
    ("groq-sdk", "Groq", TechCategory.AI_ML),
    ("n8n", "n8n", TechCategory.AUTOMATION),
    ("puppeteer", "Puppeteer", TechCategory.AUTOMATION),
    ("playwright", "Playwright", TechCategory.AUTOMATION),
    ("vercel", "Vercel", TechCategory.DEPLOYMENT),
    ("coolify", "Coolify", TechCategory.DEPLOYMENT),
)

# Python distributions (any alias) -> (display name, category)
PYTHON_TECHNOLOGIES: tuple[tuple[tuple[str, ...], str, TechCategory], ...] = (
    (("openai",), "OpenAI Python", TechCategory.AI_ML),
    (("anthropic",), "Anthropic Python", TechCategory.AI_ML),
    (("google-generativeai", "google-genai"), "Google Gemini Python", TechCategory.AI_ML),
    (("mistralai", "mistral"), "Mistral AI Python", TechCategory.AI_ML),
    (("groq",), "Groq Python", TechCategory.AI_ML),
    (("fastapi",), "FastAPI", TechCategory.BACKEND),
    (("flask",), "Flask", TechCategory.BACKEND),
    (("django",), "Django", TechCategory.BACKEND),
    (("pandas",), "Pandas", TechCategory.AI_ML),
    (("numpy",), "NumPy", TechCategory.AI_ML),
    (("scikit-learn", "sklearn"), "Scikit-learn", TechCategory.AI_ML),
    (("tensorflow",), "TensorFlow", TechCategory.AI_ML),
    (("torch", "pytorch"), "PyTorch", TechCategory.AI_ML),
)


def _contains_any(name: str, keywords: Sequence[str]) -> bool:
    return any(k.lower() in name for k in keywords)


def _has_library_entry(facts: ProjectFacts) -> bool:
    package = facts.manifests.package_json or {}
    declares_entry = any(package.get(key) for key in ("main", "module", "exports"))
    has_source = facts.markers.has_dir("src") or facts.markers.has_dir("lib")
    return bool(declares_entry and has_source)


def default_type_rules(config: ClassifierConfig) -> tuple[ClassificationRule, ...]:
    """The project-type decision chain, highest priority first."""
    ai_keywords = config.ai_name_keywords
    data_keywords = config.data_name_keywords

    return (
        ClassificationRule(
            "frontend-framework",
            lambda f: f.manifests.has_npm(*FRONTEND_PACKAGES),
            ProjectType.WEB_APP,
        ),
        ClassificationRule(
            "server-framework",
            lambda f: f.manifests.has_npm(*SERVER_PACKAGES),
            ProjectType.API,
        ),
        ClassificationRule(
            "automation-platform",
            lambda f: f.manifests.has_npm(*AUTOMATION_PACKAGES),
            ProjectType.AUTOMATION,
        ),
        ClassificationRule(
            "python-ai-project",
            lambda f: f.markers.has_python_manifest and (
                _contains_any(f.name, ai_keywords)
                or f.markers.has_dir("prompts")
                or f.markers.has_dir("n8n")
            ),
            ProjectType.AI_AGENT,
        ),
        ClassificationRule(
            "python-web-framework",
            lambda f: f.markers.has_python_manifest
            and f.manifests.has_root_python(*PYTHON_WEB_PACKAGES),
            ProjectType.API,
        ),
        ClassificationRule(
            "python-data-science",
            lambda f: f.markers.has_python_manifest
            and f.manifests.has_root_python(*PYTHON_DATA_PACKAGES),
            ProjectType.DATA_ANALYSIS,
        ),
        ClassificationRule(
            "tabular-data",
            lambda f: bool(f.markers.files_with_suffix(".csv", ".xlsx"))
            or _contains_any(f.name, data_keywords),
            ProjectType.DATA_ANALYSIS,
        ),
        ClassificationRule(
            "automation-directory",
            lambda f: f.markers.has_dir("n8n"),
            ProjectType.AUTOMATION,
        ),
        ClassificationRule(
            "library-entry-point",
            _has_library_entry,
            ProjectType.LIBRARY,
        ),
    )


def default_status_rules(config: ClassifierConfig) -> tuple[StatusRule, ...]:
    """Status rules, highest priority first. Production wins over obsolete."""
    return (
        StatusRule("production", config.production_keywords, ProjectStatus.PRODUCTION),
        StatusRule("obsolete", config.obsolete_keywords, ProjectStatus.OBSOLETE),
    )


CONVENTION_RULES: tuple[ConventionRule, ...] = (
    ConventionRule(
        lambda f: f.markers.has_file("Dockerfile"),
        Technology("Docker", TechCategory.DEPLOYMENT),
    ),
    ConventionRule(
        lambda f: f.markers.has_file("docker-compose.yml"),
        Technology("Docker Compose", TechCategory.DEPLOYMENT),
    ),
    ConventionRule(
        lambda f: f.markers.has(".git"),
        Technology("Git", TechCategory.DEPLOYMENT),
    ),
    ConventionRule(
        lambda f: f.markers.has_dir("n8n")
        or any(True for _ in iter_json_names(f.markers, "workflow", "n8n")),
        Technology("n8n", TechCategory.AUTOMATION),
    ),
    ConventionRule(
        lambda f: f.markers.has_dir("prompts"),
        Technology("AI Prompts", TechCategory.AI_ML),
    ),
    ConventionRule(
        lambda f: f.markers.has_dir("database") or f.markers.has_dir("schema"),
        Technology("Database Integration", TechCategory.BACKEND),
    ),
    ConventionRule(
        lambda f: f.markers.has_dir("templates") or _contains_any(f.name, ("image", "linkedin")),
        Technology("Image Processing", TechCategory.AUTOMATION),
    ),
)


class Classifier:
    """Derives type, status and technologies for one project."""

    def __init__(
        self,
        config: ClassifierConfig | None = None,
        type_rules: Sequence[ClassificationRule] | None = None,
        status_rules: Sequence[StatusRule] | None = None,
    ) -> None:
        self.config = config or ClassifierConfig()
        self.type_rules = tuple(type_rules or default_type_rules(self.config))
        self.status_rules = tuple(status_rules or default_status_rules(self.config))

    def classify(
        self,
        markers: MarkerSet,
        manifests: Manifests,
        path_segments: Sequence[str],
    ) -> Classification:
        """Classify a project.

        Args:
            markers: Top-level entries of the project directory.
            manifests: Parsed dependency manifests.
            path_segments: Path relative to the scan root, bucket included.
        """
        name = (path_segments[-1] if path_segments else markers.name).lower()
        facts = ProjectFacts(markers=markers, manifests=manifests, name=name)

        project_type, rule_name = self.detect_type(facts)
        status = self.detect_status(path_segments)
        technologies = self.detect_technologies(facts)

        logger.debug(
            "Classified %s as %s/%s via %s (%d technologies)",
            "/".join(path_segments), project_type.value, status.value,
            rule_name, len(technologies),
        )
        return Classification(
            type=project_type,
            status=status,
            technologies=technologies,
            matched_rule=rule_name,
        )

    def detect_type(self, facts: ProjectFacts) -> tuple[ProjectType, str]:
        for rule in self.type_rules:
            if rule.predicate(facts):
                return rule.result, rule.name
        return ProjectType.TOOL, "default"

    def detect_status(self, path_segments: Sequence[str]) -> ProjectStatus:
        for rule in self.status_rules:
            if rule.matches(path_segments):
                return rule.result
        return ProjectStatus.DEVELOPMENT

    def detect_technologies(self, facts: ProjectFacts) -> tuple[Technology, ...]:
        """All matching technology tags, deduplicated by (name, category)."""
        found: list[Technology] = []
        manifests = facts.manifests

        npm = manifests.npm_all
        for package, display, category in NPM_TECHNOLOGIES:
            if package in npm:
                found.append(Technology(display, category, npm[package] or None))
        if manifests.package_json and manifests.package_json.get("type") == "module":
            found.append(Technology("ES Modules", TechCategory.FRONTEND))

        python = manifests.python_dependencies
        for aliases, display, category in PYTHON_TECHNOLOGIES:
            for alias in aliases:
                if alias in python:
                    found.append(Technology(display, category, python[alias] or None))
                    break

        for rule in CONVENTION_RULES:
            if rule.predicate(facts):
                found.append(rule.technology)

        return dedupe_technologies(found)


def dedupe_technologies(technologies: Sequence[Technology]) -> tuple[Technology, ...]:
    """Keep the first technology per (name, category), preserving order."""
    seen: set[tuple[str, TechCategory]] = set()
    unique = []
    for tech in technologies:
        if tech.key not in seen:
            seen.add(tech.key)
            unique.append(tech)
    return tuple(unique)


def detect_deployment(markers: MarkerSet) -> DeploymentInfo | None:
    """Deployment metadata implied by platform directories or files."""
    if markers.has_dir("coolify"):
        return DeploymentInfo(platform="coolify", status="active", environment="production")
    if markers.has_file("vercel.json"):
        return DeploymentInfo(platform="vercel", status="active", environment="production")
    return None

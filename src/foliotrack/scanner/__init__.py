"""Scanner - discovers, classifies and reconciles project directories."""

from foliotrack.scanner.classifier import (
    Classification,
    ClassificationRule,
    Classifier,
    StatusRule,
)
from foliotrack.scanner.evolution import EvolutionBuilder
from foliotrack.scanner.orchestrator import ProjectScanner
from foliotrack.scanner.probe import FilesystemProber, ProbeOutcome, ProbeResult
from foliotrack.scanner.repository import RepositoryAnalyzer

__all__ = [
    "Classification",
    "ClassificationRule",
    "Classifier",
    "EvolutionBuilder",
    "FilesystemProber",
    "ProbeOutcome",
    "ProbeResult",
    "ProjectScanner",
    "RepositoryAnalyzer",
    "StatusRule",
]

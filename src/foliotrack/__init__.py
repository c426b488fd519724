"""foliotrack - catalog a directory tree of software projects.

Scans project directories, classifies their status, type and technology
stack, and keeps a SQLite catalog with per-project history.
"""

__version__ = "0.1.0"

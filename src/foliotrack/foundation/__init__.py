"""Foundation - config, errors, logging and small helpers.

Nothing here imports from the catalog or scanner packages.
"""

from foliotrack.foundation.config import (
    ClassifierConfig,
    FolioConfig,
    RepositoryConfig,
    ScanConfig,
    StoreConfig,
    get_config,
    load_config,
    reset_config,
)
from foliotrack.foundation.errors import ErrorCode, FolioError

__all__ = [
    "ClassifierConfig",
    "ErrorCode",
    "FolioConfig",
    "FolioError",
    "RepositoryConfig",
    "ScanConfig",
    "StoreConfig",
    "get_config",
    "load_config",
    "reset_config",
]

"""foliotrack Error System.

Provides structured error handling with:
- Numeric error codes for programmatic handling
- User-friendly messages
- Recovery hints shown by the CLI
- Context for debugging
"""


from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Numeric error codes organized by category.

    Format: XYYY where X = category, YYY = specific error

    Categories:
        5xxx - Configuration errors
        6xxx - Scan errors
        7xxx - Store/IO errors
    """

    # 5xxx - Configuration Errors
    CONFIG_INVALID = 5001
    CONFIG_PATH_MISSING = 5002

    # 6xxx - Scan Errors
    SCAN_PROJECT_FAILED = 6001

    # 7xxx - Store/IO Errors
    STORE_UNAVAILABLE = 7001
    STORE_WRITE_FAILED = 7002
    STORE_DECODE_FAILED = 7003
    BACKUP_FAILED = 7004

    @property
    def category(self) -> str:
        """Get the error category name."""
        prefix = self.value // 1000
        return {
            5: "config",
            6: "scan",
            7: "store",
        }.get(prefix, "unknown")

    @property
    def is_recoverable(self) -> bool:
        """Whether a scan can continue past this error."""
        return self in {ErrorCode.SCAN_PROJECT_FAILED, ErrorCode.STORE_WRITE_FAILED}


# Human-readable error messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.CONFIG_INVALID: "Invalid configuration for '{key}': {detail}",
    ErrorCode.CONFIG_PATH_MISSING: "Scan root does not exist or is not a directory: {path}",
    ErrorCode.SCAN_PROJECT_FAILED: "Failed to process {path}: {detail}",
    ErrorCode.STORE_UNAVAILABLE: "Project store at '{path}' is unavailable: {detail}",
    ErrorCode.STORE_WRITE_FAILED: "Failed to save project '{project_id}': {detail}",
    ErrorCode.STORE_DECODE_FAILED: "Stored record '{record}' is invalid: {detail}",
    ErrorCode.BACKUP_FAILED: "Backup of '{path}' failed: {detail}",
}


RECOVERY_HINTS: dict[ErrorCode, list[str]] = {
    ErrorCode.CONFIG_INVALID: [
        "Check .foliotrack/config.yaml for typos",
        "Unset FOLIOTRACK_* environment variables to fall back to defaults",
    ],
    ErrorCode.CONFIG_PATH_MISSING: [
        "Pass an existing directory as the scan root",
    ],
    ErrorCode.STORE_UNAVAILABLE: [
        "Check that the directory holding '{path}' is writable",
        "Make sure no other scan is writing to the same store file",
    ],
    ErrorCode.STORE_DECODE_FAILED: [
        "Re-run 'foliotrack scan' to rewrite the record",
        "Restore from a backup made with 'foliotrack backup'",
    ],
}


class FolioError(Exception):
    """Base error type for all foliotrack errors.

    Example:
        >>> err = FolioError(
        ...     code=ErrorCode.CONFIG_PATH_MISSING,
        ...     context={"path": "/nope"},
        ... )
        >>> print(err)
        [FT-5002] Scan root does not exist or is not a directory: /nope
    """

    def __init__(
        self,
        code: ErrorCode,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.context = context or {}
        self.cause = cause
        super().__init__(str(self))

    @property
    def message(self) -> str:
        """Get the formatted user-friendly message."""
        template = ERROR_MESSAGES.get(self.code, "An error occurred: {detail}")
        try:
            return template.format(**self.context)
        except KeyError:
            return template

    @property
    def recovery_hints(self) -> list[str]:
        """Get recovery suggestions for this error."""
        formatted = []
        for hint in RECOVERY_HINTS.get(self.code, []):
            try:
                formatted.append(hint.format(**self.context))
            except KeyError:
                formatted.append(hint)
        return formatted

    @property
    def is_recoverable(self) -> bool:
        return self.code.is_recoverable

    @property
    def category(self) -> str:
        return self.code.category

    @property
    def error_id(self) -> str:
        """Get the error ID string (e.g., 'FT-7001')."""
        return f"FT-{self.code.value}"

    def __str__(self) -> str:
        return f"[{self.error_id}] {self.message}"

    def __repr__(self) -> str:
        return f"FolioError(code={self.code!r}, context={self.context!r})"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for logging and JSON output."""
        return {
            "error_id": self.error_id,
            "code": self.code.value,
            "category": self.category,
            "message": self.message,
            "recoverable": self.is_recoverable,
            "recovery_hints": self.recovery_hints,
            "context": self.context,
        }


# Convenience factory functions

def config_error(key: str, detail: str, cause: Exception | None = None) -> FolioError:
    """Create a CONFIG_INVALID error."""
    return FolioError(
        code=ErrorCode.CONFIG_INVALID,
        context={"key": key, "detail": detail},
        cause=cause,
    )


def store_error(
    code: ErrorCode,
    detail: str = "",
    cause: Exception | None = None,
    **extra: Any,
) -> FolioError:
    """Create a store-related error."""
    return FolioError(
        code=code,
        context={"detail": detail, **extra},
        cause=cause,
    )

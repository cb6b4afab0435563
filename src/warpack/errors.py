"""Error taxonomy for warpack packaging runs.

Every error aborts the run; nothing is retried. The CLI renders
``reason_code: message`` and exits non-zero.
"""

from __future__ import annotations

CONFIG_INVALID = "CONFIG_INVALID"
PATTERN_INVALID = "PATTERN_INVALID"
REQUIREMENT_INVALID = "REQUIREMENT_INVALID"
CONFIGURATION_CONFLICT = "CONFIGURATION_CONFLICT"
PACKAGE_NOT_FOUND = "PACKAGE_NOT_FOUND"
DEPENDENCY_CONFLICT = "DEPENDENCY_CONFLICT"
EXTRACTION_FAILED = "EXTRACTION_FAILED"
SOURCE_MISSING = "SOURCE_MISSING"
ARCHIVE_FAILED = "ARCHIVE_FAILED"


class WarpackError(RuntimeError):
    """Base class for fatal packaging errors."""

    reason_code: str = CONFIG_INVALID

    def __init__(self, message: str, reason_code: str | None = None) -> None:
        super().__init__(message)
        if reason_code is not None:
            self.reason_code = reason_code


class ConfigError(WarpackError):
    """Invalid or unreadable configuration."""

    reason_code = CONFIG_INVALID


class InvalidPattern(ConfigError):
    """Malformed include/exclude/root glob pattern."""

    reason_code = PATTERN_INVALID


class InvalidRequirement(ConfigError):
    """Unparsable gem version requirement."""

    reason_code = REQUIREMENT_INVALID


class ConfigurationConflict(ConfigError):
    """Two sources map to one staging destination, or the task graph is inconsistent."""

    reason_code = CONFIGURATION_CONFLICT


class PackageNotFound(WarpackError):
    """No installed gem satisfies a requirement."""

    reason_code = PACKAGE_NOT_FOUND

    def __init__(self, name: str, constraint: str | None, required_by: tuple[str, ...] = ()) -> None:
        wanted = f"{name} ({constraint})" if constraint else name
        message = f"gem '{wanted}' not installed"
        if required_by:
            message += f" (required by {' -> '.join(required_by)})"
        super().__init__(message)
        self.name = name
        self.constraint = constraint
        self.required_by = required_by


class DependencyConflict(WarpackError):
    """Incompatible constraints on one gem, or runaway dependency depth."""

    reason_code = DEPENDENCY_CONFLICT


class ExtractionFailure(WarpackError):
    """The gem unpack tool exited non-zero."""

    reason_code = EXTRACTION_FAILED

    def __init__(self, message: str, diagnostic: str = "") -> None:
        rendered = f"{message}\n{diagnostic}" if diagnostic else message
        super().__init__(rendered)
        self.diagnostic = diagnostic


class SourceMissing(WarpackError):
    """A source path vanished between enumeration and copy."""

    reason_code = SOURCE_MISSING


class ArchiveFailure(WarpackError):
    """The archiver exited non-zero."""

    reason_code = ARCHIVE_FAILED

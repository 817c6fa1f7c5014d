"""
Custom exception hierarchy for cratecompat.

This module defines structured exception types used across cratecompat.
All exceptions inherit from :class:`CrateCompatError` and support optional
structured metadata via the ``details`` attribute to improve diagnostics
and logging.

Fatal kinds (lockfile errors, :class:`RegistryUnavailable` without a
cached fallback) abort a run. :class:`DependentMetadataUnavailable` is
collected per dependent and reported as a warning instead of raised
through the engine.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Optional


class CrateCompatError(Exception):
    """Base exception for all cratecompat errors.

    Args:
        message: Human-readable error message.
        details: Optional structured metadata describing the error.
    """

    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.message: str = message
        self.details: MutableMapping[str, Any] = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        formatted = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({formatted})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, details={dict(self.details)!r})"
        )


def _add_if(details: MutableMapping[str, Any], key: str, value: Any) -> None:
    """Add a key to ``details`` only if ``value`` is not ``None``."""
    if value is not None:
        details[key] = value


def _truncate(text: str, max_length: int = 200) -> str:
    """Truncate long text for safe logging or error reporting."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


# ---------------------------------------------------------------------------
# Lockfile stage (fatal)
# ---------------------------------------------------------------------------


class LockfileError(CrateCompatError):
    """Base class for errors raised while loading a lockfile.

    Args:
        message: Error description.
        file_path: Path to the lockfile.
    """

    __slots__ = ("file_path",)

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        merged: MutableMapping[str, Any] = {}
        _add_if(merged, "file", file_path)
        if details:
            merged.update(details)

        super().__init__(message, merged)
        self.file_path = file_path


class LockfileNotFound(LockfileError):
    """Raised when the lockfile does not exist."""


class LockfileMalformed(LockfileError):
    """Raised when the lockfile cannot be parsed into package entries.

    Args:
        message: Error description.
        file_path: Path to the lockfile.
        package: Name of the offending package entry, if known.
        entry_index: Zero-based index of the ``[[package]]`` entry.
    """

    __slots__ = ("package", "entry_index")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        package: Optional[str] = None,
        entry_index: Optional[int] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "package", package)
        _add_if(details, "entry", entry_index)

        super().__init__(message, file_path=file_path, details=details)
        self.package = package
        self.entry_index = entry_index


class DuplicatePackage(LockfileError):
    """Raised when the same ``(name, version)`` appears twice in a lockfile."""

    __slots__ = ("package", "version")

    def __init__(
        self,
        package: str,
        version: str,
        *,
        file_path: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Package {package} {version} appears more than once",
            file_path=file_path,
        )
        self.package = package
        self.version = version


# ---------------------------------------------------------------------------
# Network / registry
# ---------------------------------------------------------------------------


class NetworkError(CrateCompatError):
    """Raised when HTTP or network operations fail.

    Args:
        message: Error description.
        url: URL being accessed.
        status_code: HTTP status code, if available.
        response_body: Raw response body, truncated for safety.
    """

    __slots__ = ("url", "status_code", "response_body")

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "url", url)
        _add_if(details, "status_code", status_code)

        if response_body is not None:
            details["response"] = _truncate(response_body)

        super().__init__(message, details)

        self.url = url
        self.status_code = status_code
        self.response_body = response_body


class RegistryError(NetworkError):
    """Raised for failures of the registry index transport.

    Args:
        message: Error description.
        crate_name: Name of the crate involved.
        **kwargs: Additional arguments forwarded to ``NetworkError``.
    """

    __slots__ = ("crate_name",)

    def __init__(
        self,
        message: str,
        *,
        crate_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)

        self.crate_name = crate_name
        if crate_name is not None:
            self.details["crate"] = crate_name


class RegistryUnavailable(CrateCompatError):
    """Raised when registry data cannot be fetched and nothing is cached.

    Args:
        crate_name: Crate whose metadata was requested.
        original_error: Transport failure that caused this error.
    """

    __slots__ = ("crate_name", "original_error")

    def __init__(
        self,
        crate_name: str,
        *,
        original_error: Optional[BaseException] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {"crate": crate_name}
        _add_if(
            details,
            "original_error",
            str(original_error) if original_error else None,
        )
        super().__init__(
            f"Registry metadata for '{crate_name}' is unavailable and not cached",
            details,
        )
        self.crate_name = crate_name
        self.original_error = original_error


class DependentMetadataUnavailable(CrateCompatError):
    """A dependent's declared requirement could not be reconstructed.

    Non-fatal: the dependent is excluded from the intersection and the
    instance is reported alongside the result.

    Args:
        dependent: Name of the dependent package.
        version: Pinned version of the dependent.
        reason: Why the requirement is unknown.
    """

    __slots__ = ("dependent", "version", "reason")

    def __init__(self, dependent: str, version: str, reason: str) -> None:
        super().__init__(
            f"Unknown constraint from {dependent} {version}: {reason}",
        )
        self.dependent = dependent
        self.version = version
        self.reason = reason


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class InvalidRequirement(CrateCompatError):
    """Raised when a version requirement string cannot be parsed."""

    __slots__ = ("requirement", "reason")

    def __init__(self, requirement: str, reason: str) -> None:
        super().__init__(
            f"Invalid version requirement '{requirement}': {reason}",
        )
        self.requirement = requirement
        self.reason = reason


class InvalidCrateName(CrateCompatError):
    """Raised when a crate name cannot be a registry crate."""

    __slots__ = ("crate_name",)

    def __init__(self, crate_name: str) -> None:
        super().__init__(f"Invalid crate name '{crate_name}'")
        self.crate_name = crate_name


class InvalidToolchainVersion(CrateCompatError):
    """Raised when a maximum toolchain version is not a valid version."""

    __slots__ = ("value",)

    def __init__(self, value: str) -> None:
        super().__init__(f"The max toolchain version '{value}' is not valid")
        self.value = value


class ConfigError(CrateCompatError):
    """Raised when a configuration file is invalid.

    Args:
        message: Error description.
        config_path: Path to the configuration file.
        option: Offending option name, if any.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", config_path)
        _add_if(details, "option", option)

        super().__init__(message, details)

        self.config_path = config_path
        self.option = option


class FileOperationError(CrateCompatError):
    """Raised when file system operations fail.

    Args:
        message: Error description.
        file_path: Path to the file involved.
        operation: Operation being performed (read/write/delete).
        original_error: Original exception that triggered this error.
    """

    __slots__ = ("file_path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", file_path)
        _add_if(details, "operation", operation)
        _add_if(
            details,
            "original_error",
            str(original_error) if original_error else None,
        )

        super().__init__(message, details)

        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error

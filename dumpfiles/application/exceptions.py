"""
Core exceptions for the dump processing component.

This module defines a hierarchy of custom exceptions to allow for granular
error handling and clear separation of failure domains. Callers branch on
these kinds to decide whether to retry, skip or abort: a missing resource,
a resource opened with the wrong accessor and a stream that dies while being
read are deliberately three different exceptions.
"""


class DumpfilesError(Exception):
    """Base exception for all component-specific errors."""
    pass


# --- Configuration Errors ---

class ConfigurationError(DumpfilesError):
    """Raised for errors related to application configuration."""
    pass


class OfflineModeError(ConfigurationError):
    """Raised when network access is requested while in offline mode."""
    pass


# --- Infrastructure Errors ---

class InfrastructureError(DumpfilesError):
    """Base class for errors related to external systems (network, disk)."""
    pass


class ResourceNotFoundError(InfrastructureError):
    """Raised when a resource does not exist or cannot be reached."""

    def __init__(self, locator: str, reason: str = "resource not found"):
        super().__init__(f"{reason}: {locator}")
        self.locator = locator


class ReadFailureError(InfrastructureError):
    """Raised when reading from an already opened resource fails."""

    def __init__(self, locator: str, reason: str = "read failed"):
        super().__init__(f"{reason}: {locator}")
        self.locator = locator


# --- Usage Errors ---

class WrongAccessorError(DumpfilesError, ValueError):
    """
    Raised when a resource is opened through an accessor that does not match
    its declared content type. This is a usage defect and is never retried.
    """

    def __init__(self, locator: str, declared: str, expected: str):
        super().__init__(
            f"Cannot access {declared} content as {expected}: {locator}"
        )
        self.locator = locator
        self.declared = declared
        self.expected = expected


# --- Domain/Business Logic Errors ---

class DomainError(DumpfilesError):
    """Base class for errors related to dump content and selection."""
    pass


class CorruptDumpError(DomainError):
    """
    Raised when the decompressed dump does not match the expected record
    grammar. Carries the locator, the index of the record being parsed and,
    where known, a line/column or byte position.
    """

    def __init__(
        self,
        message: str,
        locator: str = "",
        record_index: int = 0,
        position: str = "",
    ):
        details = f"record {record_index}"
        if position:
            details += f", {position}"
        super().__init__(f"{message} ({locator}, {details})")
        self.locator = locator
        self.record_index = record_index
        self.position = position


class NoDumpAvailableError(DomainError):
    """Raised when discovery finds no usable dump for a content type."""

    def __init__(self, content_type, detail: str = ""):
        message = f"No {content_type.value} dump available"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
        self.content_type = content_type

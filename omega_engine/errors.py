"""
Domain exceptions for omegaopts.

Notes
-----
Engine code avoids raising generic exceptions. Every expected failure mode maps
to a domain exception with a clear meaning so that callers (the editor, the
CLI) can decide how to surface it without inspecting messages.
"""

from __future__ import annotations

from typing import Iterable


class OmegaError(RuntimeError):
    """Base exception for all omegaopts domain failures."""


class StorageError(OmegaError):
    """Raised when the underlying key/value primitive rejects an operation."""


class StorageUnavailableError(StorageError):
    """Raised when the storage primitive is unreachable or failed internally."""


class QuotaExceededError(StorageError):
    """Raised when a write payload exceeds the storage quota."""


class RateLimitExceededError(StorageError):
    """Raised when write frequency exceeds the storage throttling limit."""


class NoOptionsError(OmegaError):
    """Raised when no options document is persisted."""


class InvalidOptionsError(OmegaError):
    """Raised when an options document or profile violates its invariants."""


class ProfileNotExistError(OmegaError):
    """
    Raised when a referenced profile name is absent from the document.

    Attributes
    ----------
    profile_name:
        The name that could not be resolved.
    """

    def __init__(self, profile_name: str) -> None:
        super().__init__(f"Profile does not exist: {profile_name!r}")
        self.profile_name = profile_name


class CircularReferenceError(OmegaError):
    """Raised when an edit would make a profile depend on itself."""

    def __init__(self, profile_name: str, target_name: str) -> None:
        super().__init__(
            f"Profile {profile_name!r} cannot reference {target_name!r}: "
            "the result would be a circular dependency."
        )
        self.profile_name = profile_name
        self.target_name = target_name


class ProfileInUseError(OmegaError):
    """
    Raised when deleting a profile that other profiles still reference.

    Attributes
    ----------
    profile_name:
        Profile the caller tried to delete.
    dependents:
        Sorted names of the profiles that depend on it.
    """

    def __init__(self, profile_name: str, dependents: Iterable[str]) -> None:
        self.profile_name = profile_name
        self.dependents = tuple(sorted(dependents))
        super().__init__(
            f"Profile {profile_name!r} is used by: {', '.join(self.dependents)}"
        )


class SafetyViolationError(OmegaError):
    """Raised when a filesystem location is blocked by path policy."""

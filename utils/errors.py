"""
Error types for session acquisition and test cleanup.

Only SessionAcquisitionError is meant to fail a test. Deletion and cleanup
step failures are plain values collected into summaries.
"""
from dataclasses import dataclass


class SessionAcquisitionError(RuntimeError):
    """Live login failed after a cache miss or an invalid cached session."""

    def __init__(self, profile_key: str, message: str):
        super().__init__(f"[{profile_key}] {message}")
        self.profile_key = profile_key


class StateCorruptionWarning(UserWarning):
    """Persisted session state could not be used and was discarded."""


class StateCorruptionError(ValueError):
    """Raised by the state store when a state file cannot be parsed."""


class UnknownResourceTypeError(ValueError):
    """Resource type outside the tracked set."""


@dataclass(frozen=True)
class DeletionFailure:
    resource_type: str
    identifier: str
    error: str

    def __str__(self) -> str:
        return f"{self.resource_type}({self.identifier}): {self.error}"


@dataclass(frozen=True)
class CleanupStepFailure:
    step: str
    error: str

    def __str__(self) -> str:
        return f"{self.step}: {self.error}"

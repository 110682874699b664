"""Custom exception hierarchy for skybake.

All skybake-specific exceptions inherit from SkybakeError, enabling
callers to catch every build failure with a single except clause.
"""

from __future__ import annotations


class SkybakeError(Exception):
    """Base exception for all skybake errors."""


class ConfigurationError(SkybakeError):
    """Raised for invalid configuration or missing required settings."""


class RequestBuildError(SkybakeError):
    """Raised when a droplet creation request cannot be assembled.

    Happens before any remote call, so nothing needs to be cleaned up.
    """


class RemoteActionError(SkybakeError):
    """Raised when a DigitalOcean API call fails."""

    def __init__(self, action: str, reason: object, resource_id: int | None = None) -> None:
        self.action = action
        self.reason = reason
        self.resource_id = resource_id
        target = f" {resource_id}" if resource_id is not None else ""
        super().__init__(f"Failed to {action}{target}: {reason}")


class PollTimeoutError(SkybakeError):
    """Raised when a resource does not reach a condition within its budget."""

    def __init__(
        self,
        resource_id: int,
        condition: str,
        timeout: float,
        message: str | None = None,
    ) -> None:
        self.resource_id = resource_id
        self.condition = condition
        self.timeout = timeout
        super().__init__(
            message
            or f"Timeout waiting for droplet {resource_id} to reach {condition!r} "
            f"after {timeout:.1f}s"
        )


class PollCancelledError(PollTimeoutError):
    """Raised when the build is cancelled while a wait is in progress."""

    def __init__(self, resource_id: int, condition: str, timeout: float) -> None:
        super().__init__(
            resource_id,
            condition,
            timeout,
            f"Cancelled while waiting for droplet {resource_id} to reach {condition!r}",
        )


class BuildCancelledError(SkybakeError):
    """Raised when the build is cancelled between steps."""

    def __init__(self) -> None:
        super().__init__("Build cancelled")


class StepError(SkybakeError):
    """Fatal step failure with the phase that failed in its message.

    The underlying error is available as ``__cause__``.
    """


class CleanupError(SkybakeError):
    """Compensating action failed. Reported to the operator, never raised."""

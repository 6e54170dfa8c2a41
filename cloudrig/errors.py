"""Exception hierarchy for cloudrig.

Validation errors are raised before any provider call. Provider errors carry
an optional cause code, which is how the teardown engine tells an expected
"already gone" race from a genuine failure.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .constants import NOT_FOUND_SUFFIX, CauseCode


class CloudrigError(Exception):
    """Base class for every error cloudrig raises on purpose."""


class ValidationError(CloudrigError):
    """A template or cluster invariant does not hold."""


class ProviderError(CloudrigError):
    """A provider call failed.

    Args:
        operation: Provider operation that failed (e.g. ``delete_subnet``).
        message: Human readable reason.
        code: Structured cause code reported by the provider, if any.
    """

    def __init__(self, operation: str, message: str, code: str | None = None) -> None:
        self.operation = operation
        self.message = message
        self.code = code
        prefix = f"{operation} failed"
        if code:
            prefix = f"{prefix} [{code}]"
        super().__init__(f"{prefix}: {message}")

    @property
    def is_not_found(self) -> bool:
        """Whether the provider reports the target resource as already gone."""
        if self.code is None:
            return False
        return self.code.endswith(NOT_FOUND_SUFFIX) or self.code == CauseCode.GATEWAY_NOT_ATTACHED


class TransportError(ProviderError):
    """Unstructured failure talking to the provider (no cause code)."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(operation, message, code=None)


class ResponseShapeError(CloudrigError):
    """The provider reported success but the expected payload is missing."""

    def __init__(self, operation: str, missing: str) -> None:
        self.operation = operation
        self.missing = missing
        super().__init__(f"{operation} succeeded but returned no {missing}")


class CapabilityNotImplemented(NotImplementedError, CloudrigError):
    """A capability that is deliberately left as a placeholder."""

    def __init__(self, capability: str) -> None:
        self.capability = capability
        super().__init__(f"{capability} is not implemented yet")


# =============================================================================
# Aggregate Errors
# =============================================================================


@dataclass(frozen=True, slots=True)
class ZoneFailure:
    """One failed launch attempt."""

    zone: str
    error: CloudrigError


class LaunchError(CloudrigError):
    """Every launch attempt failed."""

    def __init__(self, failures: Sequence[ZoneFailure]) -> None:
        self.failures = tuple(failures)
        lines = "\n".join(f"  {f.zone}: {f.error}" for f in self.failures)
        super().__init__(f"Launch failed after {len(self.failures)} attempt(s):\n{lines}")

    @property
    def zones(self) -> tuple[str, ...]:
        return tuple(f.zone for f in self.failures)


@dataclass(frozen=True, slots=True)
class TeardownFailure:
    """One resource that could not be removed."""

    resource: str
    resource_id: str
    error: Exception


class TeardownError(CloudrigError):
    """One or more teardown steps failed; every other step still ran."""

    def __init__(self, failures: Sequence[TeardownFailure]) -> None:
        self.failures = tuple(failures)
        lines = "\n".join(f"  {f.resource} {f.resource_id}: {f.error}" for f in self.failures)
        super().__init__(f"Teardown left {len(self.failures)} failure(s):\n{lines}")


class BringUpError(CloudrigError):
    """Network bring-up failed and a rollback was attempted.

    Args:
        step: Name of the pipeline step that failed.
        cause: The error that stopped the pipeline.
        cleanup_error: Error raised by the rollback, if it failed too.
    """

    def __init__(
        self,
        step: str,
        cause: BaseException,
        cleanup_error: Exception | None = None,
    ) -> None:
        self.step = step
        self.cause = cause
        self.cleanup_error = cleanup_error
        message = f"Network bring-up failed at step '{step}': {cause}"
        if cleanup_error is not None:
            message = f"{message}\nRollback was incomplete: {cleanup_error}"
        super().__init__(message)


__all__ = [
    "BringUpError",
    "CapabilityNotImplemented",
    "CloudrigError",
    "LaunchError",
    "ProviderError",
    "ResponseShapeError",
    "TeardownError",
    "TeardownFailure",
    "TransportError",
    "ValidationError",
    "ZoneFailure",
]

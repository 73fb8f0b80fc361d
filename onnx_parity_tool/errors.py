"""Error taxonomy for the parity harness.

Every failure a test case can end with maps onto one of these types so a
report can tell "the case could not run" (configuration / execution) apart
from "the case ran and the runtimes disagree" (verdict errors).

Only :class:`ResourceUnavailableError` is ever recovered from locally (by
the extension loader); everything else propagates to the orchestrator.
"""

from __future__ import annotations

from typing import Dict, Iterable


class ParityError(Exception):
    """Base exception for all harness errors."""


class ConfigurationError(ParityError):
    """Unsupported target, malformed shape or bad configuration value.

    Fatal to the test case, never retried.
    """


class ModelNotFoundError(ConfigurationError):
    """Model topology/weights could not be located on the data search path."""


class ResourceUnavailableError(ParityError):
    """An optional resource (extension library) could not be loaded."""


class ExecutionError(ParityError):
    """Parse/load/bind/infer failure inside one of the runners.

    Raised with ``from`` so the original exception stays reachable through
    ``__cause__``; the original message is part of ``str(err)``.
    """


class DeviceBusyError(ExecutionError):
    """An exclusive device already has a live session."""


class VerdictError(ParityError):
    """The case ran but the two output sets do not agree."""


class StructuralMismatch(VerdictError):
    """Output name sets (or shapes of matched outputs) differ between runners."""

    def __init__(self, names: Iterable[str], detail: str = "") -> None:
        self.names = sorted(set(names))
        self.detail = detail
        msg = f"Output contract mismatch for {self.names}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class NumericDivergence(VerdictError):
    """At least one matched output has a non-zero infinity norm."""

    def __init__(self, norms: Dict[str, float]) -> None:
        self.norms = dict(norms)
        parts = ", ".join(f"{k}: normInf={v!r}" for k, v in sorted(self.norms.items()))
        super().__init__(f"Numeric divergence in {len(self.norms)} output(s) ({parts})")

"""Output alignment and exact comparison.

Two kinds of failure are kept apart so a report can say whether the
runtimes produced the wrong *outputs* or the wrong *values*:

- structural: output name sets differ, or a matched pair has different
  shapes. Numeric comparison is skipped entirely in that case.
- numeric: the infinity norm of a matched pair is not exactly zero.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping

import numpy as np

from .errors import NumericDivergence, StructuralMismatch

log = logging.getLogger(__name__)

# Exact match only. Not configurable.
TOLERANCE = 0.0


def norm_inf(a: np.ndarray, b: np.ndarray) -> float:
    """Maximum absolute element-wise difference, computed in float64."""

    a64 = np.asarray(a, dtype=np.float64)
    b64 = np.asarray(b, dtype=np.float64)
    if a64.size == 0:
        return 0.0
    return float(np.max(np.abs(a64 - b64)))


@dataclass
class OutputComparison:
    name: str
    shape: List[int]
    norm_inf: float

    @property
    def passed(self) -> bool:
        # NaN never compares equal, so a NaN norm fails.
        return self.norm_inf == TOLERANCE


@dataclass
class Verdict:
    expected_count: int = 0
    actual_count: int = 0
    missing_in_actual: List[str] = field(default_factory=list)
    missing_in_expected: List[str] = field(default_factory=list)
    shape_mismatches: Dict[str, Dict[str, List[int]]] = field(default_factory=dict)
    comparisons: List[OutputComparison] = field(default_factory=list)

    @property
    def structural_ok(self) -> bool:
        return (
            self.expected_count == self.actual_count
            and not self.missing_in_actual
            and not self.missing_in_expected
            and not self.shape_mismatches
        )

    @property
    def divergent(self) -> Dict[str, float]:
        return {c.name: c.norm_inf for c in self.comparisons if not c.passed}

    @property
    def passed(self) -> bool:
        return self.structural_ok and not self.divergent

    def structural_names(self) -> List[str]:
        return sorted(set(self.missing_in_actual) | set(self.missing_in_expected) | set(self.shape_mismatches))

    def raise_for_failures(self) -> None:
        if not self.structural_ok:
            detail = []
            if self.expected_count != self.actual_count:
                detail.append(f"{self.expected_count} expected vs {self.actual_count} actual outputs")
            if self.missing_in_actual:
                detail.append(f"missing in actual: {self.missing_in_actual}")
            if self.missing_in_expected:
                detail.append(f"missing in expected: {self.missing_in_expected}")
            for name, shapes in sorted(self.shape_mismatches.items()):
                detail.append(f"'{name}' shape {shapes['expected']} vs {shapes['actual']}")
            raise StructuralMismatch(self.structural_names(), "; ".join(detail))
        if self.divergent:
            raise NumericDivergence(self.divergent)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["passed"] = self.passed
        d["structural_ok"] = self.structural_ok
        return d


class EquivalenceChecker:
    def compare(self, expected: Mapping[str, np.ndarray], actual: Mapping[str, np.ndarray]) -> Verdict:
        verdict = Verdict(
            expected_count=len(expected),
            actual_count=len(actual),
            missing_in_actual=[n for n in expected if n not in actual],
            missing_in_expected=[n for n in actual if n not in expected],
        )

        for name in expected:
            if name not in actual:
                continue
            e_shape = list(np.shape(expected[name]))
            a_shape = list(np.shape(actual[name]))
            if e_shape != a_shape:
                verdict.shape_mismatches[name] = {"expected": e_shape, "actual": a_shape}

        if not verdict.structural_ok:
            log.error("Output contract mismatch: %s", verdict.structural_names())
            return verdict

        for name in expected:
            verdict.comparisons.append(
                OutputComparison(
                    name=name,
                    shape=list(np.shape(expected[name])),
                    norm_inf=norm_inf(expected[name], actual[name]),
                )
            )
        return verdict

    def check(self, expected: Mapping[str, np.ndarray], actual: Mapping[str, np.ndarray]) -> Verdict:
        """Like :meth:`compare` but raises on any failure."""

        verdict = self.compare(expected, actual)
        verdict.raise_for_failures()
        return verdict

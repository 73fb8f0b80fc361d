from __future__ import annotations

import math

import numpy as np
import pytest

from onnx_parity_tool.checker import EquivalenceChecker, norm_inf
from onnx_parity_tool.errors import NumericDivergence, StructuralMismatch


def _pair():
    a = np.arange(6, dtype=np.float32).reshape(2, 3)
    return {"age_conv3": a, "prob": a * 2}, {"age_conv3": a.copy(), "prob": a * 2}


def test_identical_sets_pass() -> None:
    expected, actual = _pair()
    verdict = EquivalenceChecker().check(expected, actual)
    assert verdict.passed
    assert [(c.name, c.norm_inf) for c in verdict.comparisons] == [("age_conv3", 0.0), ("prob", 0.0)]


def test_divergence_reports_name_and_norm() -> None:
    expected, actual = _pair()
    actual["prob"] = actual["prob"].copy()
    actual["prob"][1, 2] += np.float32(0.5)

    verdict = EquivalenceChecker().compare(expected, actual)
    assert verdict.structural_ok
    assert not verdict.passed
    assert verdict.divergent == {"prob": 0.5}

    with pytest.raises(NumericDivergence) as ei:
        verdict.raise_for_failures()
    assert ei.value.norms == {"prob": 0.5}
    assert "prob" in str(ei.value)


def test_extra_output_is_structural_not_numeric() -> None:
    expected, actual = _pair()
    expected["extra_debug_tensor"] = np.zeros(3, dtype=np.float32)

    verdict = EquivalenceChecker().compare(expected, actual)
    assert not verdict.structural_ok
    assert verdict.missing_in_actual == ["extra_debug_tensor"]
    assert verdict.comparisons == []

    with pytest.raises(StructuralMismatch) as ei:
        EquivalenceChecker().check(expected, actual)
    assert ei.value.names == ["extra_debug_tensor"]


def test_missing_output_on_both_sides_named() -> None:
    expected = {"a": np.zeros(2, np.float32), "b": np.zeros(2, np.float32)}
    actual = {"a": np.zeros(2, np.float32), "c": np.zeros(2, np.float32)}

    verdict = EquivalenceChecker().compare(expected, actual)
    assert verdict.expected_count == verdict.actual_count == 2
    assert verdict.structural_names() == ["b", "c"]


def test_shape_mismatch_is_structural() -> None:
    expected = {"a": np.zeros((1, 4), np.float32)}
    actual = {"a": np.zeros((4, 1), np.float32)}

    verdict = EquivalenceChecker().compare(expected, actual)
    assert verdict.shape_mismatches == {"a": {"expected": [1, 4], "actual": [4, 1]}}
    with pytest.raises(StructuralMismatch):
        verdict.raise_for_failures()


def test_nan_never_matches() -> None:
    a = np.array([1.0, np.nan], dtype=np.float32)
    assert math.isnan(norm_inf(a, a.copy()))
    assert not EquivalenceChecker().compare({"x": a}, {"x": a.copy()}).passed


def test_norm_inf_is_max_abs_difference() -> None:
    a = np.array([0.0, 1.0, -2.0], dtype=np.float32)
    b = np.array([0.25, 1.0, 1.0], dtype=np.float32)
    assert norm_inf(a, b) == 3.0
    assert norm_inf(np.zeros((0, 3)), np.zeros((0, 3))) == 0.0


def test_verdict_to_dict() -> None:
    expected, actual = _pair()
    d = EquivalenceChecker().compare(expected, actual).to_dict()
    assert d["passed"] is True
    assert d["comparisons"][0] == {"name": "age_conv3", "shape": [2, 3], "norm_inf": 0.0}

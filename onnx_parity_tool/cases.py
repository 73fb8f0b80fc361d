"""The (target x model) matrix validated by the test suite."""

from __future__ import annotations

import itertools
from typing import Iterable, Iterator, Optional, Sequence, Tuple

from .targets import Target, available_targets

MODEL_NAMES: Sequence[str] = (
    "age-gender-recognition-retail-0013",
    "face-person-detection-retail-0002",
    "head-pose-estimation-adas-0001",
    "person-detection-retail-0002",
    "vehicle-detection-adas-0002",
)


def iter_cases(
    targets: Optional[Iterable[Target]] = None,
    models: Iterable[str] = MODEL_NAMES,
) -> Iterator[Tuple[Target, str]]:
    """Cross product of targets and model names, targets outermost."""

    if targets is None:
        targets = available_targets()
    return itertools.product(list(targets), list(models))


def case_id(case: Tuple[Target, str]) -> str:
    target, model = case
    return f"{target.value}-{model}"


"""Synthetic input generation and tensor layout views.

Both runtimes must observe exactly the same input bits, so each tensor is a
single float32 buffer exposed through two views:

- ``canonical``: the declared shape, outer to inner (C order). The reference
  runner consumes this view.
- ``native``: every axis reversed. This is the dimension order the vendor
  runner is handed. It is a numpy view (``transpose``) of the same memory,
  so no copy is ever made between the two.

Reversing the axes is its own inverse, hence :func:`native_view` and
:func:`canonical_view` do the same thing; the two names only document the
direction at call sites.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Sequence, Tuple

import numpy as np

from .errors import ConfigurationError

TensorShape = Tuple[int, ...]


def validate_shape(shape: Iterable[int]) -> TensorShape:
    """Return ``shape`` as a tuple of positive ints or raise ConfigurationError."""

    try:
        dims = tuple(shape)
    except TypeError:
        raise ConfigurationError(f"Tensor shape must be a sequence of ints, got {shape!r}") from None

    if not dims:
        raise ConfigurationError("Tensor shape must not be empty")

    out = []
    for d in dims:
        if isinstance(d, (bool, np.bool_)) or not isinstance(d, (int, np.integer)):
            raise ConfigurationError(f"Tensor dims must be integers, got {dims!r}")
        if int(d) <= 0:
            raise ConfigurationError(f"Tensor dims must be strictly positive, got {dims!r}")
        out.append(int(d))
    return tuple(out)


def native_view(canonical: np.ndarray) -> np.ndarray:
    """Reversed-dimension view of a canonical array (no copy)."""
    return canonical.transpose()


def canonical_view(native: np.ndarray) -> np.ndarray:
    """Canonical view of a reversed-dimension array (no copy)."""
    return native.transpose()


@dataclass(frozen=True)
class GeneratedTensor:
    """One float32 buffer and its two layout views."""

    canonical: np.ndarray

    @property
    def native(self) -> np.ndarray:
        return native_view(self.canonical)

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self.canonical.shape)

    @property
    def size(self) -> int:
        return int(self.canonical.size)


def generate_tensor(shape: Sequence[int], rng: np.random.Generator) -> GeneratedTensor:
    """Fill a new float32 buffer with i.i.d. uniform values in [-1, 1).

    Values are drawn as float32 in [0, 1) and mapped with ``2 * x - 1``; both
    operations are exact in float32, so 1.0 can never appear.
    """

    dims = validate_shape(shape)
    buf = rng.random(dims, dtype=np.float32)
    buf *= np.float32(2.0)
    buf -= np.float32(1.0)
    return GeneratedTensor(canonical=buf)


def generate_inputs(shapes: Mapping[str, Sequence[int]], seed: int = 0) -> Dict[str, GeneratedTensor]:
    """Generate one tensor per input name.

    Names are visited in sorted order so a seed fixes every value regardless
    of the order in which a model declares its inputs.
    """

    rng = np.random.default_rng(int(seed))
    return {name: generate_tensor(shapes[name], rng) for name in sorted(shapes)}


def canonical_set(tensors: Mapping[str, GeneratedTensor]) -> Dict[str, np.ndarray]:
    return {name: t.canonical for name, t in tensors.items()}


def native_set(tensors: Mapping[str, GeneratedTensor]) -> Dict[str, np.ndarray]:
    return {name: t.native for name, t in tensors.items()}

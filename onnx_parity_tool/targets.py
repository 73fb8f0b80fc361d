"""Execution targets.

A :class:`Target` is the abstract execution intent a test case is
parameterized with (device class + numeric precision). It knows nothing
about onnxruntime; turning it into providers is the device resolver's job.
"""

from __future__ import annotations

import enum
import logging
from typing import List

from .errors import ConfigurationError

log = logging.getLogger(__name__)


class Target(enum.Enum):
    CPU = "cpu"
    GPU_FP32 = "gpu_fp32"
    GPU_FP16 = "gpu_fp16"
    ACCELERATOR = "accelerator"
    HETERO_ACCELERATOR_CPU = "hetero_accelerator_cpu"

    @property
    def precision(self) -> str:
        """Precision tag of the model files loaded for this target."""
        return "FP16" if self in _FP16_TARGETS else "FP32"

    @property
    def device_class(self) -> str:
        return _DEVICE_CLASSES[self]

    @property
    def exclusive(self) -> bool:
        """The device behind this target can only be opened by one session."""
        return self is Target.ACCELERATOR

    @property
    def uses_cpu_extensions(self) -> bool:
        return self in (Target.CPU, Target.HETERO_ACCELERATOR_CPU)

    @classmethod
    def parse(cls, text: str) -> "Target":
        key = str(text or "").strip().lower()
        for t in cls:
            if key in (t.value, t.name.lower()):
                return t
        raise ConfigurationError(f"Unknown target: {text!r}")

    def __str__(self) -> str:
        return self.value


_FP16_TARGETS = frozenset({Target.GPU_FP16, Target.ACCELERATOR})

_DEVICE_CLASSES = {
    Target.CPU: "CPU",
    Target.GPU_FP32: "GPU",
    Target.GPU_FP16: "GPU",
    Target.ACCELERATOR: "NPU",
    Target.HETERO_ACCELERATOR_CPU: "HETERO:NPU,CPU",
}


def _openvino_device_ids() -> List[str]:
    try:
        from onnxruntime.capi import _pybind_state  # type: ignore
    except ImportError:
        return []
    fn = getattr(_pybind_state, "get_available_openvino_device_ids", None)
    if fn is None:
        return []
    try:
        return [str(d) for d in fn()]
    except RuntimeError as e:
        log.debug("OpenVINO device enumeration failed: %s", e)
        return []


def available_targets() -> List[Target]:
    """Targets the installed onnxruntime build can serve on this host.

    Device enumeration order is not stable across drivers, so the result is
    always returned in enum order.
    """

    import onnxruntime as ort  # type: ignore

    providers = set(ort.get_available_providers())
    found: set[Target] = set()

    if "CPUExecutionProvider" in providers:
        found.add(Target.CPU)

    if "OpenVINOExecutionProvider" in providers:
        device_ids = {d.split(".")[0].upper() for d in _openvino_device_ids()}
        if "GPU" in device_ids:
            found.update({Target.GPU_FP32, Target.GPU_FP16})
        if "NPU" in device_ids:
            found.add(Target.ACCELERATOR)
            if "CPUExecutionProvider" in providers:
                found.add(Target.HETERO_ACCELERATOR_CPU)

    return [t for t in Target if t in found]

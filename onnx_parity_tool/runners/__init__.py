"""The two execution paths compared by the harness.

- ReferenceRunner: onnx's reference evaluator (one forward pass over the
  whole graph, outputs discovered from the topology).
- VendorRunner: onnxruntime driven object by object (reader, device,
  compiled session, I/O binding, synchronous run).

Both share nothing but the :class:`Runner` contract.
"""

from ._types import Layout, NamedTensorSet, Runner
from .reference import ReferenceRunner
from .vendor import VendorRunner

__all__ = [
    "Layout",
    "NamedTensorSet",
    "ReferenceRunner",
    "Runner",
    "VendorRunner",
]

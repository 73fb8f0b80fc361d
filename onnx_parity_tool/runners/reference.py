from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from ..devices.sessions import DeviceSession
from ..errors import ExecutionError
from ..model_store import ModelDescriptor
from ..onnx_utils import load_network, unconnected_output_names
from ..targets import Target
from ._types import NamedTensorSet

log = logging.getLogger(__name__)


class ReferenceRunner:
    """Baseline execution with ``onnx.reference.ReferenceEvaluator``.

    The evaluator always computes on the host in numpy; the target only
    decides which precision of the model files was resolved.
    """

    name = "reference"
    layout = "canonical"

    def __init__(self, verbose: int = 0) -> None:
        self.verbose = int(verbose)

    def execute(
        self,
        model: ModelDescriptor,
        target: Target,
        inputs: NamedTensorSet,
        session: Optional[DeviceSession] = None,
    ) -> NamedTensorSet:
        from onnx.reference import ReferenceEvaluator

        try:
            network = load_network(model.topology_path, model.weights_path)
            out_names: List[str] = unconnected_output_names(network)
            evaluator = ReferenceEvaluator(network, verbose=self.verbose)
        except Exception as e:
            raise ExecutionError(f"Failed to load reference graph '{model.name}': {e}") from e

        log.debug("Reference graph %s on %s: outputs=%s", model.name, target, out_names)

        feeds = {name: np.asarray(arr) for name, arr in inputs.items()}
        try:
            outs = evaluator.run(out_names, feeds)
        except Exception as e:
            raise ExecutionError(f"Reference forward pass failed for '{model.name}': {e}") from e

        if len(outs) != len(out_names):
            raise ExecutionError(
                f"Reference forward pass returned {len(outs)} tensors for {len(out_names)} outputs"
            )

        result: NamedTensorSet = {}
        for name, arr in zip(out_names, outs):
            if name in result:
                raise ExecutionError(f"Duplicate output name '{name}' in reference graph")
            result[name] = np.asarray(arr)
        return result

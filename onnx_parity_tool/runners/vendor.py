from __future__ import annotations

import logging
from typing import Any, List, Optional

import numpy as np

from ..devices.extensions import ExtensionLoader
from ..devices.resolver import Device, DeviceResolver
from ..devices.sessions import DeviceSession
from ..errors import ExecutionError
from ..model_store import ModelDescriptor
from ..onnx_utils import NetworkReader
from ..targets import Target
from ..tensors import canonical_view, generate_tensor, native_view
from ._types import NamedTensorSet

log = logging.getLogger(__name__)


def _static_dims(shape: Any) -> Optional[List[int]]:
    dims = list(shape or [])
    if not dims or not all(isinstance(d, int) and d > 0 for d in dims):
        return None
    return dims


def _bindable(native: np.ndarray) -> np.ndarray:
    """Canonical, C-contiguous float32 array backing ``native``.

    For views produced by the tensor generator this is the original buffer.
    Anything else is copied once, since the runtime reads raw memory.
    """

    arr = canonical_view(np.asarray(native))
    if arr.dtype != np.float32 or not arr.flags.c_contiguous:
        log.debug("Copying input of shape %s (%s) into a contiguous float32 buffer", arr.shape, arr.dtype)
        arr = np.ascontiguousarray(arr, dtype=np.float32)
    return arr


class VendorRunner:
    """onnxruntime driven through explicit objects.

    reader -> device (+ extensions) -> compiled session -> I/O binding
    (the inference request) -> synchronous run. Inputs arrive in native
    (reversed-dimension) layout and outputs are returned the same way; output
    memory is allocated here and written in place by the runtime.
    """

    name = "vendor"
    layout = "native"

    def __init__(
        self,
        resolver: Optional[DeviceResolver] = None,
        extension_loader: Optional[ExtensionLoader] = None,
        output_seed: int = 0,
    ) -> None:
        self.resolver = resolver or DeviceResolver()
        self.extension_loader = extension_loader or ExtensionLoader()
        self.output_seed = int(output_seed)

    def execute(
        self,
        model: ModelDescriptor,
        target: Target,
        inputs: NamedTensorSet,
        session: Optional[DeviceSession] = None,
    ) -> NamedTensorSet:
        device: Optional[Device] = None
        attached = False
        try:
            try:
                reader = NetworkReader()
                reader.read_topology(model.topology_path)
                reader.read_weights(model.weights_path)
                network = reader.get_network()

                device = self.resolver.resolve(target)
                if session is not None:
                    session.attach(device)
                    attached = True
                self.extension_loader.load(device)

                compiled = device.load_network(network)
                request = compiled.io_binding()
            except ExecutionError:
                raise
            except Exception as e:
                raise ExecutionError(
                    f"Failed to initialize vendor runtime for '{model.name}' on {target}: {e}"
                ) from e

            return self._infer(model, target, compiled, request, inputs)
        finally:
            # Devices attached to a session are released together with it.
            if device is not None and not attached:
                device.release()

    def _infer(
        self,
        model: ModelDescriptor,
        target: Target,
        compiled: Any,
        request: Any,
        inputs: NamedTensorSet,
    ) -> NamedTensorSet:
        declared_inputs = [i.name for i in compiled.get_inputs()]
        missing = [n for n in declared_inputs if n not in inputs]
        if missing:
            raise ExecutionError(f"Missing inputs for '{model.name}': {missing}")

        # Every bound buffer must stay referenced until the run has finished.
        bound: List[np.ndarray] = []
        outputs: NamedTensorSet = {}
        output_names: List[str] = []
        runtime_allocated: List[str] = []
        try:
            for name in declared_inputs:
                buf = _bindable(inputs[name])
                request.bind_input(name, "cpu", 0, np.float32, list(buf.shape), buf.ctypes.data)
                bound.append(buf)

            rng = np.random.default_rng(self.output_seed)
            for out in compiled.get_outputs():
                output_names.append(out.name)
                dims = _static_dims(out.shape)
                if dims is None or out.type != "tensor(float)":
                    request.bind_output(out.name, "cpu")
                    runtime_allocated.append(out.name)
                    continue
                t = generate_tensor(dims, rng)
                request.bind_output(out.name, "cpu", 0, np.float32, list(t.shape), t.canonical.ctypes.data)
                bound.append(t.canonical)
                outputs[out.name] = t.native

            compiled.run_with_iobinding(request)

            if runtime_allocated:
                values = request.copy_outputs_to_cpu()
                for name, value in zip(output_names, values):
                    if name in runtime_allocated:
                        outputs[name] = native_view(np.asarray(value))
        except Exception as e:
            raise ExecutionError(f"Vendor inference failed for '{model.name}' on {target}: {e}") from e

        log.debug("Vendor run %s on %s: outputs=%s", model.name, target, output_names)
        return {name: outputs[name] for name in output_names}

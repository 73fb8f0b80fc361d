from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError
from ..targets import Target

log = logging.getLogger(__name__)

CPU_PROVIDER = "CPUExecutionProvider"
OPENVINO_PROVIDER = "OpenVINOExecutionProvider"


@dataclass
class Device:
    """A resolved execution context for one test case.

    ``providers``/``provider_options`` are handed to onnxruntime unchanged;
    extensions are registered on ``session_options`` before any network is
    loaded. Devices are never cached or shared between cases.
    """

    target: Target
    device_class: str
    providers: List[str]
    provider_options: List[Dict[str, str]]
    session_options: Any
    extensions: List[str] = field(default_factory=list)
    _sessions: List[Any] = field(default_factory=list, repr=False)
    released: bool = False

    def add_extension(self, library: str) -> None:
        self.session_options.register_custom_ops_library(library)
        self.extensions.append(library)

    def load_network(self, network: Any) -> Any:
        """Compile ``network`` (ModelProto or serialized bytes) onto this device."""

        import onnxruntime as ort  # type: ignore

        if self.released:
            raise RuntimeError(f"Device {self.device_class} was already released")

        payload = network if isinstance(network, (bytes, bytearray)) else network.SerializeToString()
        sess = ort.InferenceSession(
            payload,
            sess_options=self.session_options,
            providers=self.providers,
            provider_options=self.provider_options,
        )
        self._sessions.append(sess)
        return sess

    def release(self) -> None:
        # Dropping the last reference frees the runtime session (and the device).
        self._sessions.clear()
        self.released = True


def _provider_table(target: Target) -> List[tuple[str, Dict[str, str]]]:
    if target is Target.CPU:
        return [(CPU_PROVIDER, {})]
    if target in (Target.GPU_FP32, Target.GPU_FP16):
        return [(OPENVINO_PROVIDER, {"device_type": "GPU", "precision": target.precision})]
    if target is Target.ACCELERATOR:
        return [(OPENVINO_PROVIDER, {"device_type": "NPU", "precision": target.precision})]
    if target is Target.HETERO_ACCELERATOR_CPU:
        # Nodes the accelerator cannot take are assigned to the CPU provider.
        return [
            (OPENVINO_PROVIDER, {"device_type": target.device_class}),
            (CPU_PROVIDER, {}),
        ]
    raise ConfigurationError(f"Unknown target: {target!r}")


class DeviceResolver:
    """Maps a :class:`Target` to a fresh :class:`Device`."""

    def __init__(self, available_providers: Optional[List[str]] = None) -> None:
        # None means "ask onnxruntime at resolve time".
        self._available = None if available_providers is None else list(available_providers)

    def _available_providers(self) -> List[str]:
        if self._available is not None:
            return self._available
        import onnxruntime as ort  # type: ignore

        return list(ort.get_available_providers())

    def resolve(self, target: Target) -> Device:
        if not isinstance(target, Target):
            raise ConfigurationError(f"Unknown target: {target!r}")

        table = _provider_table(target)
        available = self._available_providers()
        missing = [p for p, _ in table if p not in available]
        if missing:
            raise ConfigurationError(
                f"Target '{target}' needs {missing}, available providers: {available}"
            )

        import onnxruntime as ort  # type: ignore

        device = Device(
            target=target,
            device_class=target.device_class,
            providers=[p for p, _ in table],
            provider_options=[dict(o) for _, o in table],
            session_options=ort.SessionOptions(),
        )
        log.debug("Resolved target %s -> %s %s", target, device.providers, device.provider_options)
        return device

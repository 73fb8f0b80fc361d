from __future__ import annotations

from typing import Dict, Literal, Optional, Protocol

import numpy as np

from ..devices.sessions import DeviceSession
from ..model_store import ModelDescriptor
from ..targets import Target

NamedTensorSet = Dict[str, np.ndarray]

Layout = Literal["canonical", "native"]


class Runner(Protocol):
    """Execution contract shared by both runtimes.

    ``layout`` says which dimension order the runner expects its inputs in
    and returns its outputs in. ``session`` owns any device the runner opens;
    runners that never touch a device ignore it.
    """

    name: str
    layout: Layout

    def execute(
        self,
        model: ModelDescriptor,
        target: Target,
        inputs: NamedTensorSet,
        session: Optional[DeviceSession] = None,
    ) -> NamedTensorSet: ...

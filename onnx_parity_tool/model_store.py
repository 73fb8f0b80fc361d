"""Locating model files on disk.

Models are stored as a topology file plus an external weight blob:

    <root>/<subdir>/<modelName>/<PRECISION>/<modelName>.onnx
    <root>/<subdir>/<modelName>/<PRECISION>/<modelName>.bin

Roots come from a search path. The external data root named by
``ONNX_PARITY_DATA_ROOT`` is appended at most once per process.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .config import DEFAULT_MODELS_SUBDIR, HarnessConfig
from .errors import ModelNotFoundError
from .targets import Target

log = logging.getLogger(__name__)

DATA_ROOT_ENV = "ONNX_PARITY_DATA_ROOT"

TOPOLOGY_SUFFIX = ".onnx"
WEIGHTS_SUFFIX = ".bin"


@dataclass(frozen=True)
class ModelDescriptor:
    name: str
    precision: str
    topology_path: Path
    weights_path: Path


class DataSearchPath:
    """Ordered list of directories searched for data files."""

    def __init__(self, roots: Iterable[Union[str, Path]] = ()) -> None:
        self._roots: List[Path] = []
        for r in roots:
            self.add(r)

    @property
    def roots(self) -> List[Path]:
        return list(self._roots)

    def add(self, root: Union[str, Path]) -> None:
        p = Path(root).expanduser()
        if p not in self._roots:
            self._roots.append(p)

    def find(self, relative: Union[str, Path]) -> Optional[Path]:
        for root in self._roots:
            candidate = root / relative
            if candidate.is_file():
                return candidate
        return None


_search_path = DataSearchPath()
_env_root_added = False


def init_data_search_path(config: Optional[HarnessConfig] = None) -> DataSearchPath:
    """Populate the process-wide search path.

    The environment root is appended only on the first call; config roots
    are de-duplicated by :meth:`DataSearchPath.add`.
    """

    global _env_root_added

    if config is not None:
        for r in config.data_roots:
            _search_path.add(r)

    if not _env_root_added:
        env_root = os.environ.get(DATA_ROOT_ENV)
        if env_root:
            _search_path.add(env_root)
            log.debug("Added %s=%s to the data search path", DATA_ROOT_ENV, env_root)
        _env_root_added = True

    return _search_path


def model_prefix(name: str, precision: str, subdir: str = DEFAULT_MODELS_SUBDIR) -> Path:
    prefix = Path(name) / precision / name
    return Path(subdir) / prefix if subdir else prefix


def resolve_model(
    name: str,
    target: Target,
    search_path: Optional[DataSearchPath] = None,
    subdir: str = DEFAULT_MODELS_SUBDIR,
) -> ModelDescriptor:
    """Find the topology and weights of ``name`` for ``target``'s precision."""

    sp = search_path if search_path is not None else _search_path
    prefix = model_prefix(name, target.precision, subdir)
    topology_rel = prefix.with_name(prefix.name + TOPOLOGY_SUFFIX)
    weights_rel = prefix.with_name(prefix.name + WEIGHTS_SUFFIX)

    topology = sp.find(topology_rel)
    weights = sp.find(weights_rel)
    missing = [str(rel) for rel, found in ((topology_rel, topology), (weights_rel, weights)) if found is None]
    if missing:
        roots = ", ".join(str(r) for r in sp.roots) or "<empty>"
        raise ModelNotFoundError(f"Model files not found: {missing} (searched: {roots})")

    return ModelDescriptor(name=name, precision=target.precision, topology_path=topology, weights_path=weights)

"""ONNX graph helpers shared by both runners.

Includes:
- NetworkReader (topology file + external weight blob -> ModelProto)
- declared input shapes (initializers excluded)
- topology-based output discovery (tensors nobody consumes)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import onnx
from onnx import AttributeProto, external_data_helper

from .errors import ConfigurationError
from .tensors import TensorShape, validate_shape

log = logging.getLogger(__name__)


# ---------------------------- ValueInfo helpers ----------------------------

def shape_from_vi(vi) -> Optional[List[Optional[int]]]:
    if vi is None or not vi.type.HasField("tensor_type"):
        return None
    shp: List[Optional[int]] = []
    for d in vi.type.tensor_type.shape.dim:
        shp.append(int(d.dim_value) if d.HasField("dim_value") else None)
    return shp


def declared_inputs(model: onnx.ModelProto) -> List[onnx.ValueInfoProto]:
    """Graph inputs that must be fed (initializer-backed inputs excluded)."""
    init_names = {i.name for i in model.graph.initializer}
    return [vi for vi in model.graph.input if vi.name not in init_names]


def input_shapes(model: onnx.ModelProto) -> Dict[str, TensorShape]:
    """Concrete shapes of the declared inputs.

    A symbolic leading (batch) dim becomes 1. Any other unknown dim makes the
    shape malformed.
    """

    shapes: Dict[str, TensorShape] = {}
    for vi in declared_inputs(model):
        shape = shape_from_vi(vi)
        if shape is None:
            raise ConfigurationError(f"Input '{vi.name}' is not a tensor")
        dims = list(shape)
        if dims and (dims[0] is None or dims[0] == 0):
            dims[0] = 1
        if any(d is None for d in dims):
            raise ConfigurationError(f"Input '{vi.name}' has unresolved dims: {shape}")
        shapes[vi.name] = validate_shape(dims)
    return shapes


# ---------------------------- Topology ----------------------------

def _subgraph_inputs(node: onnx.NodeProto) -> Iterable[str]:
    # Control-flow bodies may read outer-scope tensors without listing them.
    for attr in node.attribute:
        graphs = []
        if attr.type == AttributeProto.GRAPH:
            graphs.append(attr.g)
        elif attr.type == AttributeProto.GRAPHS:
            graphs.extend(attr.graphs)
        for g in graphs:
            for sub in g.node:
                yield from sub.input
                yield from _subgraph_inputs(sub)


def node_output_names(model: onnx.ModelProto) -> List[str]:
    """Every tensor produced by a node, in node order."""
    return [out for node in model.graph.node for out in node.output if out]


def unconnected_output_indices(model: onnx.ModelProto) -> List[int]:
    """Indices into :func:`node_output_names` of tensors with no consumer."""

    consumed: Dict[str, int] = defaultdict(int)
    for node in model.graph.node:
        for name in node.input:
            if name:
                consumed[name] += 1
        for name in _subgraph_inputs(node):
            if name:
                consumed[name] += 1

    return [i for i, name in enumerate(node_output_names(model)) if consumed.get(name, 0) == 0]


def unconnected_output_names(model: onnx.ModelProto) -> List[str]:
    names = node_output_names(model)
    return [names[i] for i in unconnected_output_indices(model)]


# ---------------------------- Reading ----------------------------

def _all_tensors(graph: onnx.GraphProto) -> Iterable[onnx.TensorProto]:
    yield from graph.initializer
    for node in graph.node:
        for attr in node.attribute:
            if attr.type == AttributeProto.TENSOR:
                yield attr.t
            elif attr.type == AttributeProto.TENSORS:
                yield from attr.tensors
            elif attr.type == AttributeProto.GRAPH:
                yield from _all_tensors(attr.g)
            elif attr.type == AttributeProto.GRAPHS:
                for g in attr.graphs:
                    yield from _all_tensors(g)


class NetworkReader:
    """Builds an in-memory network from a topology file and a weight blob.

    The topology is parsed without external data; every external tensor is
    then pointed at the given weights file before the blob is read, so the
    blob that ends up in the network is always the one the caller passed.
    """

    def __init__(self) -> None:
        self._model: Optional[onnx.ModelProto] = None
        self._weights_loaded = False

    def read_topology(self, path: Union[str, Path]) -> None:
        self._model = onnx.load(str(path), load_external_data=False)
        self._weights_loaded = False

    def read_weights(self, path: Union[str, Path]) -> None:
        if self._model is None:
            raise RuntimeError("read_topology() must be called before read_weights()")

        weights = Path(path)
        external = [t for t in _all_tensors(self._model.graph) if external_data_helper.uses_external_data(t)]
        if not external:
            log.debug("Topology has no external tensors; weights file %s is unused", weights)
        for tensor in external:
            for entry in tensor.external_data:
                if entry.key == "location":
                    entry.value = weights.name

        external_data_helper.load_external_data_for_model(self._model, str(weights.parent))
        self._weights_loaded = True

    def get_network(self) -> onnx.ModelProto:
        if self._model is None or not self._weights_loaded:
            raise RuntimeError("Network is incomplete: read topology and weights first")
        return self._model


def load_network(topology_path: Union[str, Path], weights_path: Union[str, Path]) -> onnx.ModelProto:
    reader = NetworkReader()
    reader.read_topology(topology_path)
    reader.read_weights(weights_path)
    return reader.get_network()

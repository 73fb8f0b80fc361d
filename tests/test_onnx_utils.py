from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

onnx = pytest.importorskip("onnx")
from onnx import TensorProto, helper, numpy_helper

from conftest import write_tiny_model
from onnx_parity_tool.errors import ConfigurationError
from onnx_parity_tool.onnx_utils import (
    NetworkReader,
    input_shapes,
    load_network,
    node_output_names,
    unconnected_output_indices,
    unconnected_output_names,
)


def test_unconnected_outputs_follow_topology(tmp_path: Path) -> None:
    path = write_tiny_model(tmp_path / "m.onnx")
    model = onnx.load(str(path), load_external_data=False)

    assert node_output_names(model) == ["scaled", "age_conv3", "prob"]
    assert unconnected_output_indices(model) == [1, 2]
    assert unconnected_output_names(model) == ["age_conv3", "prob"]


def test_dangling_intermediate_counts_as_output() -> None:
    x = helper.make_tensor_value_info("x", TensorProto.FLOAT, [1, 2])
    y = helper.make_tensor_value_info("y", TensorProto.FLOAT, [1, 2])
    nodes = [
        helper.make_node("Relu", ["x"], ["y"]),
        helper.make_node("Neg", ["x"], ["debug"]),
    ]
    model = helper.make_model(helper.make_graph(nodes, "g", [x], [y]))
    assert unconnected_output_names(model) == ["y", "debug"]


def test_input_shapes_skip_initializers_and_fix_batch(tmp_path: Path) -> None:
    x = helper.make_tensor_value_info("x", TensorProto.FLOAT, ["N", 3, 4])
    w_vi = helper.make_tensor_value_info("w", TensorProto.FLOAT, [3, 4])
    y = helper.make_tensor_value_info("y", TensorProto.FLOAT, ["N", 3, 4])
    w = helper.make_tensor("w", TensorProto.FLOAT, [3, 4], [1.0] * 12)
    graph = helper.make_graph([helper.make_node("Add", ["x", "w"], ["y"])], "g", [x, w_vi], [y], initializer=[w])
    model = helper.make_model(graph)

    assert input_shapes(model) == {"x": (1, 3, 4)}


def test_input_shapes_reject_inner_symbolic_dims() -> None:
    x = helper.make_tensor_value_info("x", TensorProto.FLOAT, [1, "C", 4])
    y = helper.make_tensor_value_info("y", TensorProto.FLOAT, [1, "C", 4])
    model = helper.make_model(helper.make_graph([helper.make_node("Relu", ["x"], ["y"])], "g", [x], [y]))
    with pytest.raises(ConfigurationError):
        input_shapes(model)


def test_reader_uses_the_given_weights_file(tmp_path: Path) -> None:
    path = write_tiny_model(tmp_path / "m.onnx")
    renamed = tmp_path / "other" / "weights.bin"
    renamed.parent.mkdir()
    (tmp_path / "m.bin").rename(renamed)

    model = load_network(path, renamed)
    scale = {i.name: i for i in model.graph.initializer}["scale"]
    np.testing.assert_array_equal(numpy_helper.to_array(scale), np.full((1, 3, 1, 1), 0.5, np.float32))


def test_reader_requires_topology_first(tmp_path: Path) -> None:
    reader = NetworkReader()
    with pytest.raises(RuntimeError):
        reader.read_weights(tmp_path / "m.bin")
    with pytest.raises(RuntimeError):
        reader.get_network()

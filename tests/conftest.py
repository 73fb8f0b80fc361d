from __future__ import annotations

from pathlib import Path

import pytest

AGE_GENDER = "age-gender-recognition-retail-0013"


def write_tiny_model(path: Path, input_shape=(1, 3, 62, 62)) -> Path:
    """Two-output model using only ops that are exact in float32.

    data -> Mul(scale) -> scaled -> Add(bias) -> age_conv3
                                 -> Relu       -> prob

    Weights are stored in ``<stem>.bin`` next to the topology.
    """

    onnx = pytest.importorskip("onnx")
    import numpy as np
    from onnx import TensorProto, helper, numpy_helper

    channels = input_shape[1]
    data = helper.make_tensor_value_info("data", TensorProto.FLOAT, list(input_shape))
    age = helper.make_tensor_value_info("age_conv3", TensorProto.FLOAT, list(input_shape))
    prob = helper.make_tensor_value_info("prob", TensorProto.FLOAT, list(input_shape))

    scale = numpy_helper.from_array(np.full((1, channels, 1, 1), 0.5, dtype=np.float32), name="scale")
    bias = numpy_helper.from_array(np.full((1, channels, 1, 1), 0.25, dtype=np.float32), name="bias")

    nodes = [
        helper.make_node("Mul", ["data", "scale"], ["scaled"], name="mul"),
        helper.make_node("Add", ["scaled", "bias"], ["age_conv3"], name="add"),
        helper.make_node("Relu", ["scaled"], ["prob"], name="relu"),
    ]
    graph = helper.make_graph(nodes, "tiny", [data], [age, prob], initializer=[scale, bias])
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 8

    path.parent.mkdir(parents=True, exist_ok=True)
    onnx.save_model(
        model,
        str(path),
        save_as_external_data=True,
        all_tensors_to_one_file=True,
        location=path.stem + ".bin",
        size_threshold=0,
    )
    return path


@pytest.fixture
def model_root(tmp_path: Path) -> Path:
    """Data root holding the tiny model as both precisions of AGE_GENDER."""

    root = tmp_path / "data"
    for precision in ("FP32", "FP16"):
        write_tiny_model(root / "intel_models" / AGE_GENDER / precision / f"{AGE_GENDER}.onnx")
    return root


@pytest.fixture
def descriptor(model_root: Path):
    from onnx_parity_tool.model_store import DataSearchPath, resolve_model
    from onnx_parity_tool.targets import Target

    return resolve_model(AGE_GENDER, Target.CPU, DataSearchPath([model_root]))

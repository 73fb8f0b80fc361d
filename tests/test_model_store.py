from __future__ import annotations

from pathlib import Path

import pytest

from onnx_parity_tool import model_store
from onnx_parity_tool.config import HarnessConfig
from onnx_parity_tool.errors import ConfigurationError, ModelNotFoundError
from onnx_parity_tool.model_store import DataSearchPath, model_prefix, resolve_model
from onnx_parity_tool.targets import Target


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path


def test_resolve_uses_precision_of_target(tmp_path: Path) -> None:
    base = tmp_path / "intel_models" / "m"
    _touch(base / "FP32" / "m.onnx")
    _touch(base / "FP32" / "m.bin")
    _touch(base / "FP16" / "m.onnx")
    _touch(base / "FP16" / "m.bin")
    sp = DataSearchPath([tmp_path])

    cpu = resolve_model("m", Target.CPU, sp)
    assert cpu.precision == "FP32"
    assert cpu.topology_path == base / "FP32" / "m.onnx"
    assert cpu.weights_path == base / "FP32" / "m.bin"

    for t in (Target.GPU_FP16, Target.ACCELERATOR):
        d = resolve_model("m", t, sp)
        assert d.precision == "FP16"
        assert d.topology_path.parent.name == "FP16"

    hetero = resolve_model("m", Target.HETERO_ACCELERATOR_CPU, sp)
    assert hetero.topology_path == base / "FP32" / "m.onnx"


def test_first_root_wins(tmp_path: Path) -> None:
    for root in ("r1", "r2"):
        _touch(tmp_path / root / "zoo" / "m" / "FP32" / "m.onnx")
        _touch(tmp_path / root / "zoo" / "m" / "FP32" / "m.bin")
    sp = DataSearchPath([tmp_path / "r1", tmp_path / "r2"])
    d = resolve_model("m", Target.CPU, sp, subdir="zoo")
    assert str(d.topology_path).startswith(str(tmp_path / "r1"))


def test_missing_weights_is_a_configuration_error(tmp_path: Path) -> None:
    _touch(tmp_path / "intel_models" / "m" / "FP32" / "m.onnx")
    with pytest.raises(ModelNotFoundError) as ei:
        resolve_model("m", Target.CPU, DataSearchPath([tmp_path]))
    assert isinstance(ei.value, ConfigurationError)
    assert "m.bin" in str(ei.value)


def test_model_prefix_layout() -> None:
    assert model_prefix("m", "FP16") == Path("intel_models") / "m" / "FP16" / "m"
    assert model_prefix("m", "FP32", subdir="") == Path("m") / "FP32" / "m"


def test_search_path_deduplicates(tmp_path: Path) -> None:
    sp = DataSearchPath([tmp_path, tmp_path])
    sp.add(tmp_path)
    assert sp.roots == [tmp_path]


def test_env_root_is_added_once_per_process(tmp_path: Path, monkeypatch) -> None:
    sp = DataSearchPath()
    monkeypatch.setattr(model_store, "_search_path", sp)
    monkeypatch.setattr(model_store, "_env_root_added", False)
    monkeypatch.setenv(model_store.DATA_ROOT_ENV, str(tmp_path / "first"))

    model_store.init_data_search_path()
    monkeypatch.setenv(model_store.DATA_ROOT_ENV, str(tmp_path / "second"))
    model_store.init_data_search_path(HarnessConfig(data_roots=(tmp_path / "cfg",)))

    assert sp.roots == [tmp_path / "first", tmp_path / "cfg"]

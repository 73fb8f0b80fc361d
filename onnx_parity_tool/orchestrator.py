"""Drives one validation case end to end.

    INIT -> INPUTS_GENERATED -> BOTH_EXECUTED -> COMPARED -> DONE
      \\________________________________________________/
                          FAILED

Inputs are generated once and the same buffers are handed to both runners.
Before the exclusive accelerator is used, any session still holding it is
released. The orchestrator never raises: errors are stored unmodified on
the :class:`CaseResult`, and ``raise_for_status()`` re-raises them.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import onnx

from .artifacts import report_filename, write_report
from .checker import EquivalenceChecker, Verdict
from .config import HarnessConfig
from .devices.extensions import ExtensionLoader
from .devices.sessions import DeviceSession, DeviceSessionRegistry, default_registry
from .errors import ExecutionError
from .log_utils import sanitize_log
from .model_store import DataSearchPath, ModelDescriptor, init_data_search_path, resolve_model
from .onnx_utils import input_shapes
from .runners import NamedTensorSet, ReferenceRunner, Runner, VendorRunner
from .targets import Target
from .tensors import GeneratedTensor, canonical_set, canonical_view, generate_inputs, native_set

log = logging.getLogger(__name__)


class CaseState(str, enum.Enum):
    INIT = "init"
    INPUTS_GENERATED = "inputs_generated"
    BOTH_EXECUTED = "both_executed"
    COMPARED = "compared"
    DONE = "done"
    FAILED = "failed"


_NEXT_STATE = {
    CaseState.INIT: CaseState.INPUTS_GENERATED,
    CaseState.INPUTS_GENERATED: CaseState.BOTH_EXECUTED,
    CaseState.BOTH_EXECUTED: CaseState.COMPARED,
    CaseState.COMPARED: CaseState.DONE,
}


@dataclass
class CaseResult:
    model_name: str
    target: Union[Target, str]
    state: CaseState = CaseState.INIT
    history: List[CaseState] = field(default_factory=lambda: [CaseState.INIT])
    input_shapes: Dict[str, List[int]] = field(default_factory=dict)
    verdict: Optional[Verdict] = None
    error: Optional[BaseException] = None

    def advance(self, state: CaseState) -> None:
        expected = _NEXT_STATE.get(self.state)
        if state is not expected:
            raise RuntimeError(f"Illegal transition {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def fail(self, error: BaseException) -> None:
        self.error = error
        self.verdict = None
        self.state = CaseState.FAILED
        self.history.append(CaseState.FAILED)

    @property
    def passed(self) -> bool:
        return self.state is CaseState.DONE and self.verdict is not None and self.verdict.passed

    def raise_for_status(self) -> None:
        if self.error is not None:
            raise self.error
        if self.verdict is None:
            raise RuntimeError(f"Case {self.model_name}/{self.target} has no verdict (state={self.state.value})")
        self.verdict.raise_for_failures()

    def summary(self) -> str:
        head = f"{self.model_name} [{self.target}]"
        if self.error is not None:
            return f"{head} FAILED: {type(self.error).__name__}: {sanitize_log(str(self.error))}"
        if self.verdict is None:
            return f"{head} {self.state.value}"
        if not self.verdict.structural_ok:
            return f"{head} STRUCTURAL MISMATCH: {self.verdict.structural_names()}"
        parts = ", ".join(f"{c.name}={c.norm_inf!r}" for c in self.verdict.comparisons)
        return f"{head} {'PASS' if self.verdict.passed else 'DIVERGED'} (normInf: {parts})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model_name,
            "target": str(self.target),
            "state": self.state.value,
            "history": [s.value for s in self.history],
            "input_shapes": self.input_shapes,
            "passed": self.passed,
            "verdict": None if self.verdict is None else self.verdict.to_dict(),
            "error": None
            if self.error is None
            else {"type": type(self.error).__name__, "message": sanitize_log(str(self.error))},
        }


class ValidationOrchestrator:
    def __init__(
        self,
        reference: Optional[Runner] = None,
        vendor: Optional[Runner] = None,
        checker: Optional[EquivalenceChecker] = None,
        registry: Optional[DeviceSessionRegistry] = None,
        config: Optional[HarnessConfig] = None,
        search_path: Optional[DataSearchPath] = None,
    ) -> None:
        self.config = config if config is not None else HarnessConfig.from_env()
        self.search_path = search_path if search_path is not None else init_data_search_path(self.config)
        self.reference = reference or ReferenceRunner()
        self.vendor = vendor or VendorRunner(
            extension_loader=ExtensionLoader(search_dirs=self.config.extension_dirs),
            output_seed=self.config.seed + 1,
        )
        self.checker = checker or EquivalenceChecker()
        self.registry = registry if registry is not None else default_registry()

    # -- steps ---------------------------------------------------------------

    def resolve(self, model_name: str, target: Target) -> ModelDescriptor:
        return resolve_model(model_name, target, self.search_path, self.config.models_subdir)

    def generate_inputs(self, model: ModelDescriptor) -> Dict[str, GeneratedTensor]:
        try:
            topology = onnx.load(str(model.topology_path), load_external_data=False)
        except Exception as e:
            raise ExecutionError(f"Failed to parse topology {model.topology_path}: {e}") from e
        return generate_inputs(input_shapes(topology), seed=self.config.seed)

    def acquire_session(self, target: Target) -> DeviceSession:
        if target.exclusive:
            # The device cannot be opened twice; drop any stale holder first.
            self.registry.reset(target)
        return self.registry.acquire(target)

    def _execute(
        self,
        runner: Runner,
        model: ModelDescriptor,
        target: Target,
        inputs: Dict[str, GeneratedTensor],
        session: DeviceSession,
    ) -> NamedTensorSet:
        """Run ``runner`` in its own layout and return canonical outputs."""

        if runner.layout == "canonical":
            return runner.execute(model, target, canonical_set(inputs), session=session)
        outputs = runner.execute(model, target, native_set(inputs), session=session)
        return {name: canonical_view(arr) for name, arr in outputs.items()}

    # -- driver --------------------------------------------------------------

    def run_case(self, model_name: str, target: Union[Target, str]) -> CaseResult:
        result = CaseResult(model_name=model_name, target=target)
        session: Optional[DeviceSession] = None
        try:
            if not isinstance(target, Target):
                target = Target.parse(target)
                result.target = target

            model = self.resolve(model_name, target)
            inputs = self.generate_inputs(model)
            result.input_shapes = {n: list(t.shape) for n, t in inputs.items()}
            result.advance(CaseState.INPUTS_GENERATED)

            session = self.acquire_session(target)
            actual = self._execute(self.reference, model, target, inputs, session)
            expected = self._execute(self.vendor, model, target, inputs, session)
            result.advance(CaseState.BOTH_EXECUTED)

            result.verdict = self.checker.compare(expected, actual)
            result.advance(CaseState.COMPARED)

            self.emit(result)
            result.advance(CaseState.DONE)
        except Exception as e:
            result.fail(e)
            log.error("%s", result.summary())
        finally:
            if session is not None:
                session.release()

        self._write_report(result)
        return result

    def run_cases(self, cases: Iterable[Tuple[Union[Target, str], str]]) -> List[CaseResult]:
        """Run (target, model) cases one after another."""
        return [self.run_case(model_name, target) for target, model_name in cases]

    def emit(self, result: CaseResult) -> None:
        verdict = result.verdict
        if verdict is None:
            return
        if verdict.passed:
            log.info("%s", result.summary())
        else:
            log.error("%s", result.summary())
        for c in verdict.comparisons:
            log.debug("  %s shape=%s normInf=%r", c.name, c.shape, c.norm_inf)

    def _write_report(self, result: CaseResult) -> Optional[Path]:
        if self.config.report_dir is None:
            return None
        path = self.config.report_dir / report_filename(result.model_name, str(result.target))
        try:
            return write_report(path, result.to_dict())
        except (OSError, TypeError, ValueError) as e:
            # A lost report must not turn a verdict into a failure.
            log.warning("Could not write case report %s: %s", path, e)
            return None

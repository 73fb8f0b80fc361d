"""Cross-runtime parity harness for ONNX models.

Runs a model through onnx's reference evaluator and through onnxruntime on
a chosen target, on identical synthetic inputs, and checks that every
output matches exactly.
"""

from .cases import MODEL_NAMES, iter_cases
from .checker import EquivalenceChecker, OutputComparison, Verdict
from .config import HarnessConfig
from .errors import (
    ConfigurationError,
    DeviceBusyError,
    ExecutionError,
    ModelNotFoundError,
    NumericDivergence,
    ParityError,
    ResourceUnavailableError,
    StructuralMismatch,
    VerdictError,
)
from .model_store import ModelDescriptor, resolve_model
from .orchestrator import CaseResult, CaseState, ValidationOrchestrator
from .targets import Target, available_targets
from .tensors import GeneratedTensor, generate_inputs, generate_tensor

__version__ = "0.1.0"

__all__ = [
    "CaseResult",
    "CaseState",
    "ConfigurationError",
    "DeviceBusyError",
    "EquivalenceChecker",
    "ExecutionError",
    "GeneratedTensor",
    "HarnessConfig",
    "MODEL_NAMES",
    "ModelDescriptor",
    "ModelNotFoundError",
    "NumericDivergence",
    "OutputComparison",
    "ParityError",
    "ResourceUnavailableError",
    "StructuralMismatch",
    "Target",
    "ValidationOrchestrator",
    "Verdict",
    "VerdictError",
    "available_targets",
    "generate_inputs",
    "generate_tensor",
    "iter_cases",
    "resolve_model",
]

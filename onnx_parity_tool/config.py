"""Harness configuration.

All knobs come from environment variables so the same test suite can run
unchanged on developer machines and on hardware CI hosts:

  ONNX_PARITY_DATA_PATH       extra model roots (os.pathsep separated)
  ONNX_PARITY_MODELS_SUBDIR   directory below each root holding the models
  ONNX_PARITY_EXTENSION_DIRS  directories searched for custom-op libraries
  ONNX_PARITY_SEED            seed for synthetic inputs
  ONNX_PARITY_LOG_LEVEL       DEBUG / INFO / WARNING / ERROR
  ONNX_PARITY_REPORT_DIR      write one JSON report per case here

``ONNX_PARITY_DATA_ROOT`` (a single external data root) is handled by
:func:`onnx_parity_tool.model_store.init_data_search_path`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigurationError

ENV_PREFIX = "ONNX_PARITY_"
DEFAULT_MODELS_SUBDIR = "intel_models"


def _split_paths(raw: str) -> list[Path]:
    return [Path(p).expanduser() for p in raw.split(os.pathsep) if p.strip()]


@dataclass(frozen=True)
class HarnessConfig:
    data_roots: tuple[Path, ...] = ()
    models_subdir: str = DEFAULT_MODELS_SUBDIR
    extension_dirs: tuple[Path, ...] = ()
    seed: int = 0
    log_level: str = "WARNING"
    report_dir: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "HarnessConfig":
        env = os.environ if environ is None else environ

        def get(key: str) -> str:
            return str(env.get(ENV_PREFIX + key, "") or "").strip()

        seed_raw = get("SEED")
        try:
            seed = int(seed_raw) if seed_raw else 0
        except ValueError:
            raise ConfigurationError(f"{ENV_PREFIX}SEED must be an integer, got {seed_raw!r}") from None
        if seed < 0:
            raise ConfigurationError(f"{ENV_PREFIX}SEED must be >= 0, got {seed}")

        log_level = (get("LOG_LEVEL") or "WARNING").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ConfigurationError(f"{ENV_PREFIX}LOG_LEVEL is not a logging level: {log_level!r}")

        report_raw = get("REPORT_DIR")

        return cls(
            data_roots=tuple(_split_paths(get("DATA_PATH"))),
            models_subdir=get("MODELS_SUBDIR") or DEFAULT_MODELS_SUBDIR,
            extension_dirs=tuple(_split_paths(get("EXTENSION_DIRS"))),
            seed=seed,
            log_level=log_level,
            report_dir=Path(report_raw).expanduser() if report_raw else None,
        )

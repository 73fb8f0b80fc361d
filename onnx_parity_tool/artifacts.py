from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

import numpy as np

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def report_filename(model_name: str, target: str) -> str:
    return f"{_UNSAFE_CHARS.sub('_', model_name)}__{_UNSAFE_CHARS.sub('_', target)}.json"


def write_report(path: Path, data: Any) -> Path:
    """Write a case report as JSON, atomically (tmp file + replace)."""

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2, sort_keys=False, default=_json_default), encoding="utf-8")
    tmp.replace(path)
    return path


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, np.generic):
        return obj.item()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")

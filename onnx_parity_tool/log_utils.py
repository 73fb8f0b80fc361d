"""Logging-related utilities.

This module has no heavy dependencies so every other module (and the test
suite) can import it cheaply.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Optional, Union

PACKAGE_LOGGER = "onnx_parity_tool"

_LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

# A reasonably complete ANSI escape sequence matcher (CSI + single-character).
_ANSI_ESCAPE_RE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")

_handler: Optional[logging.Handler] = None


def configure_logging(level: Union[int, str] = logging.WARNING) -> logging.Logger:
    """Attach a single stream handler to the package logger.

    Calling this more than once only updates the level.
    """

    global _handler

    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = resolved

    logger = logging.getLogger(PACKAGE_LOGGER)
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(_handler)
    logger.setLevel(level)
    return logger


def sanitize_log(text: str) -> str:
    """Sanitize runtime-produced text for reports.

    - Normalize carriage returns (``\\r``) into newlines (``\\n``).
    - Strip ANSI escape sequences (colors, cursor movement, etc.).
    - Prefix onnxruntime warning/error lines with ``[warn]`` / ``[error]``
      so they line up with our own log style.

    Content is never dropped; only formatting artifacts are normalized.
    """

    if not text:
        return ""

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _ANSI_ESCAPE_RE.sub("", text)

    out_lines: list[str] = []
    for line in text.split("\n"):
        if line == "":
            out_lines.append("")
            continue

        s = line
        if "[W:onnxruntime" in s and not s.lstrip().startswith("[warn]"):
            s = "[warn] " + s
        elif "[E:onnxruntime" in s and not s.lstrip().startswith("[error]"):
            s = "[error] " + s

        out_lines.append(s)

    return "\n".join(out_lines)

"""Best-effort loading of custom-op extension libraries.

Some models use operators that only exist in an optional extension library.
The library comes in CPU-specialised builds; the most specialised build the
host can run is preferred and the generic one is the last resort:

    cpu_extension_avx2 -> cpu_extension_sse4 -> cpu_extension

Failing to load every candidate is not an error: many models run without
the extra operators, so the device is kept and a warning is logged.
"""

from __future__ import annotations

import logging
import platform
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set

from ..errors import ResourceUnavailableError
from .resolver import Device

log = logging.getLogger(__name__)

EXTENSION_BASENAME = "cpu_extension"

# (suffix, required cpu flag); None = generic build.
EXTENSION_VARIANTS: Sequence[tuple[str, Optional[str]]] = (
    ("_avx2", "avx2"),
    ("_sse4", "sse4_2"),
    ("", None),
)


def cpu_features(cpuinfo: Path = Path("/proc/cpuinfo")) -> Optional[Set[str]]:
    """CPU flags of this host, or None if they cannot be determined."""

    try:
        text = cpuinfo.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    for line in text.splitlines():
        key, _, value = line.partition(":")
        if key.strip() in ("flags", "Features"):
            return set(value.split())
    return None


def library_filename(stem: str, system: Optional[str] = None) -> str:
    system = system or platform.system()
    if system == "Windows":
        return f"{stem}.dll"
    if system == "Darwin":
        return f"lib{stem}.dylib"
    return f"lib{stem}.so"


def extension_candidates(
    search_dirs: Iterable[Path] = (),
    system: Optional[str] = None,
    features: Optional[Set[str]] = None,
) -> List[str]:
    """Ordered list of library paths/names to try.

    Variants whose CPU flag is known to be missing are skipped. With unknown
    features (``None``) every variant is tried. Each name is tried inside the
    configured directories first and then bare, for the dynamic loader.
    """

    dirs = [Path(d) for d in search_dirs]
    out: List[str] = []
    for suffix, flag in EXTENSION_VARIANTS:
        if flag is not None and features is not None and flag not in features:
            continue
        name = library_filename(EXTENSION_BASENAME + suffix, system)
        out.extend(str(d / name) for d in dirs)
        out.append(name)
    return out


class ExtensionLoader:
    def __init__(self, candidates: Optional[Sequence[str]] = None, search_dirs: Iterable[Path] = ()) -> None:
        self._candidates = list(candidates) if candidates is not None else None
        self._search_dirs = list(search_dirs)

    def candidates(self) -> List[str]:
        if self._candidates is not None:
            return list(self._candidates)
        return extension_candidates(self._search_dirs, features=cpu_features())

    def _try_load(self, device: Device, library: str) -> None:
        try:
            device.add_extension(library)
        except Exception as e:
            raise ResourceUnavailableError(f"{library}: {e}") from e

    def load(self, device: Device) -> Optional[str]:
        """Attach the first loadable extension to ``device``.

        Returns the loaded library, or None (no-op target or nothing loadable).
        """

        if not device.target.uses_cpu_extensions:
            return None

        for library in self.candidates():
            try:
                self._try_load(device, library)
            except ResourceUnavailableError as e:
                log.debug("Extension not loaded: %s", e)
                continue
            log.info("Loaded extension %s for target %s", library, device.target)
            return library

        log.warning(
            "No extension library could be loaded for target %s; continuing without extra operators",
            device.target,
        )
        return None

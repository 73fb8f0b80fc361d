"""Session tokens for device ownership.

A :class:`DeviceSession` is handed through the orchestrator for the lifetime
of one test case. Devices of an exclusive target (a single accelerator
that cannot be opened twice) are tracked by :class:`DeviceSessionRegistry`:
acquiring while a live session exists fails, and ``reset()`` releases the
previous holder.
"""

from __future__ import annotations

import itertools
import logging
from typing import Dict, List, Optional

from ..errors import DeviceBusyError
from ..targets import Target
from .resolver import Device

log = logging.getLogger(__name__)

_session_ids = itertools.count(1)


class DeviceSession:
    def __init__(self, target: Target) -> None:
        self.target = target
        self.session_id = next(_session_ids)
        self.devices: List[Device] = []
        self.released = False

    def attach(self, device: Device) -> None:
        if self.released:
            raise DeviceBusyError(f"Session {self.session_id} for {self.target} was already released")
        self.devices.append(device)

    def release(self) -> None:
        if self.released:
            return
        for device in self.devices:
            device.release()
        self.devices.clear()
        self.released = True
        log.debug("Released session %d (%s)", self.session_id, self.target)

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"DeviceSession(id={self.session_id}, target={self.target}, {state})"


class DeviceSessionRegistry:
    """Tracks the single live session per exclusive device class."""

    def __init__(self) -> None:
        self._active: Dict[str, DeviceSession] = {}

    def active(self, target: Target) -> Optional[DeviceSession]:
        sess = self._active.get(target.device_class)
        if sess is not None and sess.released:
            del self._active[target.device_class]
            return None
        return sess

    def acquire(self, target: Target) -> DeviceSession:
        if not target.exclusive:
            return DeviceSession(target)

        current = self.active(target)
        if current is not None:
            raise DeviceBusyError(
                f"Device class {target.device_class} is held by {current!r}; reset() it first"
            )
        sess = DeviceSession(target)
        self._active[target.device_class] = sess
        return sess

    def reset(self, target: Target) -> None:
        """Force-release whatever session holds ``target``'s device class."""

        current = self._active.pop(target.device_class, None)
        if current is not None and not current.released:
            log.info("Resetting %s: releasing %r", target.device_class, current)
            current.release()


_default_registry = DeviceSessionRegistry()


def default_registry() -> DeviceSessionRegistry:
    return _default_registry

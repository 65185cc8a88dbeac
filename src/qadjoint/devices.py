"""Device tags and the device pool shared by batched evaluations."""

from __future__ import annotations

import contextlib
import logging
import threading
from dataclasses import dataclass, field
from typing import Iterator, Optional

import torch

from . import config
from .errors import DevicePoolError

logger = logging.getLogger(__name__)

__all__ = ["DevTag", "DevicePool"]


@dataclass(frozen=True)
class DevTag:
    """Identifies where the data of a state vector lives.

    Parameters
    ----------
    device_id:
        Index of the device within its type.
    stream_id:
        Stream the work is issued on. ``0`` selects the default stream.
    device_type:
        ``"cuda"`` or ``"cpu"``; defaults to :data:`qadjoint.config.DEVICE_TYPE`.
    """

    device_id: int = 0
    stream_id: int = 0
    device_type: str = field(default_factory=lambda: config.DEVICE_TYPE)

    @property
    def device(self) -> torch.device:
        if self.device_type == "cuda":
            return torch.device("cuda", self.device_id)
        return torch.device(self.device_type)

    def refresh(self) -> None:
        """Make this tag's device current for the calling thread."""
        if self.device_type == "cuda":
            torch.cuda.set_device(self.device_id)


class DevicePool:
    """Hands out device indices so that no two workers share a device.

    ``acquire_device`` blocks until a slot is free. Use :meth:`acquire` to
    get a scoped guard that releases the slot on every exit path.
    """

    def __init__(self, num_devices: Optional[int] = None, device_type: Optional[str] = None):
        if num_devices is None:
            num_devices = config.NUM_DEVICES
        if num_devices <= 0:
            raise DevicePoolError("A device pool requires at least one device")
        self.device_type = device_type or config.DEVICE_TYPE
        self._total = int(num_devices)
        self._free = list(range(self._total))
        self._cond = threading.Condition()

    @property
    def total_devices(self) -> int:
        return self._total

    @property
    def available_devices(self) -> int:
        with self._cond:
            return len(self._free)

    def acquire_device(self) -> int:
        with self._cond:
            while not self._free:
                self._cond.wait()
            device_id = self._free.pop(0)
        logger.debug("acquired device %d", device_id)
        return device_id

    def release_device(self, device_id: int) -> None:
        with self._cond:
            if not 0 <= device_id < self._total:
                raise DevicePoolError(f"Device {device_id} does not belong to this pool")
            if device_id in self._free:
                raise DevicePoolError(f"Device {device_id} released twice")
            self._free.append(device_id)
            self._free.sort()
            self._cond.notify()
        logger.debug("released device %d", device_id)

    @contextlib.contextmanager
    def acquire(self) -> Iterator[int]:
        """Yield a device index that is released when the block exits."""
        device_id = self.acquire_device()
        try:
            yield device_id
        finally:
            self.release_device(device_id)

    def tag(self, device_id: int, stream_id: int = 0) -> DevTag:
        return DevTag(device_id, stream_id, self.device_type)

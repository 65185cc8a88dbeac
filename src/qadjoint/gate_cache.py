"""Device-resident cache of gate matrices."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple

import torch

from . import config, gates
from .devices import DevTag
from .errors import GateNotCachedError

logger = logging.getLogger(__name__)

__all__ = ["CachedGate", "GateCache", "GateKey", "gate_key"]

GateKey = Tuple[str, float]


def gate_key(name: str, param: float = 0.0) -> GateKey:
    return (name, float(param))


@dataclass(frozen=True)
class CachedGate:
    host: torch.Tensor
    device: torch.Tensor


class GateCache:
    """Keyed store of gate matrices living on one device.

    Keys are ``(gate name, parameter)`` pairs, with ``0.0`` used for gates
    without parameters. An entry is uploaded once and only ever replaced as a
    whole by inserting under the same key again. Nothing is evicted.

    Parameters
    ----------
    populate:
        Upload :data:`qadjoint.gates.DEFAULT_CACHED_GATES` on construction.
    dev_tag:
        Device the matrices are uploaded to.
    dtype:
        Complex dtype of the uploaded matrices.
    """

    def __init__(
        self,
        populate: bool = True,
        dev_tag: Optional[DevTag] = None,
        dtype: torch.dtype = config.DEFAULT_DTYPE,
    ):
        self.dev_tag = dev_tag if dev_tag is not None else DevTag()
        self.dtype = dtype
        self.total_alloc_bytes = 0
        self._gates: Dict[GateKey, CachedGate] = {}
        self._lock = threading.Lock()
        if populate:
            self.default_populate()

    def default_populate(self) -> None:
        for name in gates.DEFAULT_CACHED_GATES:
            self.insert(gate_key(name), gates.gate_matrix(name))
        logger.debug(
            "populated gate cache on %s with %d gates (%d bytes)",
            self.dev_tag.device,
            len(self._gates),
            self.total_alloc_bytes,
        )

    def exists(self, key: GateKey) -> bool:
        return key in self._gates

    __contains__ = exists

    def __len__(self) -> int:
        return len(self._gates)

    def __iter__(self) -> Iterator[GateKey]:
        return iter(list(self._gates))

    def insert(self, key: GateKey, host_matrix: torch.Tensor) -> torch.Tensor:
        """Upload ``host_matrix`` under ``key`` and return the device copy."""

        host = host_matrix.to(dtype=self.dtype)
        device = host.to(device=self.dev_tag.device, copy=True)
        with self._lock:
            self._gates[key] = CachedGate(host=host, device=device)
            self.total_alloc_bytes += device.numel() * device.element_size()
        logger.debug("cached gate %s on %s", key, self.dev_tag.device)
        return device

    def get(self, key: GateKey) -> torch.Tensor:
        try:
            return self._gates[key].device
        except KeyError:
            raise GateNotCachedError(f"Gate {key} is not cached on {self.dev_tag.device}") from None

    def get_host(self, key: GateKey) -> torch.Tensor:
        try:
            return self._gates[key].host
        except KeyError:
            raise GateNotCachedError(f"Gate {key} is not cached on {self.dev_tag.device}") from None

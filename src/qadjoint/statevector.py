"""State vector stored on a single device."""

from __future__ import annotations

from typing import Any, Optional, Sequence

import numpy as np
import torch

from . import config, gates
from .devices import DevTag
from .errors import DeviceMismatchError, UnknownGateError
from .gate_cache import GateCache, gate_key
from .generators import apply_generator
from .kernels import apply_controlled, apply_matrix, apply_parity_phase

__all__ = ["StateVector", "inner_product", "scale_and_add", "check_same_device"]


class StateVector:
    """Dense complex state vector bound to one :class:`DevTag`.

    Gates are applied in place: the object keeps its identity while its
    :attr:`data` tensor is replaced. Copies share the gate cache of their
    source so fixed gates are uploaded once per device.

    Parameters
    ----------
    data:
        Host amplitudes (``numpy`` array, ``torch`` tensor or sequence).
    length:
        Number of amplitudes to take from ``data``; must be a power of two.
    dev_tag:
        Device the amplitudes are copied to.
    gate_cache:
        Cache to share. A populated cache for ``dev_tag`` is created if omitted.
    """

    def __init__(
        self,
        data: Any,
        length: Optional[int] = None,
        dev_tag: Optional[DevTag] = None,
        *,
        dtype: torch.dtype = config.DEFAULT_DTYPE,
        gate_cache: Optional[GateCache] = None,
    ):
        self.dev_tag = dev_tag if dev_tag is not None else DevTag()
        tensor = torch.as_tensor(np.asarray(data) if not torch.is_tensor(data) else data)
        tensor = tensor.reshape(-1)
        if length is None:
            length = tensor.numel()
        if length <= 0 or length & (length - 1) or length > tensor.numel():
            raise ValueError(
                f"State length must be a power of two not exceeding the data size, got {length}"
            )
        self.data = tensor[:length].to(device=self.dev_tag.device, dtype=dtype, copy=True)
        self.num_qubits = length.bit_length() - 1
        if gate_cache is None:
            gate_cache = GateCache(populate=True, dev_tag=self.dev_tag, dtype=dtype)
        self.gate_cache = gate_cache

    @classmethod
    def zero_state(
        cls, num_qubits: int, dev_tag: Optional[DevTag] = None, dtype: torch.dtype = config.DEFAULT_DTYPE
    ) -> "StateVector":
        data = torch.zeros(1 << num_qubits, dtype=dtype)
        data[0] = 1.0
        return cls(data, dev_tag=dev_tag, dtype=dtype)

    @property
    def length(self) -> int:
        return self.data.shape[0]

    @property
    def dtype(self) -> torch.dtype:
        return self.data.dtype

    def __repr__(self) -> str:
        return f"StateVector(num_qubits={self.num_qubits}, device={self.data.device})"

    def copy(self) -> "StateVector":
        new = object.__new__(StateVector)
        new.dev_tag = self.dev_tag
        new.data = self.data.clone()
        new.num_qubits = self.num_qubits
        new.gate_cache = self.gate_cache
        return new

    def update_data(self, other: "StateVector") -> None:
        """Overwrite this state's amplitudes with a copy of ``other``'s."""
        check_same_device(self, other)
        if other.length != self.length:
            raise ValueError(f"Cannot copy {other.length} amplitudes into a state of length {self.length}")
        self.data = other.data.clone()

    def get_data(self) -> np.ndarray:
        return self.data.detach().cpu().numpy()

    def apply_matrix(self, matrix: Any, wires: Sequence[int], adjoint: bool = False) -> None:
        """Apply a dense matrix without going through the gate cache."""

        matrix = torch.as_tensor(matrix).reshape(1 << len(wires), 1 << len(wires))
        matrix = matrix.to(device=self.data.device, dtype=self.dtype)
        if adjoint:
            matrix = matrix.conj().transpose(-2, -1)
        self.data = apply_matrix(self.data, matrix, wires, self.num_qubits)

    def apply_operation(
        self,
        name: str,
        wires: Sequence[int],
        inverse: bool = False,
        params: Sequence[float] = (),
        matrix: Any = None,
    ) -> None:
        """Apply a named gate, falling back to ``matrix`` for unknown names."""

        spec = gates.lookup(name)
        if spec is None:
            if matrix is None:
                raise UnknownGateError(f"Unknown gate '{name}' and no matrix was provided")
            self.apply_matrix(matrix, wires, adjoint=inverse)
            return
        wires = [int(w) for w in wires]
        params = [float(p) for p in params]
        if len(params) != spec.num_params:
            raise ValueError(f"Gate '{name}' expects {spec.num_params} parameter(s), got {len(params)}")
        if len(wires) <= spec.num_controls:
            raise ValueError(f"Gate '{name}' needs more than {spec.num_controls} wire(s), got {wires}")

        if spec.diagonal_parity:
            theta = -params[0] if inverse else params[0]
            self.data = apply_parity_phase(self.data, theta, wires, self.num_qubits)
            return

        gate = self._device_gate(name, params)
        if inverse:
            gate = gate.conj().transpose(-2, -1)
        controls, targets = wires[: spec.num_controls], wires[spec.num_controls :]
        self.data = apply_controlled(self.data, gate, controls, targets, self.num_qubits)

    def _device_gate(self, name: str, params: Sequence[float]) -> torch.Tensor:
        if len(params) > 1:
            return gates.gate_matrix(name, params).to(device=self.data.device, dtype=self.dtype)
        key = gate_key(name, params[0] if params else 0.0)
        if not self.gate_cache.exists(key):
            return self.gate_cache.insert(key, gates.gate_matrix(name, params))
        return self.gate_cache.get(key)

    def apply_generator(self, name: str, wires: Sequence[int], adjoint: bool = False) -> float:
        """Apply the generator of ``name`` in place and return its scaling factor."""
        return apply_generator(self, name, wires, adjoint)


def check_same_device(sv1: StateVector, sv2: StateVector) -> None:
    tag1, tag2 = sv1.dev_tag, sv2.dev_tag
    if (tag1.device_type, tag1.device_id) != (tag2.device_type, tag2.device_id):
        raise DeviceMismatchError(
            f"Data exists on different devices ({tag1.device_type}:{tag1.device_id} "
            f"and {tag2.device_type}:{tag2.device_id})"
        )


def inner_product(sv1: StateVector, sv2: StateVector) -> complex:
    """Return ``<sv1|sv2>``; ``sv1`` is conjugated."""
    check_same_device(sv1, sv2)
    return complex(torch.vdot(sv1.data, sv2.data).item())


def scale_and_add(coeff: complex, x: StateVector, y: StateVector) -> None:
    """``y <- y + coeff * x``."""
    check_same_device(x, y)
    y.data = y.data + coeff * x.data

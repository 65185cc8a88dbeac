"""Gate vocabulary understood by :class:`qadjoint.statevector.StateVector`.

Each gate is described by the number of parameters it takes, how many of its
leading wires act as controls, and a builder returning the matrix acting on
the remaining (target) wires. Matrices are built on the host; moving them to a
device is the job of :class:`qadjoint.gate_cache.GateCache`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

import torch

from . import config

__all__ = [
    "GateSpec",
    "GATES",
    "AUXILIARY",
    "lookup",
    "is_known_operation",
    "gate_matrix",
    "DEFAULT_CACHED_GATES",
]

MatrixBuilder = Callable[[Sequence[float]], torch.Tensor]


@dataclass(frozen=True)
class GateSpec:
    """Description of a named gate."""

    num_params: int
    num_controls: int
    build: MatrixBuilder
    diagonal_parity: bool = False


def _t(rows) -> torch.Tensor:
    return torch.tensor(rows, dtype=config.DEFAULT_DTYPE)


_I = _t([[1, 0], [0, 1]])
_X = _t([[0, 1], [1, 0]])
_Y = _t([[0, -1j], [1j, 0]])
_Z = _t([[1, 0], [0, -1]])
_H = _t([[1, 1], [1, -1]]) / math.sqrt(2)
_S = _t([[1, 0], [0, 1j]])
_T = _t([[1, 0], [0, complex(math.sqrt(2) / 2, math.sqrt(2) / 2)]])
_SX = _t([[0.5 + 0.5j, 0.5 - 0.5j], [0.5 - 0.5j, 0.5 + 0.5j]])
_SWAP = _t([[1, 0, 0, 0], [0, 0, 1, 0], [0, 1, 0, 0], [0, 0, 0, 1]])
_P11 = _t([[0, 0], [0, 1]])


def _rotation(generator: torch.Tensor, theta: float, support: Optional[torch.Tensor] = None) -> torch.Tensor:
    """Return ``exp(-i theta/2 G)`` for a generator with ``G @ G == support``."""

    if support is None:
        support = torch.eye(generator.shape[0], dtype=generator.dtype)
    identity = torch.eye(generator.shape[0], dtype=generator.dtype)
    half = theta / 2
    return identity - support + math.cos(half) * support - 1j * math.sin(half) * generator


def _excitation_generator(size: int, low: int, high: int, outside: float) -> torch.Tensor:
    """Givens generator rotating ``|low>`` into ``|high>``.

    ``outside`` is placed on the diagonal of every other basis state.
    """

    gen = torch.diag(torch.full((size,), outside, dtype=config.DEFAULT_DTYPE))
    gen[low, low] = 0
    gen[high, high] = 0
    gen[high, low] = 1j
    gen[low, high] = -1j
    return gen


def _excitation_support(size: int, low: int, high: int, outside: float) -> torch.Tensor:
    support = torch.diag(torch.full((size,), abs(outside), dtype=config.DEFAULT_DTYPE))
    support[low, low] = 1
    support[high, high] = 1
    return support


_GEN_SINGLE_EXCITATION = _excitation_generator(4, 1, 2, 0.0)
_GEN_SINGLE_EXCITATION_MINUS = _excitation_generator(4, 1, 2, 1.0)
_GEN_SINGLE_EXCITATION_PLUS = _excitation_generator(4, 1, 2, -1.0)
_GEN_DOUBLE_EXCITATION = _excitation_generator(16, 3, 12, 0.0)
_GEN_DOUBLE_EXCITATION_MINUS = _excitation_generator(16, 3, 12, 1.0)
_GEN_DOUBLE_EXCITATION_PLUS = _excitation_generator(16, 3, 12, -1.0)


def _excitation(size: int, low: int, high: int, outside: float, generator: torch.Tensor) -> MatrixBuilder:
    support = _excitation_support(size, low, high, outside)
    return lambda p: _rotation(generator, p[0], support)


def _phase_shift(p: Sequence[float]) -> torch.Tensor:
    return _t([[1, 0], [0, complex(math.cos(p[0]), math.sin(p[0]))]])


def _rot(p: Sequence[float]) -> torch.Tensor:
    phi, theta, omega = p
    return _rotation(_Z, omega) @ _rotation(_Y, theta) @ _rotation(_Z, phi)


def _fixed(matrix: torch.Tensor) -> MatrixBuilder:
    return lambda p: matrix


GATES: Dict[str, GateSpec] = {
    "Identity": GateSpec(0, 0, _fixed(_I)),
    "PauliX": GateSpec(0, 0, _fixed(_X)),
    "PauliY": GateSpec(0, 0, _fixed(_Y)),
    "PauliZ": GateSpec(0, 0, _fixed(_Z)),
    "Hadamard": GateSpec(0, 0, _fixed(_H)),
    "S": GateSpec(0, 0, _fixed(_S)),
    "T": GateSpec(0, 0, _fixed(_T)),
    "SX": GateSpec(0, 0, _fixed(_SX)),
    "SWAP": GateSpec(0, 0, _fixed(_SWAP)),
    "CNOT": GateSpec(0, 1, _fixed(_X)),
    "CY": GateSpec(0, 1, _fixed(_Y)),
    "CZ": GateSpec(0, 1, _fixed(_Z)),
    "Toffoli": GateSpec(0, 2, _fixed(_X)),
    "CSWAP": GateSpec(0, 1, _fixed(_SWAP)),
    "RX": GateSpec(1, 0, lambda p: _rotation(_X, p[0])),
    "RY": GateSpec(1, 0, lambda p: _rotation(_Y, p[0])),
    "RZ": GateSpec(1, 0, lambda p: _rotation(_Z, p[0])),
    "PhaseShift": GateSpec(1, 0, _phase_shift),
    "Rot": GateSpec(3, 0, _rot),
    "CRX": GateSpec(1, 1, lambda p: _rotation(_X, p[0])),
    "CRY": GateSpec(1, 1, lambda p: _rotation(_Y, p[0])),
    "CRZ": GateSpec(1, 1, lambda p: _rotation(_Z, p[0])),
    "CRot": GateSpec(3, 1, _rot),
    "ControlledPhaseShift": GateSpec(1, 1, _phase_shift),
    "IsingXX": GateSpec(1, 0, lambda p: _rotation(torch.kron(_X, _X), p[0])),
    "IsingYY": GateSpec(1, 0, lambda p: _rotation(torch.kron(_Y, _Y), p[0])),
    "IsingZZ": GateSpec(1, 0, lambda p: _rotation(torch.kron(_Z, _Z), p[0])),
    "SingleExcitation": GateSpec(1, 0, _excitation(4, 1, 2, 0.0, _GEN_SINGLE_EXCITATION)),
    "SingleExcitationMinus": GateSpec(
        1, 0, _excitation(4, 1, 2, 1.0, _GEN_SINGLE_EXCITATION_MINUS)
    ),
    "SingleExcitationPlus": GateSpec(
        1, 0, _excitation(4, 1, 2, -1.0, _GEN_SINGLE_EXCITATION_PLUS)
    ),
    "DoubleExcitation": GateSpec(1, 0, _excitation(16, 3, 12, 0.0, _GEN_DOUBLE_EXCITATION)),
    "DoubleExcitationMinus": GateSpec(
        1, 0, _excitation(16, 3, 12, 1.0, _GEN_DOUBLE_EXCITATION_MINUS)
    ),
    "DoubleExcitationPlus": GateSpec(
        1, 0, _excitation(16, 3, 12, -1.0, _GEN_DOUBLE_EXCITATION_PLUS)
    ),
    # Matrix depends on the number of wires; applied by a parity kernel instead.
    "MultiRZ": GateSpec(1, 0, _fixed(_Z), diagonal_parity=True),
}

# Non-unitary helpers used by generator rules. They may be applied to a state
# but are not accepted as circuit operations.
AUXILIARY: Dict[str, GateSpec] = {
    "P_11": GateSpec(0, 0, _fixed(_P11)),
    "GenSingleExcitation": GateSpec(0, 0, _fixed(_GEN_SINGLE_EXCITATION)),
    "GenSingleExcitationMinus": GateSpec(0, 0, _fixed(_GEN_SINGLE_EXCITATION_MINUS)),
    "GenSingleExcitationPlus": GateSpec(0, 0, _fixed(_GEN_SINGLE_EXCITATION_PLUS)),
    "GenDoubleExcitation": GateSpec(0, 0, _fixed(_GEN_DOUBLE_EXCITATION)),
    "GenDoubleExcitationMinus": GateSpec(0, 0, _fixed(_GEN_DOUBLE_EXCITATION_MINUS)),
    "GenDoubleExcitationPlus": GateSpec(0, 0, _fixed(_GEN_DOUBLE_EXCITATION_PLUS)),
}

# Gates uploaded when a GateCache is created with ``populate=True``. Controlled
# gates are stored by their target matrix.
DEFAULT_CACHED_GATES = (
    "Identity",
    "PauliX",
    "PauliY",
    "PauliZ",
    "Hadamard",
    "S",
    "T",
    "SWAP",
    "CNOT",
    "Toffoli",
    "CZ",
    "CSWAP",
)


def lookup(name: str) -> Optional[GateSpec]:
    spec = GATES.get(name)
    if spec is None:
        spec = AUXILIARY.get(name)
    return spec


def is_known_operation(name: str) -> bool:
    return name in GATES or name in config.STATE_PREP_OPS


def gate_matrix(name: str, params: Sequence[float] = ()) -> torch.Tensor:
    """Return the host matrix of ``name`` acting on its target wires."""

    spec = lookup(name)
    if spec is None:
        raise KeyError(name)
    if len(params) != spec.num_params:
        raise ValueError(f"Gate '{name}' expects {spec.num_params} parameter(s), got {len(params)}")
    return spec.build([float(p) for p in params])

"""Generators of the parametric gates supported by adjoint differentiation.

For every supported gate ``U(theta)`` the table stores a rule applying the
Hermitian generator ``G`` to a state and the real scaling ``k`` such that
``dU/dtheta = i * k * G @ U(theta)``.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Callable, Dict, NamedTuple, Optional, Sequence, Union

from .errors import GeneratorLookupError
from .kernels import apply_parity

if TYPE_CHECKING:
    from .statevector import StateVector

__all__ = ["ParametricGate", "GeneratorRule", "GENERATORS", "apply_generator"]


class ParametricGate(enum.Enum):
    RX = "RX"
    RY = "RY"
    RZ = "RZ"
    IsingXX = "IsingXX"
    IsingYY = "IsingYY"
    IsingZZ = "IsingZZ"
    PhaseShift = "PhaseShift"
    CRX = "CRX"
    CRY = "CRY"
    CRZ = "CRZ"
    ControlledPhaseShift = "ControlledPhaseShift"
    SingleExcitation = "SingleExcitation"
    SingleExcitationMinus = "SingleExcitationMinus"
    SingleExcitationPlus = "SingleExcitationPlus"
    DoubleExcitation = "DoubleExcitation"
    DoubleExcitationMinus = "DoubleExcitationMinus"
    DoubleExcitationPlus = "DoubleExcitationPlus"
    MultiRZ = "MultiRZ"

    @classmethod
    def from_name(cls, name: str) -> Optional["ParametricGate"]:
        try:
            return cls(name)
        except ValueError:
            return None


GeneratorApply = Callable[["StateVector", Sequence[int], bool], None]


class GeneratorRule(NamedTuple):
    apply: GeneratorApply
    scale: float


def _controlled_pauli(pauli: str) -> GeneratorApply:
    # |1><1| on every control, then the Pauli on the last wire
    def apply(sv: "StateVector", wires: Sequence[int], adjoint: bool) -> None:
        for control in wires[:-1]:
            sv.apply_operation("P_11", [control], adjoint)
        sv.apply_operation(pauli, [wires[-1]], adjoint)

    return apply


def _pauli_string(pauli: str) -> GeneratorApply:
    def apply(sv: "StateVector", wires: Sequence[int], adjoint: bool) -> None:
        for wire in wires:
            sv.apply_operation(pauli, [wire], adjoint)

    return apply


def _projector(sv: "StateVector", wires: Sequence[int], adjoint: bool) -> None:
    for wire in wires:
        sv.apply_operation("P_11", [wire], adjoint)


def _dense(name: str) -> GeneratorApply:
    def apply(sv: "StateVector", wires: Sequence[int], adjoint: bool) -> None:
        sv.apply_operation(name, wires, adjoint)

    return apply


def _parity(sv: "StateVector", wires: Sequence[int], adjoint: bool) -> None:
    sv.data = apply_parity(sv.data, wires, sv.num_qubits)


GENERATORS: Dict[ParametricGate, GeneratorRule] = {
    ParametricGate.RX: GeneratorRule(_controlled_pauli("PauliX"), -0.5),
    ParametricGate.RY: GeneratorRule(_controlled_pauli("PauliY"), -0.5),
    ParametricGate.RZ: GeneratorRule(_controlled_pauli("PauliZ"), -0.5),
    ParametricGate.IsingXX: GeneratorRule(_pauli_string("PauliX"), -0.5),
    ParametricGate.IsingYY: GeneratorRule(_pauli_string("PauliY"), -0.5),
    ParametricGate.IsingZZ: GeneratorRule(_pauli_string("PauliZ"), -0.5),
    ParametricGate.PhaseShift: GeneratorRule(_projector, 1.0),
    ParametricGate.CRX: GeneratorRule(_controlled_pauli("PauliX"), -0.5),
    ParametricGate.CRY: GeneratorRule(_controlled_pauli("PauliY"), -0.5),
    ParametricGate.CRZ: GeneratorRule(_controlled_pauli("PauliZ"), -0.5),
    ParametricGate.ControlledPhaseShift: GeneratorRule(_projector, 1.0),
    ParametricGate.SingleExcitation: GeneratorRule(_dense("GenSingleExcitation"), -0.5),
    ParametricGate.SingleExcitationMinus: GeneratorRule(_dense("GenSingleExcitationMinus"), -0.5),
    ParametricGate.SingleExcitationPlus: GeneratorRule(_dense("GenSingleExcitationPlus"), -0.5),
    ParametricGate.DoubleExcitation: GeneratorRule(_dense("GenDoubleExcitation"), -0.5),
    ParametricGate.DoubleExcitationMinus: GeneratorRule(_dense("GenDoubleExcitationMinus"), -0.5),
    ParametricGate.DoubleExcitationPlus: GeneratorRule(_dense("GenDoubleExcitationPlus"), -0.5),
    ParametricGate.MultiRZ: GeneratorRule(_parity, -0.5),
}


def apply_generator(
    sv: "StateVector",
    gate: Union[ParametricGate, str, None],
    wires: Sequence[int],
    adjoint: bool = False,
) -> float:
    """Apply the generator of ``gate`` to ``sv`` in place and return its scaling."""

    kind = gate if isinstance(gate, ParametricGate) or gate is None else ParametricGate.from_name(gate)
    if kind is None or kind not in GENERATORS:
        raise GeneratorLookupError(f"No generator is registered for gate '{gate}'")
    rule = GENERATORS[kind]
    rule.apply(sv, wires, adjoint)
    return rule.scale

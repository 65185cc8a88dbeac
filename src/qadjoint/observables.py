"""Observables that can be applied to a :class:`~qadjoint.statevector.StateVector`.

The set of variants is closed: :class:`NamedObs`, :class:`HermitianObs`,
:class:`TensorProdObs` and :class:`Hamiltonian`. All of them are immutable.
Two observables compare equal only if they are of the same variant and carry
structurally equal data.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any, List, Tuple

import torch

from . import gates
from .errors import UnknownGateError, WireOverlapError
from .statevector import StateVector, inner_product, scale_and_add

__all__ = [
    "Observable",
    "NamedObs",
    "HermitianObs",
    "TensorProdObs",
    "Hamiltonian",
    "expval",
]


class Observable(abc.ABC):
    """Base class of the observable variants."""

    @abc.abstractmethod
    def apply_in_place(self, sv: StateVector) -> None:
        """Replace the state with the observable applied to it."""

    @abc.abstractmethod
    def get_wires(self) -> List[int]:
        """Sorted, deduplicated wires the observable acts on."""

    @abc.abstractmethod
    def get_name(self) -> str:
        """Canonical name of the observable."""

    @abc.abstractmethod
    def _is_equal(self, other: Any) -> bool:
        """Compare payloads; ``other`` is of the same variant."""

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self._is_equal(other)

    def __ne__(self, other: object) -> bool:
        return not self == other

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return self.get_name()


@dataclass(frozen=True, eq=False)
class NamedObs(Observable):
    """A named gate used as observable, e.g. ``NamedObs("PauliZ", [1])``."""

    name: str
    wires: Tuple[int, ...]
    params: Tuple[float, ...] = ()

    def __post_init__(self):
        if gates.lookup(self.name) is None:
            raise UnknownGateError(f"Unknown observable '{self.name}'")
        object.__setattr__(self, "wires", tuple(int(w) for w in self.wires))
        object.__setattr__(self, "params", tuple(float(p) for p in self.params))

    def apply_in_place(self, sv: StateVector) -> None:
        sv.apply_operation(self.name, self.wires, False, self.params)

    def get_wires(self) -> List[int]:
        return sorted(set(self.wires))

    def get_name(self) -> str:
        return f"{self.name}{list(self.wires)}"

    def _is_equal(self, other: "NamedObs") -> bool:
        return (self.name, self.wires, self.params) == (other.name, other.wires, other.params)


@dataclass(frozen=True, eq=False)
class HermitianObs(Observable):
    """Observable given by a dense Hermitian matrix, row-major over ``wires``."""

    matrix: torch.Tensor
    wires: Tuple[int, ...]

    def __post_init__(self):
        wires = tuple(int(w) for w in self.wires)
        dim = 1 << len(wires)
        matrix = torch.as_tensor(self.matrix)
        if matrix.numel() != dim * dim:
            raise ValueError(
                f"Hermitian matrix with {matrix.numel()} entries does not act on wires {list(wires)}"
            )
        matrix = matrix.reshape(dim, dim)
        if not matrix.is_complex():
            matrix = matrix.to(torch.complex128)
        object.__setattr__(self, "wires", wires)
        object.__setattr__(self, "matrix", matrix.detach().clone())

    def apply_in_place(self, sv: StateVector) -> None:
        sv.apply_matrix(self.matrix, self.wires)

    def get_wires(self) -> List[int]:
        return sorted(set(self.wires))

    def get_name(self) -> str:
        return "Hermitian"

    def _is_equal(self, other: "HermitianObs") -> bool:
        return (
            self.wires == other.wires
            and self.matrix.shape == other.matrix.shape
            and bool(torch.equal(self.matrix, other.matrix.to(self.matrix)))
        )


@dataclass(frozen=True, eq=False)
class TensorProdObs(Observable):
    """Tensor product of observables acting on pairwise disjoint wires."""

    obs: Tuple[Observable, ...]
    all_wires: Tuple[int, ...] = field(init=False, repr=False)

    def __init__(self, *obs: Observable):
        if len(obs) == 1 and not isinstance(obs[0], Observable):
            obs = tuple(obs[0])
        seen: set = set()
        for ob in obs:
            for wire in ob.get_wires():
                if wire in seen:
                    raise WireOverlapError("All wires in observables must be disjoint.")
                seen.add(wire)
        object.__setattr__(self, "obs", tuple(obs))
        object.__setattr__(self, "all_wires", tuple(sorted(seen)))

    def apply_in_place(self, sv: StateVector) -> None:
        for ob in self.obs:
            ob.apply_in_place(sv)

    def get_wires(self) -> List[int]:
        return list(self.all_wires)

    def get_name(self) -> str:
        return " @ ".join(ob.get_name() for ob in self.obs)

    def _is_equal(self, other: "TensorProdObs") -> bool:
        return len(self.obs) == len(other.obs) and all(
            a == b for a, b in zip(self.obs, other.obs)
        )

    def __len__(self) -> int:
        return len(self.obs)


@dataclass(frozen=True, eq=False)
class Hamiltonian(Observable):
    """Weighted sum ``sum_i coeffs[i] * obs[i]``."""

    coeffs: Tuple[float, ...]
    obs: Tuple[Observable, ...]

    def __post_init__(self):
        coeffs = tuple(float(c) for c in self.coeffs)
        obs = tuple(self.obs)
        if len(coeffs) != len(obs):
            raise ValueError(
                f"Hamiltonian needs one coefficient per term, got {len(coeffs)} and {len(obs)}"
            )
        object.__setattr__(self, "coeffs", coeffs)
        object.__setattr__(self, "obs", obs)

    def apply_in_place(self, sv: StateVector) -> None:
        result = sv.copy()
        result.data = torch.zeros_like(sv.data)
        for coeff, ob in zip(self.coeffs, self.obs):
            tmp = sv.copy()
            ob.apply_in_place(tmp)
            scale_and_add(coeff, tmp, result)
        sv.update_data(result)

    def get_wires(self) -> List[int]:
        wires: set = set()
        for ob in self.obs:
            wires.update(ob.get_wires())
        return sorted(wires)

    def get_name(self) -> str:
        terms = ", ".join(ob.get_name() for ob in self.obs)
        return f"Hamiltonian: {{ 'coeffs' : {list(self.coeffs)}, 'observables' : [{terms}]}}"

    def _is_equal(self, other: "Hamiltonian") -> bool:
        return self.coeffs == other.coeffs and len(self.obs) == len(other.obs) and all(
            a == b for a, b in zip(self.obs, other.obs)
        )


def expval(observable: Observable, sv: StateVector) -> float:
    """Return ``<psi|O|psi>`` for the state ``sv``; ``sv`` is left untouched."""

    applied = sv.copy()
    observable.apply_in_place(applied)
    return inner_product(sv, applied).real

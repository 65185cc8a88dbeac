"""Immutable record of the circuit to differentiate."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Sequence, Tuple

import torch

from . import config, gates
from .errors import UnknownGateError
from .generators import ParametricGate

__all__ = ["Operation", "OperationList", "create_operation_list"]


@dataclass(frozen=True)
class Operation:
    """A single recorded operation."""

    name: str
    wires: Tuple[int, ...]
    inverse: bool = False
    params: Tuple[float, ...] = ()
    matrix: Optional[torch.Tensor] = field(default=None, compare=False)
    kind: Optional[ParametricGate] = field(default=None, compare=False)

    @property
    def has_params(self) -> bool:
        return len(self.params) > 0

    @property
    def is_state_prep(self) -> bool:
        return self.name in config.STATE_PREP_OPS

    def __str__(self) -> str:
        suffix = ".inv" if self.inverse else ""
        return f"{self.name}{suffix}{list(self.params)}{list(self.wires)}"


@dataclass(frozen=True)
class OperationList:
    """Ordered sequence of :class:`Operation` records."""

    operations: Tuple[Operation, ...]
    num_par_ops: int = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "operations", tuple(self.operations))
        object.__setattr__(
            self, "num_par_ops", sum(1 for op in self.operations if op.has_params)
        )

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def __getitem__(self, index: int) -> Operation:
        return self.operations[index]

    def has_params(self, index: int) -> bool:
        return self.operations[index].has_params

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(op.name for op in self.operations)


def create_operation_list(
    names: Sequence[str],
    params: Sequence[Sequence[float]],
    wires: Sequence[Sequence[int]],
    inverses: Sequence[bool],
    matrices: Optional[Sequence[Any]] = None,
) -> OperationList:
    """Build an :class:`OperationList` from parallel per-operation sequences.

    ``matrices`` may hold a dense matrix for operations outside the gate
    vocabulary; entries for known gates may be ``None`` or empty. Gate names
    are resolved once here, so an operation that is neither known nor carries
    a matrix is rejected before any evaluation starts.
    """

    count = len(names)
    if matrices is None or len(matrices) == 0:
        matrices = [None] * count
    lengths = {
        "params": len(params),
        "wires": len(wires),
        "inverses": len(inverses),
        "matrices": len(matrices),
    }
    mismatched = {k: v for k, v in lengths.items() if v != count}
    if mismatched:
        raise ValueError(f"Expected {count} entries per operation field, got {mismatched}")

    operations = []
    for index, (name, op_params, op_wires, inverse, matrix) in enumerate(
        zip(names, params, wires, inverses, matrices)
    ):
        if matrix is not None and torch.as_tensor(matrix).numel() == 0:
            matrix = None
        if matrix is not None:
            matrix = torch.as_tensor(matrix).detach().clone()
        if not gates.is_known_operation(name) and matrix is None:
            raise UnknownGateError(
                f"Operation {index} ('{name}') is not a known gate and no matrix was provided"
            )
        operations.append(
            Operation(
                name=name,
                wires=tuple(int(w) for w in op_wires),
                inverse=bool(inverse),
                params=tuple(float(p) for p in op_params),
                matrix=matrix,
                kind=ParametricGate.from_name(name),
            )
        )
    return OperationList(tuple(operations))

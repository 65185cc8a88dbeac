"""Dense gate application for an arbitrary set of target wires."""

from __future__ import annotations

import functools
from typing import Dict, Optional, Sequence, Tuple

import einops
import torch

__all__ = ["apply_matrix", "infer_qubits"]


def infer_qubits(state: torch.Tensor, n_qubits: Optional[int] = None) -> int:
    if n_qubits is not None:
        return n_qubits
    size = state.shape[-1]
    if size == 0 or size & (size - 1):
        raise ValueError("state must represent a non-empty power-of-two sized vector")
    return size.bit_length() - 1


def _group(axes: Sequence[str]) -> str:
    return f"({' '.join(axes)})" if axes else "()"


@functools.lru_cache(maxsize=None)
def matrix_transforms(
    n_qubits: int, *groups: Tuple[int, ...]
) -> Tuple[str, str, Dict[str, int]]:
    """Return einops patterns moving the wires of ``groups`` to leading axes.

    The forward pattern turns a flat state into one axis per group followed by
    an axis holding all remaining wires; the second pattern undoes it.
    """

    all_axes = [f"a{i}" for i in range(n_qubits)]
    used = [w for group in groups for w in group]
    if len(set(used)) != len(used):
        raise ValueError(f"Wires must be distinct, got {used}")
    if any(not 0 <= w < n_qubits for w in used):
        raise ValueError(f"Wires {used} out of range for {n_qubits} qubits")
    rest = [a for i, a in enumerate(all_axes) if i not in used]
    grouped = " ".join(_group([f"a{w}" for w in group]) for group in groups)
    state_pattern = _group(all_axes)
    matrix_pattern = f"{grouped} {_group(rest)}"
    sizes = {a: 2 for a in all_axes}
    return f"{state_pattern} -> {matrix_pattern}", f"{matrix_pattern} -> {state_pattern}", sizes


def apply_matrix(
    state: torch.Tensor,
    matrix: torch.Tensor,
    wires: Sequence[int],
    n_qubits: Optional[int] = None,
) -> torch.Tensor:
    """Return ``matrix`` applied to ``wires`` of ``state``.

    ``matrix`` is row-major over the listed wires, the first wire being the
    most significant.
    """

    n_qubits = infer_qubits(state, n_qubits)
    wires = tuple(int(w) for w in wires)
    if matrix.shape != (1 << len(wires), 1 << len(wires)):
        raise ValueError(
            f"Matrix of shape {tuple(matrix.shape)} does not act on {len(wires)} wire(s)"
        )
    to_matrix, to_state, sizes = matrix_transforms(n_qubits, wires)
    psi = einops.rearrange(state, to_matrix, **sizes)
    psi = torch.matmul(matrix.to(state), psi)
    return einops.rearrange(psi, to_state, **sizes)

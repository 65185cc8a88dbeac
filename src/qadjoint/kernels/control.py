"""Controlled gate application without materialising the full matrix."""

from __future__ import annotations

from typing import Optional, Sequence

import einops
import torch

from .dense import apply_matrix, infer_qubits, matrix_transforms

__all__ = ["apply_controlled"]


def apply_controlled(
    state: torch.Tensor,
    matrix: torch.Tensor,
    controls: Sequence[int],
    targets: Sequence[int],
    n_qubits: Optional[int] = None,
) -> torch.Tensor:
    """Apply ``matrix`` to ``targets`` on the subspace where all ``controls`` are 1."""

    controls = tuple(int(c) for c in controls)
    targets = tuple(int(t) for t in targets)
    if not controls:
        return apply_matrix(state, matrix, targets, n_qubits)
    n_qubits = infer_qubits(state, n_qubits)
    if matrix.shape != (1 << len(targets), 1 << len(targets)):
        raise ValueError(
            f"Matrix of shape {tuple(matrix.shape)} does not act on {len(targets)} target wire(s)"
        )
    to_blocks, to_state, sizes = matrix_transforms(n_qubits, controls, targets)
    psi = einops.rearrange(state, to_blocks, **sizes)
    out = psi.clone()
    out[-1] = torch.matmul(matrix.to(state), psi[-1])
    return einops.rearrange(out, to_state, **sizes)

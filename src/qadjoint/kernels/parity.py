"""Diagonal kernels depending on the parity of a set of wires."""

from __future__ import annotations

from typing import Optional, Sequence

import torch

from .dense import infer_qubits

__all__ = ["apply_parity", "apply_parity_phase"]


def _parity_signs(state: torch.Tensor, wires: Sequence[int], n_qubits: int) -> torch.Tensor:
    indices = torch.arange(state.shape[-1], device=state.device)
    parity = torch.zeros_like(indices)
    for wire in wires:
        parity ^= (indices >> (n_qubits - 1 - int(wire))) & 1
    return (1 - 2 * parity).to(torch.float64)


def apply_parity(
    state: torch.Tensor, wires: Sequence[int], n_qubits: Optional[int] = None
) -> torch.Tensor:
    """Apply ``Z ⊗ ... ⊗ Z`` on ``wires``."""

    n_qubits = infer_qubits(state, n_qubits)
    return state * _parity_signs(state, wires, n_qubits).to(state.dtype)


def apply_parity_phase(
    state: torch.Tensor,
    theta: float,
    wires: Sequence[int],
    n_qubits: Optional[int] = None,
) -> torch.Tensor:
    """Apply ``exp(-i theta/2 Z ⊗ ... ⊗ Z)`` on ``wires``."""

    n_qubits = infer_qubits(state, n_qubits)
    signs = _parity_signs(state, wires, n_qubits)
    phases = torch.exp(-0.5j * float(theta) * signs)
    return state * phases.to(state.dtype)

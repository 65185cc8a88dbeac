"""Layout of the flat Jacobian buffer and observable chunking."""

from __future__ import annotations

import warnings
from typing import Any, List, Sequence, Tuple

import numpy as np
import torch

__all__ = [
    "jacobian_index",
    "chunk_bounds",
    "check_jacobian_buffer",
    "write_rows",
    "warn_on_trainable_mismatch",
]


def jacobian_index(obs_index: int, tp_index: int, tp_size: int) -> int:
    """Flat row-major position of ``(obs_index, tp_index)``."""
    return obs_index * tp_size + tp_index


def chunk_bounds(num_items: int, num_chunks: int) -> List[Tuple[int, int]]:
    """Split ``range(num_items)`` into ``num_chunks`` contiguous ``[first, last)`` ranges.

    Chunk ``i`` starts at ``ceil(num_items * i / num_chunks)``. Chunks may be
    empty when there are fewer items than chunks.
    """

    if num_chunks <= 0:
        raise ValueError("num_chunks must be positive")
    starts = [-(-num_items * i // num_chunks) for i in range(num_chunks + 1)]
    return [(starts[i], starts[i + 1]) for i in range(num_chunks)]


def check_jacobian_buffer(jac: Any, num_observables: int, tp_size: int) -> None:
    if not isinstance(jac, (np.ndarray, torch.Tensor)):
        raise TypeError(f"Jacobian buffer must be a numpy array or torch tensor, got {type(jac)!r}")
    if jac.ndim != 1:
        raise ValueError(f"Jacobian buffer must be one-dimensional, got shape {tuple(jac.shape)}")
    required = num_observables * tp_size
    if jac.shape[0] < required:
        raise ValueError(
            f"Jacobian buffer holds {jac.shape[0]} values, "
            f"{num_observables} observables x {tp_size} parameters need {required}"
        )


def write_rows(jac: Any, offset: int, values: np.ndarray) -> None:
    """Copy ``values`` into ``jac`` starting at flat position ``offset``."""
    if isinstance(jac, torch.Tensor):
        jac[offset : offset + values.shape[0]] = torch.from_numpy(values).to(jac)
    else:
        jac[offset : offset + values.shape[0]] = values


def warn_on_trainable_mismatch(trainable_params: Sequence[int], num_par_ops: int) -> None:
    """Warn about trainable positions the reverse sweep will never match.

    Such positions are not an error: their Jacobian entries are left at zero.
    """

    positions = list(trainable_params)
    if any(b <= a for a, b in zip(positions, positions[1:])):
        warnings.warn(
            f"Trainable parameters {positions} are not strictly increasing; "
            "unmatched positions keep a zero Jacobian entry."
        )
    out_of_range = [p for p in positions if p < 0 or p >= num_par_ops]
    if out_of_range:
        warnings.warn(
            f"Trainable parameters {out_of_range} exceed the {num_par_ops} parametric "
            "operation(s) of the tape; their Jacobian entries stay zero."
        )

"""State-vector kernels operating on flat amplitude tensors.

Wire 0 is the most significant bit of an amplitude index.
"""

from .control import apply_controlled
from .dense import apply_matrix
from .parity import apply_parity, apply_parity_phase

__all__ = ["apply_matrix", "apply_controlled", "apply_parity", "apply_parity_phase"]

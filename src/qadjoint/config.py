"""Process-wide defaults for qadjoint.

Values are read once at import time; the environment variables only matter
before the package is first imported.
"""

import os

import torch

DEFAULT_DTYPE = torch.complex128
"""Complex dtype used for state vectors and cached gate matrices."""

DEVICE_TYPE = os.environ.get(
    "QADJOINT_DEVICE_TYPE", "cuda" if torch.cuda.is_available() else "cpu"
)
"""Device type used by :class:`qadjoint.devices.DevTag` when none is given."""

NUM_THREADS = int(os.environ.get("QADJOINT_NUM_THREADS", min(4, os.cpu_count() or 1)))
"""Worker threads for the per-observable fan-out of a single-device evaluation."""


def _default_num_devices() -> int:
    if "QADJOINT_NUM_DEVICES" in os.environ:
        return int(os.environ["QADJOINT_NUM_DEVICES"])
    if DEVICE_TYPE == "cuda":
        return torch.cuda.device_count()
    return 1


NUM_DEVICES = _default_num_devices()
"""Number of device slots in a default :class:`qadjoint.devices.DevicePool`."""

STATE_PREP_OPS = frozenset({"QubitStateVector", "StatePrep", "BasisState"})
"""Operation names that only mark state preparation and are never undone."""

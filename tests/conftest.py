import numpy as np
import pytest

from qadjoint import DevTag


@pytest.fixture
def cpu_tag() -> DevTag:
    return DevTag(device_type="cpu")


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def random_state(rng):
    """Factory for normalised random complex amplitudes."""

    def make(n_qubits: int) -> np.ndarray:
        dim = 1 << n_qubits
        state = rng.normal(size=dim) + 1j * rng.normal(size=dim)
        return state / np.linalg.norm(state)

    return make


@pytest.fixture
def random_hermitian(rng):
    def make(n_qubits: int) -> np.ndarray:
        dim = 1 << n_qubits
        mat = rng.normal(size=(dim, dim)) + 1j * rng.normal(size=(dim, dim))
        return (mat + mat.conj().T) / 2

    return make

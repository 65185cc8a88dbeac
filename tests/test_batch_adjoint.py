import numpy as np
import pytest
import torch

from qadjoint import (
    DevicePool,
    HermitianObs,
    NamedObs,
    StateVector,
    TensorProdObs,
    adjoint_jacobian,
    batch_adjoint_jacobian,
    create_operation_list,
)
from qadjoint.errors import NoTrainableParametersError, ObservableError
from qadjoint.jacobian import chunk_bounds


@pytest.fixture
def circuit():
    return create_operation_list(
        ["RX", "RY", "CNOT", "IsingXX", "CRZ", "PhaseShift", "MultiRZ"],
        [[0.3], [-0.7], [], [1.1], [0.45], [2.0], [-0.25]],
        [[0], [1], [1, 2], [0, 2], [2, 1], [0], [0, 1, 2]],
        [False, False, False, True, False, False, False],
    )


@pytest.fixture
def observables(random_hermitian):
    return [
        NamedObs("PauliZ", [0]),
        NamedObs("PauliX", [1]),
        TensorProdObs(NamedObs("PauliY", [0]), NamedObs("PauliZ", [2])),
        HermitianObs(torch.from_numpy(random_hermitian(1)), [2]),
        NamedObs("PauliY", [1]),
    ]


@pytest.mark.parametrize("num_devices", [1, 2, 4])
@pytest.mark.parametrize("num_observables", [1, 3, 5])
def test_batch_matches_single_device(cpu_tag, random_state, circuit, observables, num_devices, num_observables):
    observables = observables[:num_observables]
    trainable = [0, 2, 3, 4]
    init = random_state(3)
    sv = StateVector(init, dev_tag=cpu_tag)

    single = np.zeros(num_observables * len(trainable))
    adjoint_jacobian(init, sv.length, single, observables, circuit, trainable, apply_operations=True, dev_tag=cpu_tag)

    pool = DevicePool(num_devices, device_type="cpu")
    batched = np.zeros_like(single)
    batch_adjoint_jacobian(init, sv.length, batched, observables, circuit, trainable, apply_operations=True, device_pool=pool)

    np.testing.assert_allclose(batched, single, rtol=0, atol=1e-12)
    assert pool.available_devices == num_devices


def test_worker_error_propagates_and_releases_devices(random_state, circuit, observables):
    # wire 7 does not exist on the three-qubit state; index 3 opens the second chunk
    observables = observables[:3] + [NamedObs("PauliX", [7])] + observables[3:]
    pool = DevicePool(2, device_type="cpu")
    jac = np.full(len(observables), 7.0)

    with pytest.raises(ObservableError, match=r"observable 3 \(PauliX\[7\]\)"):
        batch_adjoint_jacobian(random_state(3), 8, jac, observables, circuit, [0], device_pool=pool)

    np.testing.assert_array_equal(jac, 7.0)
    assert pool.available_devices == 2


def test_batch_requires_trainable_parameters(circuit, observables):
    pool = DevicePool(2, device_type="cpu")
    with pytest.raises(NoTrainableParametersError):
        batch_adjoint_jacobian(np.ones(8), 8, np.zeros(5), observables, circuit, [], device_pool=pool)
    assert pool.available_devices == 2


@pytest.mark.parametrize(
    "num_items, num_chunks, expected",
    [
        (5, 2, [(0, 3), (3, 5)]),
        (5, 4, [(0, 2), (2, 3), (3, 4), (4, 5)]),
        (3, 4, [(0, 1), (1, 2), (2, 3), (3, 3)]),
        (0, 2, [(0, 0), (0, 0)]),
        (4, 1, [(0, 4)]),
    ],
)
def test_chunk_bounds(num_items, num_chunks, expected):
    assert chunk_bounds(num_items, num_chunks) == expected

import math

import numpy as np
import pytest
import torch

from qadjoint import (
    AdjointJacobian,
    Hamiltonian,
    HermitianObs,
    NamedObs,
    StateVector,
    TensorProdObs,
    adjoint_jacobian,
    create_operation_list,
    expval,
)
from qadjoint.errors import (
    GeneratorLookupError,
    NoTrainableParametersError,
    ObservableError,
    UnknownGateError,
    UnsupportedOperationError,
)


def _final_state(ops, init, tag) -> StateVector:
    sv = StateVector(init, dev_tag=tag)
    AdjointJacobian().apply_operations(sv, ops)
    return sv


def _adjoint(names, params, wires, inverses, observables, init, tag, trainable=None):
    ops = create_operation_list(names, params, wires, inverses)
    sv = _final_state(ops, init, tag)
    if trainable is None:
        trainable = list(range(ops.num_par_ops))
    jac = np.zeros(len(observables) * len(trainable))
    adjoint_jacobian(sv.data, sv.length, jac, observables, ops, trainable, dev_tag=tag, num_threads=2)
    return jac.reshape(len(observables), len(trainable))


def _finite_difference(names, params, wires, inverses, observables, init, tag, eps=1e-6):
    columns = []
    for index, op_params in enumerate(params):
        if not op_params:
            continue
        values = []
        for sign in (1, -1):
            shifted = [list(p) for p in params]
            shifted[index][0] += sign * eps
            ops = create_operation_list(names, shifted, wires, inverses)
            sv = _final_state(ops, init, tag)
            values.append(np.array([expval(ob, sv) for ob in observables]))
        columns.append((values[0] - values[1]) / (2 * eps))
    return np.stack(columns, axis=1)


@pytest.mark.parametrize("theta", [0.0, 0.4, math.pi / 3, 2.5, -1.1])
def test_rx_cnot_scenario(cpu_tag, theta):
    init = np.array([1, 0, 0, 0], dtype=np.complex128)
    jac = _adjoint(
        ["RX", "CNOT"],
        [[theta], []],
        [[0], [0, 1]],
        [False, False],
        [NamedObs("PauliZ", [1])],
        init,
        cpu_tag,
        trainable=[0],
    )
    assert jac[0, 0] == pytest.approx(-math.sin(theta), abs=1e-12)


@pytest.mark.parametrize("gate", ["RX", "RY", "RZ"])
@pytest.mark.parametrize("observable", ["PauliX", "PauliY", "PauliZ"])
def test_single_rotation_matches_finite_difference(cpu_tag, random_state, gate, observable):
    init = random_state(1)
    args = ([gate], [[0.73]], [[0]], [False], [NamedObs(observable, [0])], init, cpu_tag)
    np.testing.assert_allclose(_adjoint(*args), _finite_difference(*args), atol=1e-7)


GENERATOR_GATES = [
    ("RX", [1]),
    ("RY", [2]),
    ("RZ", [0]),
    ("PhaseShift", [3]),
    ("IsingXX", [0, 2]),
    ("IsingYY", [3, 1]),
    ("IsingZZ", [1, 2]),
    ("CRX", [2, 0]),
    ("CRY", [0, 3]),
    ("CRZ", [1, 2]),
    ("ControlledPhaseShift", [3, 1]),
    ("SingleExcitation", [0, 1]),
    ("SingleExcitationMinus", [2, 3]),
    ("SingleExcitationPlus", [1, 3]),
    ("DoubleExcitation", [0, 1, 2, 3]),
    ("DoubleExcitationMinus", [3, 2, 1, 0]),
    ("DoubleExcitationPlus", [0, 2, 1, 3]),
    ("MultiRZ", [0, 2, 3]),
]


@pytest.mark.parametrize("gate, wires", GENERATOR_GATES)
@pytest.mark.parametrize("inverse", [False, True])
def test_generator_gates_match_finite_difference(
    cpu_tag, random_state, random_hermitian, gate, wires, inverse
):
    init = random_state(4)
    observables = [
        NamedObs("PauliZ", [0]),
        TensorProdObs(NamedObs("PauliX", [1]), NamedObs("PauliY", [3])),
        HermitianObs(torch.from_numpy(random_hermitian(1)), [2]),
    ]
    args = (
        [gate, "CNOT", "RY", gate],
        [[0.37], [], [0.81], [-1.2]],
        [wires, [1, 2], [3], wires],
        [False, False, False, inverse],
        observables,
        init,
        cpu_tag,
    )
    np.testing.assert_allclose(_adjoint(*args), _finite_difference(*args), atol=1e-6)


def test_hamiltonian_observable(cpu_tag, random_state, random_hermitian):
    init = random_state(3)
    ham = Hamiltonian(
        [0.5, -2.0, 1.3],
        [
            NamedObs("PauliZ", [0]),
            TensorProdObs(NamedObs("PauliX", [1]), NamedObs("PauliX", [2])),
            HermitianObs(torch.from_numpy(random_hermitian(2)), [2, 0]),
        ],
    )
    args = (
        ["RX", "RY", "CNOT", "IsingZZ", "Hadamard", "CRY"],
        [[0.2], [-0.6], [], [1.4], [], [0.9]],
        [[0], [1], [0, 2], [1, 2], [0], [2, 1]],
        [False, True, False, False, False, False],
        [ham, NamedObs("PauliY", [2])],
        init,
        cpu_tag,
    )
    np.testing.assert_allclose(_adjoint(*args), _finite_difference(*args), atol=1e-6)


def test_trainable_subset_selects_columns(cpu_tag, random_state):
    init = random_state(2)
    names = ["RX", "RY", "CNOT", "RZ"]
    params = [[0.1], [0.2], [], [0.3]]
    wires = [[0], [1], [0, 1], [1]]
    inverses = [False] * 4
    observables = [NamedObs("PauliX", [1]), NamedObs("PauliZ", [0])]

    full = _adjoint(names, params, wires, inverses, observables, init, cpu_tag)
    subset = _adjoint(names, params, wires, inverses, observables, init, cpu_tag, trainable=[0, 2])
    np.testing.assert_allclose(subset, full[:, [0, 2]], atol=1e-12)


def test_apply_operations_flag(cpu_tag, random_state):
    init = random_state(2)
    ops = create_operation_list(["RY", "CNOT"], [[0.5], []], [[0], [0, 1]], [False, False])
    observables = [NamedObs("PauliZ", [1])]

    replayed = np.zeros(1)
    adjoint_jacobian(init, 4, replayed, observables, ops, [0], apply_operations=True, dev_tag=cpu_tag)

    final = _final_state(ops, init, cpu_tag)
    precomputed = np.zeros(1)
    adjoint_jacobian(final.data, final.length, precomputed, observables, ops, [0], dev_tag=cpu_tag)

    np.testing.assert_allclose(replayed, precomputed, atol=1e-12)


def test_torch_buffer(cpu_tag):
    ops = create_operation_list(["RX"], [[0.3]], [[0]], [False])
    jac = torch.zeros(1, dtype=torch.float64)
    adjoint_jacobian(np.array([1, 0]), 2, jac, [NamedObs("PauliZ", [0])], ops, [0], dev_tag=cpu_tag)
    assert jac.item() == pytest.approx(-math.sin(0.3))


def test_state_prep_markers_are_skipped(cpu_tag):
    init = np.array([1, 0, 0, 0], dtype=np.complex128)
    jac = _adjoint(
        ["StatePrep", "RX", "BasisState", "CNOT"],
        [[], [0.8], [], []],
        [[0, 1], [0], [0, 1], [0, 1]],
        [False] * 4,
        [NamedObs("PauliZ", [1])],
        init,
        cpu_tag,
    )
    assert jac[0, 0] == pytest.approx(-math.sin(0.8), abs=1e-12)


def test_no_trainable_parameters_raises_before_writing(cpu_tag):
    ops = create_operation_list(["RX"], [[0.3]], [[0]], [False])
    ref = torch.tensor([1, 0], dtype=torch.complex128)
    jac = np.full(2, 7.0)
    with pytest.raises(NoTrainableParametersError):
        adjoint_jacobian(ref, 2, jac, [NamedObs("PauliZ", [0])], ops, [], dev_tag=cpu_tag)
    np.testing.assert_array_equal(jac, [7.0, 7.0])
    torch.testing.assert_close(ref, torch.tensor([1, 0], dtype=torch.complex128))


def test_multi_parameter_operation_raises(cpu_tag):
    ops = create_operation_list(
        ["RX", "Rot"], [[0.1], [0.1, 0.2, 0.3]], [[0], [0]], [False, False]
    )
    jac = np.full(2, 7.0)
    with pytest.raises(UnsupportedOperationError, match="Rot"):
        adjoint_jacobian(np.array([1, 0]), 2, jac, [NamedObs("PauliZ", [0])], ops, [0, 1], dev_tag=cpu_tag)
    np.testing.assert_array_equal(jac, [7.0, 7.0])


def test_trainable_matrix_operation_has_no_generator(cpu_tag):
    ops = create_operation_list(
        ["Custom"], [[0.5]], [[0]], [False], [np.eye(2)]
    )
    with pytest.raises(GeneratorLookupError, match="Custom"):
        adjoint_jacobian(np.array([1, 0]), 2, np.zeros(1), [NamedObs("PauliZ", [0])], ops, [0], dev_tag=cpu_tag)


def test_matrix_operations_are_undone(cpu_tag, random_state):
    init = random_state(2)
    u = np.array([[1, 1j], [1j, 1]]) / math.sqrt(2)
    names = ["RY", "Custom", "CNOT"]
    params = [[0.6], [], []]
    wires = [[1], [1], [1, 0]]
    inverses = [False, True, False]
    observables = [NamedObs("PauliZ", [0])]
    ops = create_operation_list(names, params, wires, inverses, [None, u, None])

    sv = _final_state(ops, init, cpu_tag)
    jac = np.zeros(1)
    adjoint_jacobian(sv.data, sv.length, jac, observables, ops, [0], dev_tag=cpu_tag)

    values = []
    for sign in (1, -1):
        shifted = create_operation_list(names, [[0.6 + sign * 1e-6], [], []], wires, inverses, [None, u, None])
        values.append(expval(observables[0], _final_state(shifted, init, cpu_tag)))
    assert jac[0] == pytest.approx((values[0] - values[1]) / 2e-6, abs=1e-6)


def test_unknown_gate_rejected_at_construction():
    with pytest.raises(UnknownGateError, match="Foo"):
        create_operation_list(["RX", "Foo"], [[0.1], []], [[0], [1]], [False, False])


def test_operation_fields_must_align():
    with pytest.raises(ValueError):
        create_operation_list(["RX", "RY"], [[0.1]], [[0], [1]], [False, False])


def test_failing_observable_is_named(cpu_tag):
    ops = create_operation_list(["RX"], [[0.3]], [[0]], [False])
    observables = [NamedObs("PauliZ", [0]), NamedObs("PauliX", [4])]
    with pytest.raises(ObservableError, match=r"observable 1 \(PauliX\[4\]\)"):
        adjoint_jacobian(np.array([1, 0]), 2, np.zeros(2), observables, ops, [0], dev_tag=cpu_tag)


def test_out_of_range_trainable_warns_and_keeps_zeros(cpu_tag):
    ops = create_operation_list(["RX", "RY"], [[0.3], [0.4]], [[0], [0]], [False, False])
    jac = np.full(2, 7.0)
    with pytest.warns(UserWarning, match="exceed"):
        adjoint_jacobian(np.array([1, 0]), 2, jac, [NamedObs("PauliZ", [0])], ops, [0, 5], dev_tag=cpu_tag)
    np.testing.assert_array_equal(jac, [0.0, 0.0])


def test_unordered_trainable_warns(cpu_tag):
    ops = create_operation_list(["RX", "RY"], [[0.3], [0.4]], [[0], [0]], [False, False])
    with pytest.warns(UserWarning, match="strictly increasing"):
        adjoint_jacobian(np.array([1, 0]), 2, np.zeros(2), [NamedObs("PauliZ", [0])], ops, [1, 0], dev_tag=cpu_tag)


def test_buffer_too_small(cpu_tag):
    ops = create_operation_list(["RX"], [[0.3]], [[0]], [False])
    with pytest.raises(ValueError):
        adjoint_jacobian(np.array([1, 0]), 2, np.zeros(1), [NamedObs("PauliZ", [0])] * 2, ops, [0], dev_tag=cpu_tag)


def test_operation_list_counts_parametric_operations():
    ops = create_operation_list(
        ["StatePrep", "RX", "CNOT", "Rot", "Custom"],
        [[], [0.1], [], [0.1, 0.2, 0.3], []],
        [[0, 1], [0], [0, 1], [1], [0]],
        [False, False, False, True, False],
        [None, None, None, None, np.eye(2)],
    )
    assert len(ops) == 5
    assert ops.num_par_ops == 2
    assert [ops.has_params(i) for i in range(5)] == [False, True, False, True, False]
    assert ops.names == ("StatePrep", "RX", "CNOT", "Rot", "Custom")
    assert ops[0].is_state_prep
    assert str(ops[3]) == "Rot.inv[0.1, 0.2, 0.3][1]"

"""Torch autograd bindings for the adjoint Jacobian."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import torch

from .adjoint import AdjointJacobian
from .devices import DevTag
from .observables import Observable, expval
from .operations import OperationList, create_operation_list
from .statevector import StateVector

_EVALUATOR = AdjointJacobian()


def _as_observables(observables: Union[Observable, Iterable[Observable]]) -> List[Observable]:
    if isinstance(observables, Observable):
        return [observables]
    return list(observables)


def _build_operations(params: torch.Tensor, circuit_description: dict) -> Tuple[OperationList, List[int]]:
    """Resolve a circuit description against ``params``.

    Returns the operation list and, for every parametric operation in order,
    the index into ``params`` it reads from.
    """

    names, op_params, wires, inverses, matrices = [], [], [], [], []
    param_map: List[int] = []
    values = params.detach().cpu().tolist()
    for entry in circuit_description["operations"]:
        names.append(entry["gate"])
        wires.append(tuple(entry["wires"]))
        inverses.append(bool(entry.get("inverse", False)))
        matrices.append(entry.get("matrix"))
        index = entry.get("param_index")
        if index is None:
            op_params.append(())
        else:
            op_params.append((values[index],))
            param_map.append(int(index))
    return create_operation_list(names, op_params, wires, inverses, matrices), param_map


def _initial_state(n_qubits: int, init_state: Optional[torch.Tensor], dev_tag: DevTag) -> StateVector:
    if init_state is None:
        return StateVector.zero_state(n_qubits, dev_tag)
    return StateVector(init_state.detach(), 1 << n_qubits, dev_tag)


class AdjointFunction(torch.autograd.Function):
    """Expectation values whose backward pass uses the adjoint method."""

    @staticmethod
    def forward(
        ctx,
        params: torch.Tensor,
        circuit_description: dict,
        init_state: Optional[torch.Tensor],
        observables: Sequence[Observable],
    ) -> torch.Tensor:
        n_qubits = int(circuit_description["n_qubits"])
        dev_tag = DevTag()
        operations, param_map = _build_operations(params, circuit_description)

        with torch.no_grad():
            state = _initial_state(n_qubits, init_state, dev_tag)
            _EVALUATOR.apply_operations(state, operations)
            values = [expval(ob, state) for ob in observables]

        ctx.num_params = params.shape[0]
        ctx.operations = operations
        ctx.param_map = param_map
        ctx.observables = observables
        ctx.state = state
        ctx.dev_tag = dev_tag
        return torch.tensor(values, dtype=params.dtype, device=params.device)

    @staticmethod
    def backward(ctx, grad_output: torch.Tensor):
        operations: OperationList = ctx.operations
        param_map: List[int] = ctx.param_map
        observables: Sequence[Observable] = ctx.observables
        state: StateVector = ctx.state

        grads = torch.zeros(ctx.num_params, dtype=grad_output.dtype, device=grad_output.device)
        num_par_ops = operations.num_par_ops
        if num_par_ops == 0 or len(observables) == 0:
            return grads, None, None, None

        jac = np.zeros(len(observables) * num_par_ops, dtype=np.float64)
        _EVALUATOR.adjoint_jacobian(
            state.data,
            state.length,
            jac,
            observables,
            operations,
            list(range(num_par_ops)),
            dev_tag=ctx.dev_tag,
        )
        jac_t = torch.from_numpy(jac.reshape(len(observables), num_par_ops)).to(grad_output)
        per_op = grad_output.reshape(-1) @ jac_t
        index = torch.tensor(param_map, dtype=torch.long, device=grads.device)
        grads.index_add_(0, index, per_op)
        return grads, None, None, None


def adjoint_expectation(
    params: torch.Tensor,
    circuit_description: dict,
    observables: Union[Observable, Iterable[Observable]],
    *,
    init_state: Optional[torch.Tensor] = None,
) -> torch.Tensor:
    """Return one expectation value per observable, differentiable in ``params``.

    ``circuit_description`` holds ``n_qubits`` and a list of ``operations``,
    each a dict with ``gate``, ``wires`` and optionally ``param_index``,
    ``inverse`` and ``matrix``. Several operations may share a
    ``param_index``; their contributions are summed.
    """

    return AdjointFunction.apply(params, circuit_description, init_state, _as_observables(observables))


def adjoint_loss_and_grad(
    params: torch.Tensor,
    circuit_description: dict,
    observables: Union[Observable, Iterable[Observable]],
    *,
    init_state: Optional[torch.Tensor] = None,
) -> Tuple[torch.Tensor, torch.Tensor]:
    """Return the summed expectation values and their gradient."""

    params = params.clone().detach().requires_grad_(True)
    loss = adjoint_expectation(params, circuit_description, observables, init_state=init_state).sum()
    loss.backward()
    return loss.detach(), params.grad.detach().clone()


class AdjointCircuitModule(torch.nn.Module):
    """:class:`~torch.nn.Module` evaluating a fixed circuit for given parameters."""

    def __init__(
        self,
        circuit_description: dict,
        observables: Union[Observable, Iterable[Observable]],
        *,
        init_state: Optional[torch.Tensor] = None,
    ) -> None:
        super().__init__()
        self.circuit_description = circuit_description
        self.observables = _as_observables(observables)
        if init_state is not None:
            self.register_buffer("init_state", init_state)
        else:
            self.init_state = None  # type: ignore[assignment]

    def forward(self, params: torch.Tensor) -> torch.Tensor:
        return AdjointFunction.apply(
            params, self.circuit_description, self.init_state, self.observables
        )


__all__ = [
    "AdjointFunction",
    "AdjointCircuitModule",
    "adjoint_expectation",
    "adjoint_loss_and_grad",
]

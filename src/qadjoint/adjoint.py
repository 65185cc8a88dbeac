"""Adjoint-method Jacobian of expectation values (arXiv:2009.02823)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from . import config
from .devices import DevicePool, DevTag
from .errors import (
    GeneratorLookupError,
    NoTrainableParametersError,
    ObservableError,
    UnsupportedOperationError,
)
from .generators import GENERATORS, GeneratorRule, ParametricGate
from .jacobian import (
    check_jacobian_buffer,
    chunk_bounds,
    jacobian_index,
    warn_on_trainable_mismatch,
    write_rows,
)
from .observables import Observable
from .operations import Operation, OperationList, create_operation_list
from .parallel import parallel_for, parallel_map
from .statevector import StateVector, inner_product

logger = logging.getLogger(__name__)

__all__ = ["AdjointJacobian", "adjoint_jacobian", "batch_adjoint_jacobian", "create_operation_list"]


class AdjointJacobian:
    """Computes Jacobians of observables with respect to circuit parameters.

    For a reference state the evaluator makes one copy per observable, applies
    the observable to it and then walks the operation list backwards, undoing
    each operation on every copy. Whenever a trainable parametric operation is
    undone, the overlap between each observable copy and the generator-applied
    state gives one Jacobian entry.

    Parameters
    ----------
    generators:
        Generator table used for parametric operations.
    """

    create_operation_list = staticmethod(create_operation_list)

    def __init__(self, generators: Optional[Dict[ParametricGate, GeneratorRule]] = None):
        self.generators = GENERATORS if generators is None else generators

    # ------------------------------------------------------------------
    # State helpers
    def apply_operations(self, state: StateVector, operations: OperationList, adjoint: bool = False) -> None:
        """Apply every operation to ``state``; with ``adjoint`` undo them in reverse order."""
        ordered = reversed(operations.operations) if adjoint else operations.operations
        for op in ordered:
            if op.is_state_prep:
                continue
            state.apply_operation(op.name, op.wires, op.inverse ^ adjoint, op.params, op.matrix)

    @staticmethod
    def apply_operation_adj(state: StateVector, operations: OperationList, op_idx: int) -> None:
        op = operations[op_idx]
        state.apply_operation(op.name, op.wires, not op.inverse, op.params, op.matrix)

    def apply_observables(
        self,
        reference: StateVector,
        observables: Sequence[Observable],
        num_threads: int,
        obs_offset: int = 0,
    ) -> List[StateVector]:
        """Return one copy of ``reference`` per observable, with the observable applied.

        ``obs_offset`` is the position of ``observables[0]`` in the caller's list
        and is only used to name a failing observable.
        """

        def observable_state(index: int) -> StateVector:
            state = reference.copy()
            try:
                observables[index].apply_in_place(state)
            except Exception as exc:
                raise ObservableError(
                    f"Failed to apply observable {obs_offset + index} ({observables[index].get_name()}): {exc}"
                ) from exc
            return state

        return parallel_map(observable_state, len(observables), num_threads)

    def apply_operations_adj(
        self, states: List[StateVector], operations: OperationList, op_idx: int, num_threads: int
    ) -> None:
        parallel_for(
            lambda index: self.apply_operation_adj(states[index], operations, op_idx),
            len(states),
            num_threads,
        )

    def apply_generator(self, state: StateVector, op: Operation, op_idx: int, adjoint: bool) -> float:
        """Apply the generator of ``op`` to ``state`` and return its scaling factor."""
        rule = self.generators.get(op.kind) if op.kind is not None else None
        if rule is None:
            raise GeneratorLookupError(
                f"Operation {op_idx} ('{op.name}') is trainable but has no registered generator"
            )
        rule.apply(state, op.wires, adjoint)
        return rule.scale

    @staticmethod
    def update_jacobian(
        sv1: StateVector,
        sv2: StateVector,
        jac: np.ndarray,
        scaling_coeff: float,
        obs_index: int,
        param_index: int,
        tp_size: int,
    ) -> None:
        """Store ``-2 k Im<sv1|sv2>`` at ``(obs_index, param_index)``."""
        jac[jacobian_index(obs_index, param_index, tp_size)] = (
            -2 * scaling_coeff * inner_product(sv1, sv2).imag
        )

    # ------------------------------------------------------------------
    # Evaluation
    def _evaluate(
        self,
        ref_data: Any,
        length: int,
        observables: Sequence[Observable],
        operations: OperationList,
        trainable_params: Sequence[int],
        apply_operations: bool,
        dev_tag: DevTag,
        num_threads: int,
        obs_offset: int = 0,
    ) -> np.ndarray:
        tp_size = len(trainable_params)
        num_observables = len(observables)
        jac = np.zeros(num_observables * tp_size, dtype=np.float64)

        dev_tag.refresh()
        lam = StateVector(ref_data, length, dev_tag)
        if apply_operations:
            self.apply_operations(lam, operations)

        h_lambda = self.apply_observables(lam, observables, num_threads, obs_offset)
        mu = lam.copy()

        logger.debug(
            "reverse sweep on %s: %d operations, %d observables, %d trainable parameters",
            dev_tag.device,
            len(operations),
            num_observables,
            tp_size,
        )

        tp_number = tp_size - 1
        current_param_idx = operations.num_par_ops - 1
        tp_reversed = list(reversed(trainable_params))
        tp_pos = 0

        for op_idx in range(len(operations) - 1, -1, -1):
            if tp_pos == len(tp_reversed):
                break
            op = operations[op_idx]
            if len(op.params) > 1:
                raise UnsupportedOperationError(
                    f"Operation {op_idx} ('{op.name}') has {len(op.params)} parameters; "
                    "the adjoint differentiation method supports at most one"
                )
            if op.is_state_prep:
                continue

            mu.update_data(lam)
            self.apply_operation_adj(lam, operations, op_idx)

            if op.has_params:
                if current_param_idx == tp_reversed[tp_pos]:
                    scaling = self.apply_generator(mu, op, op_idx, not op.inverse)
                    if op.inverse:
                        scaling = -scaling
                    for obs_idx in range(num_observables):
                        self.update_jacobian(
                            h_lambda[obs_idx], mu, jac, scaling, obs_idx, tp_number, tp_size
                        )
                    tp_number -= 1
                    tp_pos += 1
                current_param_idx -= 1

            self.apply_operations_adj(h_lambda, operations, op_idx, num_threads)

        logger.debug("reverse sweep on %s filled %d of %d columns", dev_tag.device, tp_pos, tp_size)
        return jac

    def adjoint_jacobian(
        self,
        ref_data: Any,
        length: int,
        jac: Any,
        observables: Sequence[Observable],
        operations: OperationList,
        trainable_params: Sequence[int],
        apply_operations: bool = False,
        dev_tag: Optional[DevTag] = None,
        num_threads: Optional[int] = None,
    ) -> None:
        """Fill ``jac`` with the Jacobian of ``observables`` on one device.

        Parameters
        ----------
        ref_data:
            Amplitudes of the state the operations produced, or of the initial
            state when ``apply_operations`` is set.
        length:
            Number of amplitudes in ``ref_data``.
        jac:
            Preallocated flat buffer of at least
            ``len(observables) * len(trainable_params)`` entries, written
            row-major by observable once the evaluation has succeeded.
        observables:
            Observables to differentiate.
        operations:
            Operations that produced the state.
        trainable_params:
            Positions, among the parametric operations, that receive a column.
        apply_operations:
            Replay ``operations`` on ``ref_data`` before differentiating.
        dev_tag:
            Device to evaluate on.
        num_threads:
            Threads for the per-observable fan-out; defaults to
            :data:`qadjoint.config.NUM_THREADS`.
        """

        if len(trainable_params) == 0:
            raise NoTrainableParametersError("No trainable parameters provided.")
        check_jacobian_buffer(jac, len(observables), len(trainable_params))
        warn_on_trainable_mismatch(trainable_params, operations.num_par_ops)

        result = self._evaluate(
            ref_data,
            length,
            list(observables),
            operations,
            list(trainable_params),
            apply_operations,
            dev_tag if dev_tag is not None else DevTag(),
            config.NUM_THREADS if num_threads is None else num_threads,
        )
        write_rows(jac, 0, result)

    def batch_adjoint_jacobian(
        self,
        ref_data: Any,
        length: int,
        jac: Any,
        observables: Sequence[Observable],
        operations: OperationList,
        trainable_params: Sequence[int],
        apply_operations: bool = False,
        device_pool: Optional[DevicePool] = None,
    ) -> None:
        """Fill ``jac`` like :meth:`adjoint_jacobian`, spreading observables over devices.

        The observables are split into one contiguous chunk per device of
        ``device_pool``. Each chunk runs on its own thread holding its own
        device and state copies, with the per-observable fan-out disabled.
        ``jac`` is written only after every chunk has finished.
        """

        if len(trainable_params) == 0:
            raise NoTrainableParametersError("No trainable parameters provided.")
        observables = list(observables)
        trainable_params = list(trainable_params)
        tp_size = len(trainable_params)
        check_jacobian_buffer(jac, len(observables), tp_size)
        warn_on_trainable_mismatch(trainable_params, operations.num_par_ops)

        pool = device_pool if device_pool is not None else DevicePool()
        chunks = [
            (first, last)
            for first, last in chunk_bounds(len(observables), pool.total_devices)
            if last > first
        ]

        def run_chunk(index: int) -> np.ndarray:
            first, last = chunks[index]
            with pool.acquire() as device_id:
                dev_tag = pool.tag(device_id)
                logger.debug("observables %d..%d on %s", first, last - 1, dev_tag.device)
                return self._evaluate(
                    ref_data,
                    length,
                    observables[first:last],
                    operations,
                    trainable_params,
                    apply_operations,
                    dev_tag,
                    num_threads=1,
                    obs_offset=first,
                )

        results = parallel_map(run_chunk, len(chunks), pool.total_devices)
        for (first, _), rows in zip(chunks, results):
            write_rows(jac, first * tp_size, rows)


_EVALUATOR = AdjointJacobian()


def adjoint_jacobian(
    ref_data: Any,
    length: int,
    jac: Any,
    observables: Sequence[Observable],
    operations: OperationList,
    trainable_params: Sequence[int],
    apply_operations: bool = False,
    dev_tag: Optional[DevTag] = None,
    num_threads: Optional[int] = None,
) -> None:
    """See :meth:`AdjointJacobian.adjoint_jacobian`."""
    _EVALUATOR.adjoint_jacobian(
        ref_data,
        length,
        jac,
        observables,
        operations,
        trainable_params,
        apply_operations,
        dev_tag,
        num_threads,
    )


def batch_adjoint_jacobian(
    ref_data: Any,
    length: int,
    jac: Any,
    observables: Sequence[Observable],
    operations: OperationList,
    trainable_params: Sequence[int],
    apply_operations: bool = False,
    device_pool: Optional[DevicePool] = None,
) -> None:
    """See :meth:`AdjointJacobian.batch_adjoint_jacobian`."""
    _EVALUATOR.batch_adjoint_jacobian(
        ref_data,
        length,
        jac,
        observables,
        operations,
        trainable_params,
        apply_operations,
        device_pool,
    )

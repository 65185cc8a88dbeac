# ruff: noqa: F401

from . import config
from .errors import *
from .devices import DevicePool, DevTag
from .gate_cache import GateCache, gate_key
from .statevector import StateVector, inner_product, scale_and_add
from .observables import Hamiltonian, HermitianObs, NamedObs, Observable, TensorProdObs, expval
from .operations import Operation, OperationList, create_operation_list
from .generators import GENERATORS, ParametricGate
from .adjoint import AdjointJacobian, adjoint_jacobian, batch_adjoint_jacobian
from .parallel import parallel_for, parallel_map
from .autodiff import AdjointCircuitModule, AdjointFunction, adjoint_expectation

__all__ = [
    "AdjointCircuitModule",
    "AdjointFunction",
    "AdjointJacobian",
    "DevTag",
    "DevicePool",
    "GENERATORS",
    "GateCache",
    "Hamiltonian",
    "HermitianObs",
    "NamedObs",
    "Observable",
    "Operation",
    "OperationList",
    "ParametricGate",
    "StateVector",
    "TensorProdObs",
    "adjoint_expectation",
    "adjoint_jacobian",
    "batch_adjoint_jacobian",
    "config",
    "create_operation_list",
    "expval",
    "gate_key",
    "inner_product",
    "parallel_for",
    "parallel_map",
    "scale_and_add",
]

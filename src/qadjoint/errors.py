class AdjointError(Exception):
    """Base class of all errors raised by qadjoint."""


class NoTrainableParametersError(AdjointError, ValueError):
    pass


class UnsupportedOperationError(AdjointError, ValueError):
    """The operation cannot be differentiated with the adjoint method."""


class UnknownGateError(AdjointError, ValueError):
    pass


class WireOverlapError(AdjointError, ValueError):
    """Components of a tensor-product observable share a wire."""


class DeviceMismatchError(AdjointError, RuntimeError):
    """Two interacting state vectors live on different devices."""


class GeneratorLookupError(AdjointError, LookupError):
    pass


class GateNotCachedError(AdjointError, LookupError):
    pass


class ObservableError(AdjointError, RuntimeError):
    """Applying an observable to its state copy failed."""


class DevicePoolError(AdjointError, RuntimeError):
    pass

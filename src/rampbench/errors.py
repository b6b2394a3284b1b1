from __future__ import annotations


class RampbenchError(Exception):
    """Base class for failures the CLI reports and exits on."""


class EmptyRateSequenceError(RampbenchError, ValueError):
    pass


class SpawnError(RampbenchError):
    """The load generator process could not be started."""


class WarmupError(RampbenchError):
    pass


class LoadGeneratorNotFoundError(RampbenchError):
    pass


class RunExistsError(RampbenchError, ValueError):
    pass

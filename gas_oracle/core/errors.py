# /gas_oracle/core/errors.py
# Exception taxonomy shared by the reconciler, the window, the poller and the HTTP surface.

class GasOracleError(Exception):
    pass

class BlockSourceError(GasOracleError):
    """A block could not be fetched: transport failure, RPC error, unknown block or malformed payload."""
    pass

class ReorgTooDeepError(GasOracleError):
    """
    The divergence search exhausted the retained prefix without meeting the
    candidate's ancestry. Recovering requires a full resync.
    """
    def __init__(self, message: str, candidate=None):
        super().__init__(message)
        self.candidate = candidate

class WindowDesyncError(GasOracleError):
    """A removal did not match the newest window entry. Never recoverable in place."""
    pass

class InvalidPercentileError(GasOracleError, ValueError):
    pass

class NotReadyError(GasOracleError):
    pass

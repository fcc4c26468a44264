"""
Error hierarchy for the Silent Payments indexer.

Data-level errors (MalformedInput, UnsupportedScript, NoKeyMaterial) are
deterministic and are never retried. UpstreamUnavailable is the only
transient class; callers may retry the whole block when they see it.
"""


class SilentIndexError(Exception):
    """Base class for all indexer errors."""


class MalformedInput(SilentIndexError, ValueError):
    """Raised when a wire-format buffer is truncated or structurally invalid."""

    def __init__(self, message: str, offset: int = None):
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)
        self.offset = offset


class UnsupportedScript(SilentIndexError):
    """Raised when an input's previous-output script matches no known spending pattern."""


class NoKeyMaterial(SilentIndexError):
    """Raised when no input of a transaction yields usable key material."""


class UpstreamUnavailable(SilentIndexError, ConnectionError):
    """Raised when the chain-data source cannot supply block or transaction data."""

    def __init__(self, message: str, code: int = None):
        super().__init__(message)
        self.code = code

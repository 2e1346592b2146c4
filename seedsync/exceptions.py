"""
Exception hierarchy for seedsync.

Every failure that can end a lifecycle invocation is represented here so the
dispatcher can translate it into a single FAILED outcome report.
"""

from typing import List, Optional


class SeedSyncError(Exception):
    """Base exception for all seedsync errors."""
    pass


class ConfigurationError(SeedSyncError):
    """Raised when configuration values are missing or invalid."""
    pass


class ReconcileError(SeedSyncError):
    """Base exception for failures raised while reconciling seed records."""
    pass


class MalformedDeclarationError(ReconcileError):
    """Raised when the declared item text does not parse into a list of records."""
    pass


class MissingKeyError(ReconcileError):
    """Raised when a record does not carry the hash key attribute."""

    def __init__(self, message: str, key_name: str = "", index: Optional[int] = None):
        self.key_name = key_name
        self.index = index
        super().__init__(message)


class UnknownRequestTypeError(SeedSyncError):
    """Raised when a lifecycle event carries an unsupported RequestType."""

    def __init__(self, request_type: object):
        self.request_type = request_type
        super().__init__(f"Unknown RequestType: {request_type}")


class StoreUnavailableError(ReconcileError):
    """Raised when the store cannot be reached or scanned."""
    pass


class StoreWriteFailedError(ReconcileError):
    """
    Raised when a put or delete is not acknowledged by the store.

    Attributes:
        key: First failing hash key value, if known
        failed_keys: Every key that failed in the operation
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        failed_keys: Optional[List[str]] = None
    ):
        self.key = key
        self.failed_keys = list(failed_keys or ([key] if key is not None else []))
        super().__init__(message)


class ResponseDeliveryError(SeedSyncError):
    """Raised when the outcome report could not be delivered to the orchestrator."""
    pass

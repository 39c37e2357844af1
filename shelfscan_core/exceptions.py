"""
shelfscan exceptions
"""


class ShelfscanError(Exception):
    """Base exception for shelfscan"""
    pass


class SelectorError(ShelfscanError):
    """Invalid or unsupported CSS selector"""

    def __init__(self, selector: str, reason: str = ""):
        self.selector = selector
        self.reason = reason
        super().__init__(f"Invalid selector {selector!r}: {reason}" if reason else f"Invalid selector {selector!r}")


class StructuredDataError(ShelfscanError):
    """Unparsable embedded structured-data block"""
    pass


class FetchError(ShelfscanError):
    """Page could not be fetched or rendered"""
    pass


class ProfileStoreError(ShelfscanError):
    """Profile store error"""
    pass


class PersistenceError(ProfileStoreError):
    """Durable write of the profile store failed.

    The in-memory store already holds the update; calling
    ``ProfileStore.flush()`` retries the write.
    """

    retryable = True

    def __init__(self, path, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Could not write profile store to {path}: {cause}")

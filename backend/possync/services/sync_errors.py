# Overview: Exception taxonomy shared by the push, pull and coordinator services.

"""
Sync Errors

RECOVERY CLASSES:
- TransportError: timeout / connectivity / remote 5xx. Retried next cycle, no data loss.
- RecordRejected: one record refused by the remote (constraint violation).
  Entry stays queued with attempt_count incremented.
- AuthError: credentials rejected. Fatal for the cycle, no retry until re-auth.
- LocalStoreError: local database failure. Fatal for the cycle; the open
  transaction is rolled back so no partial write is visible.
"""


class SyncError(Exception):
    """Base class for sync engine failures."""
    pass


class TransportError(SyncError):
    """Raised when the remote backend could not be reached or timed out."""
    pass


class RecordRejected(SyncError):
    """Raised when the remote backend refuses an individual record."""

    def __init__(self, entity_id: str, reason: str):
        super().__init__(f"{entity_id}: {reason}")
        self.entity_id = entity_id
        self.reason = reason


class AuthError(SyncError):
    """Raised when the remote backend rejects the session or API key."""
    pass


class LocalStoreError(SyncError):
    """Raised when a local transaction fails and was rolled back."""
    pass


FATAL_ERRORS = (AuthError, LocalStoreError)

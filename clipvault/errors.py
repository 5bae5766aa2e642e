from __future__ import annotations


class ClipVaultError(Exception):
    """Base class for storage failures surfaced to callers."""


class StorageUnavailable(ClipVaultError):
    """The database file or blob directory cannot be opened or created."""


class WriteFailed(ClipVaultError):
    pass


class QueryFailed(ClipVaultError):
    pass

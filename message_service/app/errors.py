class StoreError(Exception):
    """Base class for message store failures."""


class ValidationError(StoreError):
    """Rejected input: blank content, missing or self-addressed recipient."""


class StorageError(StoreError):
    """The backing table could not be read or written."""

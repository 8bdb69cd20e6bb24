"""Exceptions raised by the credential store."""


class CredentialStoreError(Exception):
    """Base class for credential store failures."""

    pass


class NotConfiguredError(CredentialStoreError):
    """Raised when no backing file path has been configured."""

    pass


class StorageUnavailableError(CredentialStoreError):
    """Raised when the backing file cannot be read or written."""

    pass


class InvalidArgumentError(CredentialStoreError, ValueError):
    """Raised when a required argument is ``None`` or empty."""

    pass

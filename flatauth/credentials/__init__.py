"""Flat-file credential store for flatauth.

Stores user names, passwords and role memberships in a single
``user=password,role,...`` file, cached in memory after the first read.
"""

from flatauth.credentials.errors import (
    CredentialStoreError,
    InvalidArgumentError,
    NotConfiguredError,
    StorageUnavailableError,
)
from flatauth.credentials.models import UserRecord
from flatauth.credentials.store import (
    CacheState,
    CredentialStore,
    get_credential_store,
)

__all__ = [
    "CacheState",
    "CredentialStore",
    "CredentialStoreError",
    "InvalidArgumentError",
    "NotConfiguredError",
    "StorageUnavailableError",
    "UserRecord",
    "get_credential_store",
]

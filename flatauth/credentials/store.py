"""Flat-file credential store.

Users, passwords and roles live in one line-oriented file, one
``user_name=password,role1,role2`` record per line.  The file is read once
into memory and rewritten in full after every change.

Usage::

    from flatauth.credentials.store import CredentialStore

    store = CredentialStore("/var/lib/app/users.properties")
    store.add_user("alice", "secret", {"admin"})
    store.get_roles("alice")  # {"admin"}
    store.delete_user("alice")
"""

import logging
import os
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Optional, Set, Union

from flatauth.config import PROPERTIES_FILE_SOURCE, ConfigLoader, get_config_loader
from flatauth.credentials.encoding import (
    COMMENT_PREFIXES,
    decode_password,
    decode_roles,
    dump_roles,
    format_line,
    is_ignorable,
    parse_line,
)
from flatauth.credentials.errors import (
    InvalidArgumentError,
    NotConfiguredError,
    StorageUnavailableError,
)
from flatauth.credentials.models import UserRecord

logger = logging.getLogger(__name__)

_ENV_USERS_FILE = "FLATAUTH_USERS_FILE"

# Singleton instance
_instance: Optional["CredentialStore"] = None


class CacheState(str, Enum):
    """Whether the users file has been read into memory."""

    UNLOADED = "unloaded"
    LOADED = "loaded"


def _require_name(value: Optional[str], argument: str) -> str:
    if value is None or value == "":
        raise InvalidArgumentError(f"{argument} must not be empty")
    return value


def _require_value(value, argument: str):
    if value is None:
        raise InvalidArgumentError(f"{argument} must not be None")
    return value


def _require_user_name(value: Optional[str]) -> str:
    _require_name(value, "user_name")
    if value != value.strip():
        raise InvalidArgumentError(
            "user_name must not start or end with whitespace"
        )
    if value.startswith(COMMENT_PREFIXES):
        raise InvalidArgumentError(
            f"user_name must not start with any of {' '.join(COMMENT_PREFIXES)}"
        )
    _reject_characters(value, "user_name", "=\r\n")
    return value


def _require_password(value: Optional[str]) -> str:
    _require_value(value, "password")
    if value != value.lstrip():
        raise InvalidArgumentError("password must not start with whitespace")
    _reject_characters(value, "password", ",\r\n")
    return value


def _require_role(value: Optional[str]) -> str:
    _require_name(value, "role")
    _reject_characters(value, "role", ",\r\n")
    return value


def _require_roles(roles: Optional[Iterable[str]]) -> Set[str]:
    _require_value(roles, "roles")
    if isinstance(roles, str):
        raise InvalidArgumentError("roles must be a collection of role names")
    return {_require_role(role) for role in roles}


def _reject_characters(value: str, argument: str, forbidden: str) -> None:
    # The users file has no escaping
    if any(char in value for char in forbidden):
        raise InvalidArgumentError(
            f"{argument} must not contain any of {forbidden!r}"
        )


class CredentialStore:
    """User, password and role CRUD against a single users file."""

    def __init__(
        self,
        users_file: Optional[Union[str, Path]] = None,
        create_missing: bool = False,
    ):
        self._users_file = Path(users_file) if users_file else None
        self._create_missing = create_missing
        self._lock = threading.Lock()
        self._records: Dict[str, UserRecord] = {}
        self._state = CacheState.UNLOADED
        if self._users_file is None:
            logger.info(
                "No users property file has been configured. "
                "User management will be disabled."
            )

    @classmethod
    def from_config(cls, loader: Optional[ConfigLoader] = None) -> "CredentialStore":
        """Build a store from the ``properties_file`` auth source.

        ``FLATAUTH_USERS_FILE`` overrides the configured path.
        """
        loader = loader or get_config_loader()
        if loader.get_auth_source(PROPERTIES_FILE_SOURCE) is None:
            logger.info(
                f"No '{PROPERTIES_FILE_SOURCE}' auth source configured. "
                "User management will be disabled."
            )
        options = loader.get_properties_file_options()
        users_file = os.environ.get(_ENV_USERS_FILE) or options.get(
            "users_property_file"
        )
        return cls(
            users_file=users_file,
            create_missing=bool(options.get("create_missing", False)),
        )

    # ------------------------------------------------------------------
    # Capability flags
    # ------------------------------------------------------------------
    @property
    def available(self) -> bool:
        """True when a users file path is configured."""
        return self._users_file is not None

    @property
    def users_file(self) -> Optional[Path]:
        return self._users_file

    @property
    def state(self) -> CacheState:
        return self._state

    def supports_add(self) -> bool:
        return self.available

    def supports_update(self) -> bool:
        return self.available

    def supports_delete(self) -> bool:
        return self.available

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def list_user_names(self) -> Set[str]:
        """Return the names of all stored users."""
        with self._lock:
            self._ensure_loaded()
            logger.info("Retrieving user names...")
            return set(self._records)

    def get_roles(self, user_name: str) -> Set[str]:
        """Return the roles of *user_name*, empty for unknown users."""
        _require_name(user_name, "user_name")
        with self._lock:
            self._ensure_loaded()
            logger.info(f"Retrieving roles for user '{user_name}'...")
            record = self._records.get(user_name)
            return set(record.roles) if record else set()

    def get_user(self, user_name: str) -> Optional[UserRecord]:
        """Return a copy of the record for *user_name*, or ``None``."""
        _require_name(user_name, "user_name")
        with self._lock:
            self._ensure_loaded()
            record = self._records.get(user_name)
            return record.model_copy(deep=True) if record else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def add_user(
        self, user_name: str, password: str, roles: Iterable[str]
    ) -> None:
        """Store (or overwrite) a user record."""
        _require_user_name(user_name)
        _require_password(password)
        role_set = _require_roles(roles)
        with self._lock:
            self._ensure_loaded()
            logger.info(
                f"Adding user '{user_name}' with roles [{dump_roles(role_set)}]."
            )
            self._put(user_name, password, role_set)
            self._save()

    def update_user_password(self, user_name: str, password: str) -> None:
        """Replace the password of *user_name*, keeping its roles."""
        _require_user_name(user_name)
        _require_password(password)
        with self._lock:
            self._ensure_loaded()
            logger.info(f"Updating password for user '{user_name}'.")
            self._put(user_name, password, self._current_roles(user_name))
            self._save()

    def update_user_roles(self, user_name: str, roles: Iterable[str]) -> None:
        """Replace the roles of *user_name*, keeping its password."""
        _require_user_name(user_name)
        role_set = _require_roles(roles)
        with self._lock:
            self._ensure_loaded()
            logger.info(
                f"Updating roles for user '{user_name}'. Roles [{dump_roles(role_set)}]."
            )
            self._put(user_name, self._current_password(user_name), role_set)
            self._save()

    def add_user_role(self, user_name: str, role: str) -> None:
        _require_user_name(user_name)
        _require_role(role)
        with self._lock:
            self._ensure_loaded()
            logger.info(f"Adding role '{role}' to user '{user_name}'.")
            roles = self._current_roles(user_name)
            roles.add(role)
            self._put(user_name, self._current_password(user_name), roles)
            self._save()

    def remove_user_role(self, user_name: str, role: str) -> None:
        _require_user_name(user_name)
        _require_role(role)
        with self._lock:
            self._ensure_loaded()
            logger.info(f"Removing role '{role}' from user '{user_name}'.")
            roles = self._current_roles(user_name)
            roles.discard(role)
            self._put(user_name, self._current_password(user_name), roles)
            self._save()

    def delete_user(self, user_name: str) -> None:
        """Remove *user_name*.  Unknown users are not an error."""
        _require_name(user_name, "user_name")
        with self._lock:
            self._ensure_loaded()
            logger.info(f"Deleting user '{user_name}'.")
            self._records.pop(user_name, None)
            self._save()

    def invalidate(self) -> None:
        """Drop the in-memory copy so the next call re-reads the file."""
        with self._lock:
            self._records = {}
            self._state = CacheState.UNLOADED
            logger.debug("Credential cache invalidated")

    # ------------------------------------------------------------------
    # Cache and file handling (callers hold self._lock)
    # ------------------------------------------------------------------
    def _current_password(self, user_name: str) -> str:
        record = self._records.get(user_name)
        return record.password if record else ""

    def _current_roles(self, user_name: str) -> Set[str]:
        record = self._records.get(user_name)
        return set(record.roles) if record else set()

    def _put(self, user_name: str, password: str, roles: Set[str]) -> None:
        self._records[user_name] = UserRecord(
            user_name=user_name, password=password, roles=roles
        )

    def _require_path(self) -> Path:
        if self._users_file is None:
            raise NotConfiguredError(
                "No users property file has been configured for the credential store"
            )
        return self._users_file

    def _ensure_loaded(self) -> None:
        if self._state is CacheState.LOADED:
            return
        self._records = self._load()
        self._state = CacheState.LOADED

    def _load(self) -> Dict[str, UserRecord]:
        path = self._require_path()
        if self._create_missing and not path.exists():
            logger.info(f"Users file '{path}' does not exist yet, starting empty.")
            return {}

        logger.info(f"Loading user information from '{path}'.")
        records: Dict[str, UserRecord] = {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line_number, line in enumerate(f, start=1):
                    parsed = parse_line(line)
                    if parsed is None:
                        if not is_ignorable(line):
                            logger.warning(
                                f"Skipping malformed line {line_number} in '{path}'"
                            )
                        continue
                    user_name, value = parsed
                    records[user_name] = UserRecord(
                        user_name=user_name,
                        password=decode_password(value),
                        roles=decode_roles(value),
                    )
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Unable to read users file '{path}': {e}")
            raise StorageUnavailableError(
                f"Unable to read users file '{path}': {e}"
            ) from e

        logger.info(f"Loaded {len(records)} users from '{path}'")
        return records

    def _save(self) -> None:
        path = self._require_path()
        logger.info(f"Saving user information to '{path}'.")
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(f"# {datetime.now(timezone.utc).isoformat()}\n")
                for user_name in sorted(self._records):
                    record = self._records[user_name]
                    f.write(
                        format_line(user_name, record.password, record.roles) + "\n"
                    )
        except OSError as e:
            logger.error(f"Unable to write users file '{path}': {e}")
            raise StorageUnavailableError(
                f"Unable to write users file '{path}': {e}"
            ) from e


def get_credential_store() -> CredentialStore:
    """Return the singleton ``CredentialStore`` built from configuration."""
    global _instance
    if _instance is None:
        _instance = CredentialStore.from_config()
    return _instance

"""Line encoding for the users file.

Each record is one ``user_name=value`` line where ``value`` is
``password,role1,role2,...``.  Nothing is escaped, so ``=`` and ``,`` must
not appear in user names, passwords or roles.
"""

from typing import Iterable, Optional, Set, Tuple

COMMENT_PREFIXES = ("#", "!")


def dump_roles(roles: Optional[Iterable[str]]) -> str:
    """Return *roles* as a sorted, comma separated string."""
    if not roles:
        return ""
    return ",".join(sorted(roles))


def encode(password: str, roles: Optional[Iterable[str]]) -> str:
    """Build the stored value for *password* and *roles*.

    An empty role set still produces the separator, e.g. ``"secret,"``.
    """
    return f"{password},{dump_roles(roles)}"


def decode_roles(value: Optional[str]) -> Set[str]:
    """Extract the role set from a stored value.

    Args:
        value: The stored ``password,role1,...`` string, may be ``None``.

    Returns:
        Every token after the first one.  Empty tokens are dropped.
    """
    if not value:
        return set()
    tokens = value.split(",")
    return {token for token in tokens[1:] if token}


def decode_password(value: Optional[str]) -> str:
    """Extract the password from a stored value, ``""`` when absent."""
    if not value:
        return ""
    return value.split(",", 1)[0]


def is_ignorable(line: str) -> bool:
    """True for blank lines and comment lines."""
    stripped = line.strip()
    return not stripped or stripped.startswith(COMMENT_PREFIXES)


def parse_line(line: str) -> Optional[Tuple[str, str]]:
    """Split one file line into ``(user_name, value)``.

    Blank lines and ``#`` / ``!`` comments yield ``None``, as do lines with
    no ``=`` or an empty user name.  The split happens at the first ``=``.
    """
    if is_ignorable(line):
        return None

    stripped = line.rstrip("\r\n").lstrip()
    user_name, sep, value = stripped.partition("=")
    user_name = user_name.strip()
    if not sep or not user_name:
        return None
    # Trailing whitespace is part of the value, leading whitespace is not
    return user_name, value.lstrip()


def format_line(user_name: str, password: str, roles: Optional[Iterable[str]]) -> str:
    """Render a full ``user_name=password,roles`` line without newline."""
    return f"{user_name}={encode(password, roles)}"

"""
Command-line entry point for managing a flatauth users file.

Usage:
    python -m flatauth [--config PATH] [--file PATH] [--create-missing] COMMAND ...

Commands:
    list                          List user names
    roles USER                    Show the roles of a user
    show USER                     Show a user's record (password hidden)
    add USER [--password P] [--role R ...]
    passwd USER [--password P]
    set-roles USER [--role R ...]
    add-role USER ROLE
    remove-role USER ROLE
    delete USER
"""

import argparse
import getpass
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from flatauth.config import ConfigError, ConfigLoader, get_config_loader
from flatauth.credentials import CredentialStore, CredentialStoreError


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flatauth", description="Manage users and roles in a flatauth users file"
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument(
        "--file", type=str, default=None, help="Users file (overrides configuration)"
    )
    parser.add_argument(
        "--create-missing",
        action="store_true",
        help="Treat a missing users file as empty",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List user names")

    for name, help_text in (
        ("roles", "Show the roles of a user"),
        ("show", "Show a user's record"),
        ("delete", "Delete a user"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("user")

    add = sub.add_parser("add", help="Add or overwrite a user")
    add.add_argument("user")
    add.add_argument("--password", default=None)
    add.add_argument("--role", dest="roles", action="append", default=[])

    passwd = sub.add_parser("passwd", help="Change a user's password")
    passwd.add_argument("user")
    passwd.add_argument("--password", default=None)

    set_roles = sub.add_parser("set-roles", help="Replace a user's roles")
    set_roles.add_argument("user")
    set_roles.add_argument("--role", dest="roles", action="append", default=[])

    for name, help_text in (
        ("add-role", "Grant one role to a user"),
        ("remove-role", "Revoke one role from a user"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("user")
        cmd.add_argument("role")

    return parser


def _configure_logging(level: Optional[str]) -> None:
    resolved_level = (
        os.getenv("FLATAUTH_LOG_LEVEL") or os.getenv("LOG_LEVEL") or level or "INFO"
    ).upper()
    if not isinstance(logging.getLevelName(resolved_level), int):
        raise ConfigError(f"Unknown log level: {resolved_level}")
    logging.basicConfig(
        level=resolved_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _build_store(args: argparse.Namespace, loader: ConfigLoader) -> CredentialStore:
    if args.file:
        return CredentialStore(args.file, create_missing=args.create_missing)
    store = CredentialStore.from_config(loader)
    if args.create_missing and store.users_file is not None:
        return CredentialStore(store.users_file, create_missing=True)
    return store


def _password(args: argparse.Namespace) -> str:
    if args.password is not None:
        return args.password
    return getpass.getpass(f"Password for {args.user}: ")


def _run(store: CredentialStore, args: argparse.Namespace) -> None:
    command = args.command
    if command == "list":
        for name in sorted(store.list_user_names()):
            print(name)
    elif command == "roles":
        for role in sorted(store.get_roles(args.user)):
            print(role)
    elif command == "show":
        record = store.get_user(args.user)
        if record is None:
            print(f"{args.user}: no such user")
        else:
            print(f"{record.user_name}: roles=[{', '.join(sorted(record.roles))}]")
    elif command == "add":
        store.add_user(args.user, _password(args), args.roles)
    elif command == "passwd":
        store.update_user_password(args.user, _password(args))
    elif command == "set-roles":
        store.update_user_roles(args.user, args.roles)
    elif command == "add-role":
        store.add_user_role(args.user, args.role)
    elif command == "remove-role":
        store.remove_user_role(args.user, args.role)
    elif command == "delete":
        store.delete_user(args.user)


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments and run one store command."""
    load_dotenv()
    args = _build_parser().parse_args(argv)

    try:
        loader = get_config_loader(args.config)
        _configure_logging(loader.get_logging_config().get("level"))
        store = _build_store(args, loader)
        _run(store, args)
    except (ConfigError, CredentialStoreError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

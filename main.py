#!/usr/bin/env python3
"""
CoreID -- administrative command line.

Usage:
  python main.py seed --password 'Admin123!'
  python main.py create-user --email a@x.com --username a --role Admin --password 'Abcdef1!'
  python main.py create-user --email e@x.com --username e --role User --password 'Abcdef1!' --parent-id 4

Accounts created here skip email verification and are active immediately.
The database is taken from DATABASE_URL (see core/config.py).
"""

import argparse
import sys

from auth.hierarchy import UserHierarchy
from auth.models import Identity, Role
from auth.passwords import check_email_format, check_password_policy, hash_password
from auth.store import UserStore
from core.config import Settings, get_settings
from core.errors import CoreIDError

# (username, email, role) -- Company1 owns Employee1.
_SEED_ACCOUNTS = [
    ("SuperAdmin", "superadmin@core.com", Role.SUPER),
    ("Admin", "admin@core.com", Role.ADMIN),
    ("Guest", "guest@core.com", Role.USER),
    ("Company1", "company1@core.com", Role.ADMIN),
]
_SEED_EMPLOYEE = ("Employee1", "employee1@core.com", Role.USER)


def create_active_user(
    store: UserStore,
    settings: Settings,
    username: str,
    email: str,
    role: Role,
    password: str,
    parent_id: int | None = None,
) -> int:
    """Validate and insert an already-active account. Returns its id."""
    check_email_format(email)
    check_password_policy(password, settings.password_min_length)
    UserHierarchy(store).validate_parent(parent_id)
    return store.insert(
        Identity(
            username=username,
            email=email,
            role=role,
            hashed_password=hash_password(password, settings.bcrypt_rounds),
            parent_id=parent_id,
            is_active=True,
        )
    )


def seed(store: UserStore, settings: Settings, password: str) -> int:
    """Populate an empty store with the demo directory. Returns the number of accounts created."""
    if store.has_users():
        print("  [*] Store already has users -- nothing to seed.")
        return 0
    ids: dict[str, int] = {}
    for username, email, role in _SEED_ACCOUNTS:
        ids[username] = create_active_user(store, settings, username, email, role, password)
    username, email, role = _SEED_EMPLOYEE
    create_active_user(store, settings, username, email, role, password, parent_id=ids["Company1"])
    return len(_SEED_ACCOUNTS) + 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="CoreID administration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    seed_cmd = sub.add_parser("seed", help="Create the demo accounts in an empty store")
    seed_cmd.add_argument("--password", required=True, help="Password for every seeded account")

    create_cmd = sub.add_parser("create-user", help="Create one active account")
    create_cmd.add_argument("--email", required=True)
    create_cmd.add_argument("--username", required=True)
    create_cmd.add_argument("--password", required=True)
    create_cmd.add_argument("--role", default=Role.USER.value, help="User, Admin or Super")
    create_cmd.add_argument("--parent-id", type=int, default=None, help="Company account that owns this one")

    args = parser.parse_args(argv)
    settings = get_settings()
    store = UserStore(db_url=settings.database_url)
    try:
        if args.command == "seed":
            count = seed(store, settings, args.password)
            print(f"  [+] Seeded {count} accounts.")
        else:
            user_id = create_active_user(
                store,
                settings,
                args.username.strip(),
                args.email.strip(),
                Role.parse(args.role),
                args.password,
                parent_id=args.parent_id,
            )
            print(f"  [+] Created user id={user_id}.")
    except CoreIDError as exc:
        print(f"  [!] {exc}")
        return 1
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())

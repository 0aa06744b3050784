#!/usr/bin/env python3
"""Print a bcrypt hash for the admin dashboard password.

Example:
    python tooling/scripts/hash_admin_password.py --password 's3cret'

Store the output in ``ADMIN_PASSWORD_HASH``. Omit ``--password`` to be prompted.
"""

from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path

from loguru import logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Hash the admin dashboard password with bcrypt")
    parser.add_argument("--password", help="Password to hash (prompted when omitted)")
    parser.add_argument("--rounds", type=int, default=10, help="bcrypt cost factor")
    return parser.parse_args()


def main() -> int:
    repo_root = Path(__file__).resolve().parents[2]
    src_path = repo_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))

    from spicymarg_api.services.admin import hash_password  # type: ignore import-position

    args = parse_args()
    password = args.password or getpass.getpass("Admin password: ")
    if not password:
        logger.error("Password must not be empty")
        return 1

    print(hash_password(password, rounds=args.rounds))
    logger.success("Admin password hashed", rounds=args.rounds)
    return 0


if __name__ == "__main__":
    sys.exit(main())

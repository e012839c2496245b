"""
Print a bcrypt hash for ADMIN_PASSWORD_HASH.

    python scripts/hash_password.py            # prompts for the password
    python scripts/hash_password.py --rounds 12
"""

import argparse
import getpass
import sys

from identity_core.kernel.identity.password import MIN_BCRYPT_ROUNDS, PasswordHasher


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Hash the operator password for ADMIN_PASSWORD_HASH.")
    parser.add_argument("--rounds", type=int, default=None, help="bcrypt cost factor (default: BCRYPT_ROUNDS)")
    args = parser.parse_args(argv)

    if args.rounds is not None and args.rounds < MIN_BCRYPT_ROUNDS:
        print(f"--rounds must be at least {MIN_BCRYPT_ROUNDS}", file=sys.stderr)
        return 2

    password = getpass.getpass("Admin password: ")
    if password != getpass.getpass("Repeat password: "):
        print("Passwords do not match", file=sys.stderr)
        return 1
    if len(password) < 8:
        print("Password must be at least 8 characters", file=sys.stderr)
        return 1

    hashed = PasswordHasher(rounds=args.rounds).hash(password)
    print(hashed)
    print("Set this as ADMIN_PASSWORD_HASH in your environment or .env file.", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())

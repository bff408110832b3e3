"""Ordering database and maintenance CLI.

Usage:
    python src/manage.py setup-db          # Create all tables
    python src/manage.py drop-db           # Drop all tables
    python src/manage.py release-cashback  # Release eligible cashback once
"""

import argparse
import sys


def _ordering():
    from ordering.domain import ordering

    ordering.init()
    return ordering


def setup_databases():
    """Create the ordering schema on every relational provider."""
    from ordering.utils.db import setup_db

    print("Initializing ordering domain...")
    domain = _ordering()
    print("Creating ordering database schema...")
    providers = setup_db(domain)
    if not providers:
        print("  No relational providers configured; nothing to create.")
    else:
        print(f"  Schema ready on: {', '.join(providers)}.")

    print("Done.")


def drop_databases():
    """Drop the ordering schema on every relational provider."""
    from ordering.utils.db import drop_db

    print("Initializing ordering domain...")
    domain = _ordering()
    print("Dropping ordering database schema...")
    providers = drop_db(domain)
    print(f"  Schema dropped on: {', '.join(providers) or 'none'}.")

    print("Done.")


def release_cashback():
    """Release scheduler-managed cashback whose eligibility time has passed."""
    from server import release_cashback_once

    result = release_cashback_once(_ordering())
    print(f"Released {result['released']} transaction(s), {result['failed']} failed.")


def main():
    parser = argparse.ArgumentParser(description="Ordering database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("release-cashback", help="Release eligible cashback now")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    elif args.command == "release-cashback":
        release_cashback()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Create Admin Script

Creates an administrator account.
Usage: python scripts/create_admin.py --email admin@example.edu --name "Site Admin"
"""
import argparse
import getpass
import sys
sys.path.insert(0, '.')

from capstone.core.errors import AppError
from capstone.core.security import check_password_strength
from capstone.db.sqlite import init_database
from capstone.services.user_service import create_admin


def main():
    parser = argparse.ArgumentParser(description="Create a Capstone Connect administrator")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", required=True, help="Full name")
    parser.add_argument("--password", help="Prompted for when omitted")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")
    try:
        check_password_strength(password)
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    init_database()
    try:
        admin_id = create_admin(args.email, password, args.name)
    except AppError as e:
        print(f"❌ {e.message}")
        sys.exit(1)
    print(f"✅ Admin created (id={admin_id}, email={args.email.lower()})")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Connection Check Script

Run this to verify the database file is reachable and the schema is in place.
Usage: python scripts/check_connection.py
"""
import sys
sys.path.insert(0, '.')

from capstone.core.config import get_settings
from capstone.db.sqlite import check_database_connection, execute_raw_sql, init_database


def main():
    settings = get_settings()
    print("=" * 50)
    print("CAPSTONE CONNECT - CONNECTION CHECK")
    print("=" * 50)

    print("\n[1] Checking database...")
    print(f"    URL: {settings.database_url}")
    if not check_database_connection():
        print("    ❌ Database: FAILED")
        sys.exit(1)
    print("    ✅ Database: CONNECTED")

    print("\n[2] Checking schema...")
    init_database()
    tables = execute_raw_sql(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    )
    for table in tables:
        count = execute_raw_sql(f"SELECT COUNT(*) AS n FROM {table['name']}")[0]["n"]
        print(f"    {table['name']:<20} {count} rows")

    print("\n" + "=" * 50)
    print("Connection check complete!")
    print("=" * 50)


if __name__ == "__main__":
    main()

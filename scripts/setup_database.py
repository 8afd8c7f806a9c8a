#!/usr/bin/env python3
"""Apply the Skillboard schema and seed the default job categories."""

from __future__ import annotations

import argparse
import asyncio
import hashlib
import os
import sys
from pathlib import Path

import asyncpg  # type: ignore[import-untyped]

SCHEMA_PATH = Path(__file__).resolve().parents[1] / "db" / "schema.sql"

DEFAULT_CATEGORIES = (
    "Software Development",
    "Design",
    "Marketing",
    "Product Management",
    "Sales",
    "Data Science",
    "Customer Support",
    "Operations",
    "Human Resources",
    "Finance",
)


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_seed_sql(categories: tuple[str, ...] = DEFAULT_CATEGORIES) -> str:
    values = ",\n  ".join(f"({_quote_sql(name)})" for name in categories)
    return f"""insert into categories (name)
values
  {values}
on conflict (name) do nothing;
"""


def render_sql() -> str:
    return f"{SCHEMA_PATH.read_text(encoding='utf-8')}\n{render_seed_sql()}"


def hash_maintenance_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


async def apply_sql(database_url: str, sql: str) -> None:
    conn = await asyncpg.connect(dsn=database_url)
    try:
        async with conn.transaction():
            await conn.execute(sql)
    finally:
        await conn.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Apply the Skillboard schema and seed default categories.")
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument("--print", action="store_true", dest="print_only", help="Print the SQL instead of applying it")
    mode_group.add_argument(
        "--hash-key",
        metavar="KEY",
        help="Print the SB_MAINTENANCE_API_KEY_HASH value for a worker API key and exit",
    )
    parser.add_argument(
        "--database-url",
        default=os.getenv("SB_DATABASE_URL") or os.getenv("DATABASE_URL"),
        help="Postgres DSN (defaults to SB_DATABASE_URL or DATABASE_URL)",
    )
    args = parser.parse_args()

    if args.hash_key is not None:
        print(hash_maintenance_key(args.hash_key))
        return

    sql = render_sql()
    if args.print_only:
        print(sql)
        return

    if not args.database_url:
        parser.error("--database-url or SB_DATABASE_URL is required")

    asyncio.run(apply_sql(args.database_url, sql))
    print(f"schema applied; {len(DEFAULT_CATEGORIES)} default categories ensured", file=sys.stderr)


if __name__ == "__main__":
    main()

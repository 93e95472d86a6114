# CommunityCore - Community Association Platform Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Database connectivity check utility.

Opens one connection with the configured ``DATABASE_URL`` and reports what
it finds. Installed as the ``community-check-db`` console script.
"""

import asyncio
import sys
import time

import asyncpg
from beartype import beartype
from pydantic import BaseModel, ConfigDict, Field

from .core.config import Settings, get_settings
from .core.database import Connector


class DatabaseCheckResult(BaseModel):
    """Result of database connectivity check."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
    )

    connected: bool = Field(..., description="Whether connection was successful")
    database_name: str | None = Field(None, description="Name of connected database")
    version: str | None = Field(None, description="Database version")
    tables: list[str] = Field(
        default_factory=list, description="Tables in the public schema"
    )
    error: str | None = Field(None, description="Error message if connection failed")
    latency_ms: float | None = Field(
        None, ge=0, description="Connection latency in milliseconds"
    )


@beartype
async def check_database_connection(
    settings: Settings, connector: Connector = asyncpg.connect
) -> DatabaseCheckResult:
    """Check database connectivity and return detailed results."""
    if not settings.database_url:
        return DatabaseCheckResult(
            connected=False,
            error="DATABASE_URL environment variable is not set",
        )

    start_time = time.perf_counter()

    try:
        conn = await connector(
            settings.database_url,
            timeout=settings.db_connect_timeout,
            command_timeout=settings.db_command_timeout,
        )
        try:
            # Test basic connectivity
            await conn.fetchval("SELECT 1")
            latency_ms = (time.perf_counter() - start_time) * 1000

            database_name = await conn.fetchval("SELECT current_database()")
            version_info = await conn.fetchval("SELECT version()")
            rows = await conn.fetch(
                """
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = 'public'
                ORDER BY table_name
                """
            )
        finally:
            await conn.close()

    except Exception as e:
        error_msg = f"{type(e).__name__}: {str(e)}"
        return DatabaseCheckResult(connected=False, error=error_msg)

    return DatabaseCheckResult(
        connected=True,
        database_name=database_name,
        version=version_info,
        tables=[row["table_name"] for row in rows],
        latency_ms=round(latency_ms, 2),
    )


@beartype
def print_report(result: DatabaseCheckResult) -> None:
    """Print a human-readable report of a check result."""
    print("🗄️  PostgreSQL Database Connectivity Check")
    print("=" * 50)

    if not result.connected:
        print("\n❌ Failed to connect to database!")
        print(f"  Error: {result.error}")
        print("\n💡 Troubleshooting tips:")
        print("  1. Check DATABASE_URL in the environment")
        print("  2. Ensure PostgreSQL is running")
        print("  3. Verify database credentials")
        print("  4. Check network connectivity")
        return

    print("\n✅ Successfully connected to database!")
    print(f"  📍 Database: {result.database_name}")
    print(f"  🔢 Version: {result.version}")
    print(f"  ⚡ Latency: {result.latency_ms}ms")

    if result.tables:
        print(f"\n📋 Found {len(result.tables)} tables:")
        for table in result.tables:
            print(f"  - {table}")
    else:
        print("\n⚠️  No tables found in public schema")


@beartype
def main() -> None:
    """Run database connectivity checks."""
    result = asyncio.run(check_database_connection(get_settings()))
    print_report(result)
    if not result.connected:
        sys.exit(1)


if __name__ == "__main__":
    main()

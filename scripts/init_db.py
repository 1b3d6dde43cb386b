"""Script to create the messaging schema directly from the table definitions."""

import asyncio

from sqlalchemy import text

from app.database import create_database
from app.models import metadata


async def init_db() -> None:
    """Create every table that does not exist yet."""
    database = create_database()
    try:
        async with database.engine.begin() as conn:
            if conn.dialect.name == "postgresql":
                await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

            await conn.run_sync(metadata.create_all)

        print(f"✓ Database initialized successfully ({len(metadata.tables)} tables)")
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())

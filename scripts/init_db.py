"""Script to create the scheduling tables without running migrations."""

import asyncio

from sqlalchemy import text

from clinic_booking.config import get_settings
from clinic_booking.database import create_engine_from_settings
from clinic_booking.models import metadata


async def init_db() -> None:
    """Create patients, appointments and audit_logs."""
    engine = create_engine_from_settings(get_settings())

    async with engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())

"""Script to initialize the database.

Usage:
    python scripts/init_db.py            # create tables
    python scripts/init_db.py --seed     # create tables and a demo clinic setup
"""

import asyncio
import sys
from uuid import uuid4

import structlog
from sqlalchemy import insert, text

from app.config import settings
from app.database import engine
from app.models import appointment_types, metadata, providers
from app.schemas.appointment_types import AppointmentTypeCreate
from app.schemas.providers import ProviderCreate

logger = structlog.get_logger()


async def init_db(seed: bool = False) -> None:
    """Create all scheduling tables, optionally with demo data."""
    async with engine.begin() as conn:
        if engine.dialect.name == "postgresql":
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        await conn.run_sync(metadata.create_all)
        logger.info("database_initialized", dialect=engine.dialect.name)

        if seed:
            clinic_id = uuid4()
            cleaning = AppointmentTypeCreate(name="Cleaning", category="cleaning", duration=60)
            consultation = AppointmentTypeCreate(
                name="Consultation",
                category="consultation",
                duration=30,
                buffer_before=5,
                buffer_after=5,
            )
            type_ids = [uuid4(), uuid4()]
            await conn.execute(
                insert(appointment_types),
                [
                    {"id": type_id, "clinic_id": clinic_id, **item.model_dump(mode="json")}
                    for type_id, item in zip(type_ids, [cleaning, consultation], strict=True)
                ],
            )

            provider = ProviderCreate(
                name="Dr. Demo",
                timezone=settings.default_timezone,
                appointment_type_ids=type_ids,
            )
            values = provider.model_dump(mode="json", exclude={"working_hours"})
            values["working_hours"] = provider.working_hours.to_document()
            await conn.execute(insert(providers).values(clinic_id=clinic_id, **values))
            logger.info("demo_data_seeded", clinic_id=str(clinic_id))

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db(seed="--seed" in sys.argv[1:]))

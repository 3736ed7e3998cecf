"""Database models."""

from sqlalchemy import MetaData

from app.models.appointment_types import appointment_types
from app.models.appointment_types import metadata as appointment_types_metadata
from app.models.appointments import appointments
from app.models.appointments import metadata as appointments_metadata
from app.models.providers import metadata as providers_metadata
from app.models.providers import providers

# Combined metadata for create_all / migrations
metadata = MetaData()
for _source in (appointments_metadata, appointment_types_metadata, providers_metadata):
    for _table in _source.tables.values():
        _table.to_metadata(metadata)

__all__ = [
    "appointment_types",
    "appointments",
    "metadata",
    "providers",
]

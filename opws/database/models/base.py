"""
Declarative base and shared column types for OPWS models.
"""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# PostgreSQL schema holding every OPWS table. SQLite test engines drop it
# through a schema_translate_map.
SCHEMA = "opws"

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass

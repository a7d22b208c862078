"""Shared column types for the coworking models."""

from sqlalchemy import JSON, Text
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON everywhere else
JSONType = JSONB(astext_type=Text()).with_variant(JSON(), "sqlite")

"""Shared table metadata."""

from sqlalchemy import MetaData

# Metadata for all tables
metadata = MetaData()

"""Ingestion ORM models (toll records and import sessions)."""

from etc_ingestion.models.records import ImportSessionModel, TollRecordModel

__all__ = ["ImportSessionModel", "TollRecordModel"]

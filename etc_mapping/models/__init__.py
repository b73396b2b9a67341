"""Mapping ORM models."""

from etc_mapping.models.mapping import MappingModel

__all__ = ["MappingModel"]

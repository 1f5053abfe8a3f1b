"""Clients for the three content backends."""

from .database import DatabaseUnavailable, RelationalBackend
from .metadata import MetadataClient
from .tree import TreeClient

__all__ = ["DatabaseUnavailable", "MetadataClient", "RelationalBackend", "TreeClient"]

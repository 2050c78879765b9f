"""
Storage abstractions.

Integration Points:
- MetadataStorage -> PostgreSQL/MySQL tables (permissions, roles,
  auth_groups and their edge tables)
"""

from gatehouse.storage.base import (
    MetadataStorage,
    Collections,
)
from gatehouse.storage.local import InMemoryMetadataStorage, create_local_storage

__all__ = [
    "MetadataStorage",
    "Collections",
    "InMemoryMetadataStorage",
    "create_local_storage",
]

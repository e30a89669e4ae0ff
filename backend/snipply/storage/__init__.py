# Storage package init
"""
Snipply Backend — Storage Layer
================================

    Storage (abc)
    ├── MemoryStorage     process-local dicts (STORAGE_BACKEND=memory)
    └── DatabaseStorage   SQLAlchemy async session (STORAGE_BACKEND=database)
"""

from snipply.storage.base import Storage
from snipply.storage.database import DatabaseStorage
from snipply.storage.memory import MemoryStorage, memory_storage

__all__ = ["DatabaseStorage", "MemoryStorage", "Storage", "memory_storage"]

"""
JSON file stores for aliases, saved queries and query history.
"""

from .json_store import JsonFileStore, JsonMappingStore
from .aliases import AliasStore
from .saved_queries import SavedQueryStore

__all__ = [
    "JsonFileStore",
    "JsonMappingStore",
    "AliasStore",
    "SavedQueryStore",
]

"""Named SQL snippets kept for reuse between sessions."""

import logging
from typing import Dict

import sqlparse

from .json_store import JsonMappingStore

logger = logging.getLogger(__name__)


class SavedQueryStore(JsonMappingStore):
    """Query name -> SQL text mapping backed by a JSON object."""

    label = "saved-query"

    def get_queries(self) -> Dict[str, str]:
        return self.read_mapping()

    def get_query(self, name: str) -> str:
        queries = self.get_queries()
        if name not in queries:
            raise KeyError(name)
        return queries[name]

    def save_query(self, name: str, sql: str) -> None:
        """
        Save or overwrite a named query.

        Args:
            name: Name shown to the operator
            sql: SQL text; must contain at least one statement

        Raises:
            ValueError: If name is blank or sql holds no statement
            StoreCorruptError: If the existing store file cannot be parsed
        """
        if not name.strip():
            raise ValueError("Saved query name cannot be empty")
        if not [stmt for stmt in sqlparse.split(sql) if stmt.strip().rstrip(";").strip()]:
            raise ValueError(f"Saved query '{name}' contains no SQL statement")

        self.set_item(name, sql)
        logger.info(f"Saved query '{name}'")

    def remove_query(self, name: str) -> bool:
        removed = self.remove_item(name)
        if removed:
            logger.info(f"Removed saved query '{name}'")
        else:
            logger.warning(f"Saved query '{name}' not found")
        return removed

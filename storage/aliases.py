"""
Connection alias resolution.

Maps short names to full connection strings so callers can pass either
form to open_provider().
"""

import logging
from typing import Dict

from .json_store import JsonMappingStore

logger = logging.getLogger(__name__)


class AliasStore(JsonMappingStore):
    """Alias name -> connection string mapping backed by a JSON object."""

    label = "alias"

    def get_aliases(self) -> Dict[str, str]:
        """
        Read every alias.

        A missing store is created as an empty placeholder object. This
        never raises for unreadable content; it logs and returns {}.
        """
        with self.locked():
            if not self.exists():
                try:
                    self.save({})
                    logger.info(f"Created placeholder alias store at {self.path}")
                except OSError as e:
                    logger.warning(f"Could not create alias store {self.path}: {e}")
                return {}
            return self.read_mapping()

    def resolve(self, value: str) -> str:
        """Return the connection string for an alias, or value unchanged."""
        aliases = self.get_aliases()
        if value in aliases:
            logger.info(f"Alias '{value}' resolved to a connection string")
            return aliases[value]
        logger.info("Connection input used as literal (no matching alias)")
        return value

    def save_alias(self, name: str, connection_string: str) -> None:
        self.set_item(name, connection_string)
        logger.info(f"Saved alias '{name}'")

    def remove_alias(self, name: str) -> bool:
        removed = self.remove_item(name)
        if removed:
            logger.info(f"Removed alias '{name}'")
        else:
            logger.warning(f"Alias '{name}' not found")
        return removed

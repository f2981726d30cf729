"""
Database providers.

One provider class per engine, looked up by engine name.
"""

import logging
from typing import Dict, Type

from ..exceptions import ProviderNotImplementedError
from .contract import DatabaseProvider
from .base import BaseProvider
from .sqlserver import SqlServerProvider

logger = logging.getLogger(__name__)

PROVIDERS: Dict[str, Type[BaseProvider]] = {
    SqlServerProvider.ENGINE_NAME: SqlServerProvider,
}


def create_provider(engine: str = "sqlserver", **kwargs) -> BaseProvider:
    """
    Build a provider for the named engine.

    Args:
        engine: Registered engine name (case-insensitive)
        **kwargs: Passed to the provider constructor

    Raises:
        ProviderNotImplementedError: If no provider is registered for engine
    """
    provider_cls = PROVIDERS.get(engine.strip().lower())
    if provider_cls is None:
        logger.error(f"No provider registered for engine '{engine}'")
        raise ProviderNotImplementedError(engine, "create_provider")
    return provider_cls(**kwargs)


__all__ = [
    "DatabaseProvider",
    "BaseProvider",
    "SqlServerProvider",
    "PROVIDERS",
    "create_provider",
]

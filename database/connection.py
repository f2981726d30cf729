"""
Entry point for opening a provider from operator input.

Resolves connection aliases, builds the configured provider wired to the
query history store, and connects it.
"""

import logging
from typing import Optional

from config.settings import Settings, get_settings
from history.auditor import QueryAuditor
from storage.aliases import AliasStore

from .providers import BaseProvider, create_provider

logger = logging.getLogger(__name__)


def open_provider(
    target: str,
    engine: Optional[str] = None,
    settings: Optional[Settings] = None,
    **provider_kwargs,
) -> BaseProvider:
    """
    Connect to a database given an alias or a literal connection string.

    Args:
        target: Alias name or connection string
        engine: Engine name. If None, uses settings.default_engine.
        settings: Settings to read store paths from. If None, uses global settings.
        **provider_kwargs: Extra provider constructor arguments

    Returns:
        A connected provider

    Raises:
        DatabaseConnectionError: If the connection cannot be opened
        ProviderNotImplementedError: If the engine has no provider
    """
    settings = settings or get_settings()
    connection_input = AliasStore(settings.aliases_path).resolve(target)

    provider_kwargs.setdefault("name", settings.display_name)
    provider_kwargs.setdefault("config", settings.provider_config())
    provider_kwargs.setdefault("auditor", QueryAuditor(settings.history_path))

    provider = create_provider(engine or settings.default_engine, **provider_kwargs)
    provider.connect(connection_input)
    return provider

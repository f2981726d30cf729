"""
Database layer for the database administration core.

This module provides the provider contract, the SQL Server provider built on
SQLAlchemy, result and descriptor models, and the error hierarchy.
"""

# Don't import submodules by default; providers pull in SQLAlchemy and the stores
__all__ = [
    "connection",
    "exceptions",
    "models",
    "providers",
]

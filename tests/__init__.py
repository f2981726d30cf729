"""
Test Suite for the database administration core.

Covers the provider contract, the SQL Server provider against a scripted
fake engine, the JSON stores, query history and logging setup.
"""

__version__ = "0.1.0"

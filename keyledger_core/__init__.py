"""
KeyLedger Core Package
======================
Key-record management primitives shared by the KeyLedger API service.

Provides:
- Key lifecycle resolution (valid / expired / deleted / not found)
- Bounded activity log of administrative actions
- Pluggable storage providers (memory, JSON file, SQLite, remote REST)
- FastAPI application exposing the management API
"""

__version__ = "0.1.0"

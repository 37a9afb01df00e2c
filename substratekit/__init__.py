"""Storage key hashing and queries, transaction tracking and runtime updates for Substrate nodes."""

__version__ = "0.1.0"

__all__ = ["errors", "events", "hashing", "state", "storage", "transaction", "updates"]
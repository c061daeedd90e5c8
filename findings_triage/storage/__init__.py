"""Persistence of mirror links and undo records."""

from .manager import MetadataStore, StorageManager

__all__ = ["MetadataStore", "StorageManager"]

"""Storage Module - flat-file JSON store and typed group records."""
from storage.store import KeyValueStore, JsonFileStore
from storage.repository import GroupRepository

__all__ = ['KeyValueStore', 'JsonFileStore', 'GroupRepository']

"""
Flat-file JSON store.

Every group lives under ``<data_root>/groups/<groupId>/`` as a tree of small
JSON documents. The store is a key-value interface over that tree: keys are
path segments, values are JSON-serializable objects.

Writes are last-writer-wins. There is no locking, so two writers doing a
read-modify-write on the same key can lose an update.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, List

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract JSON blob store keyed by path segments."""

    @abstractmethod
    def read_json(self, *key: str, default: Any = None) -> Any:
        """Return the stored value, or ``default`` when missing or unreadable."""
        pass

    @abstractmethod
    def write_json(self, *key: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete(self, *key: str) -> bool:
        """Delete a key. Returns True if something was removed."""
        pass

    @abstractmethod
    def exists(self, *key: str) -> bool:
        pass

    @abstractmethod
    def list_keys(self, *prefix: str) -> List[str]:
        """List the names directly under ``prefix`` (sorted)."""
        pass

    @abstractmethod
    def path_for(self, *key: str) -> str:
        """Filesystem path backing a key (media files are read by path)."""
        pass


class JsonFileStore(KeyValueStore):
    """KeyValueStore backed by JSON files under a root directory."""

    def __init__(self, root: str = "."):
        self.root = os.path.abspath(root)

    def path_for(self, *key: str) -> str:
        return os.path.join(self.root, *key)

    def read_json(self, *key: str, default: Any = None) -> Any:
        path = self.path_for(*key)
        if not os.path.exists(path):
            return default

        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            logger.error(f"Error reading {path}: {e}")
            return default

        if not content.strip():
            return default

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt JSON in {path}, treating as empty: {e}")
            return default

    def write_json(self, *key: str, value: Any) -> None:
        path = self.path_for(*key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(value, f, indent=2, ensure_ascii=False)

    def delete(self, *key: str) -> bool:
        path = self.path_for(*key)
        if not os.path.isfile(path):
            return False
        os.remove(path)
        return True

    def exists(self, *key: str) -> bool:
        return os.path.exists(self.path_for(*key))

    def list_keys(self, *prefix: str) -> List[str]:
        path = self.path_for(*prefix)
        if not os.path.isdir(path):
            return []
        return sorted(os.listdir(path))

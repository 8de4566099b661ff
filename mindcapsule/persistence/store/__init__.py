"""Environment primitives: filesystem and key/value store implementations."""

from mindcapsule.persistence.store.base import DirectoryPicker, DirEntry, FileSystem, KeyValueStore
from mindcapsule.persistence.store.kv import JsonFileStore
from mindcapsule.persistence.store.local import LocalFileSystem

__all__ = ["DirEntry", "DirectoryPicker", "FileSystem", "JsonFileStore", "KeyValueStore", "LocalFileSystem"]

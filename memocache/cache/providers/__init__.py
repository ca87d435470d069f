from .base import BaseStorageProvider, EnvelopeStorageProvider
from .browser_kv import BrowserKVStorageProvider, KeyValueStore, MemoryKeyValueStore
from .filesystem import FilesystemStorageProvider
from .object_storage import MemoryObjectStorageClient, ObjectStorageClient, ObjectStorageProvider

__all__ = [
    "BaseStorageProvider",
    "BrowserKVStorageProvider",
    "EnvelopeStorageProvider",
    "FilesystemStorageProvider",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "MemoryObjectStorageClient",
    "ObjectStorageClient",
    "ObjectStorageProvider",
]

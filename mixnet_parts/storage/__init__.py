from mixnet_parts.storage.kv import KeyNotFound, KVStore, MemoryStore, VersionedKV, VersionedObject

__all__ = ["KeyNotFound", "KVStore", "MemoryStore", "VersionedKV", "VersionedObject"]

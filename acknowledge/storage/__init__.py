"""
acknowledge.storage — Persistence layer.

Modules:
    cache — On-disk JSON response cache (DiskCache) and its in-memory
            counterpart (MemoryCache) for tests.
"""

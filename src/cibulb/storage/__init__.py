from cibulb.storage.repository_store import RepositoryStore, StoreConnection

__all__ = [
    "RepositoryStore",
    "StoreConnection",
]

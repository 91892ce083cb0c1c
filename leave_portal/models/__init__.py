from .storage import StorageEntry

__all__ = ["StorageEntry"]

from eudora.models.collection import StoredCollection

__all__ = ["StoredCollection"]

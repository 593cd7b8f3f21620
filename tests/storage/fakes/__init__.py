# Fake implementations for testing

from .fake_object_store import FakeObjectStore, StoredObject, store_error

__all__ = ["FakeObjectStore", "StoredObject", "store_error"]

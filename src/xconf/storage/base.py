"""Resource store contract used to load and persist configuration documents."""

from __future__ import annotations

from typing import Iterable, Protocol


class StoreError(RuntimeError):
    """Raised when the underlying store cannot complete a request."""


class Collection(Protocol):
    """Handle to a single collection of named resources."""

    path: str

    def get_resource(self, name: str) -> str | None:
        """Return the resource content, or None if it does not exist."""
        ...

    def store_resource(self, name: str, content: str) -> None:
        """Create or overwrite a resource."""
        ...


class ResourceStore(Protocol):
    def get_collection(self, path: str) -> Collection | None:
        """Return a handle to ``path``, or None if the collection does not exist."""
        ...

    def create_collection(self, path: str) -> Collection:
        ...

    def list_collections(self) -> Iterable[str]:
        ...

    def close(self) -> None:
        ...

"""Core xconf data models."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Dict, Generic, Iterator, List, Literal, TypeVar

ACTION_INCLUDE = "include"
ACTION_EXCLUDE = "exclude"
PATH_ACTIONS = (ACTION_INCLUDE, ACTION_EXCLUDE)

PathAction = Literal["include", "exclude"]

T = TypeVar("T")


@dataclass(slots=True)
class IndexPathEntry:
    """Include/exclude path of the full-text index."""

    path: str
    action: PathAction


@dataclass(slots=True)
class RangeIndexEntry:
    """Path indexed as a typed, range-queryable value."""

    xpath: str
    scalar_type: str


@dataclass(slots=True)
class QNameIndexEntry:
    """Qualified name indexed as a typed, range-queryable value."""

    qname: str
    scalar_type: str


@dataclass(slots=True)
class TriggerEntry:
    """Binding from a lifecycle event to a handler class."""

    event: str
    handler_class: str
    parameters: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class Section(Generic[T]):
    """Ordered list of entries that may be absent from the source document.

    ``items is None`` means the section was absent, an empty list means it was
    present without entries. Appending always leaves the section present,
    removing its last entry makes it absent again.
    """

    items: List[T] | None = None

    @property
    def present(self) -> bool:
        return self.items is not None

    def __len__(self) -> int:
        return len(self.items) if self.items is not None else 0

    def __iter__(self) -> Iterator[T]:
        return iter(self.items or ())

    def contains_index(self, index: int) -> bool:
        return 0 <= index < len(self)

    def get(self, index: int) -> T:
        if not self.contains_index(index):
            raise IndexError(f"index {index} out of range for {len(self)} entries")
        return self.items[index]  # type: ignore[index]

    def append(self, item: T) -> None:
        if self.items is None:
            self.items = []
        self.items.append(item)

    def remove_at(self, index: int) -> bool:
        """Remove the entry at ``index``; return False when out of range."""
        if not self.contains_index(index):
            return False
        if len(self) == 1:
            self.items = None
        else:
            del self.items[index]  # type: ignore[union-attr]
        return True

    def snapshot(self) -> List[T]:
        """Return independent copies of the entries."""
        return deepcopy(list(self.items or ()))


@dataclass(slots=True)
class FullTextIndexModel:
    """Full-text indexing policy with explicit path overrides."""

    default_all: bool = False
    index_attributes: bool = False
    index_alphanum: bool = False
    paths: Section[IndexPathEntry] = field(default_factory=Section)

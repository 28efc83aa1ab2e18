"""Editable model of a collection's collection.xconf."""

from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import asdict
from typing import Any, Dict, List, Mapping

from xconf.config import COLLECTION_CONFIG_FILENAME, config_path_for
from xconf.dialect.parser import ParsedConfig, XConfParseError, parse_document
from xconf.dialect.serializer import XmlFormat, serialize
from xconf.models import (
    PATH_ACTIONS,
    FullTextIndexModel,
    IndexPathEntry,
    QNameIndexEntry,
    RangeIndexEntry,
    Section,
    TriggerEntry,
)
from xconf.storage.base import Collection, ResourceStore, StoreError

LOGGER = logging.getLogger(__name__)


def _check_path(xpath: str) -> None:
    if not xpath:
        raise ValueError("Full-text path must not be empty")


def _check_action(action: str) -> None:
    if action not in PATH_ACTIONS:
        raise ValueError(f"Invalid full-text action {action!r}, expected one of {PATH_ACTIONS}")


class ConfigDocument:
    """Index and trigger configuration of one collection.

    Loading happens on construction. A missing configuration collection or
    resource gives an empty document that can be filled in and saved. A
    malformed resource also gives an empty document, with the failure kept in
    :attr:`parse_error`; pass ``strict=True`` to raise it instead.
    """

    def __init__(
        self,
        collection_name: str,
        store: ResourceStore,
        *,
        fmt: XmlFormat | None = None,
        strict: bool = False,
    ) -> None:
        self.collection_name = collection_name
        self.path = config_path_for(collection_name)
        self.store = store
        self.fmt = fmt or XmlFormat()
        self.parse_error: XConfParseError | None = None

        self._fulltext: FullTextIndexModel | None = None
        self._range_indexes: Section[RangeIndexEntry] = Section()
        self._qname_indexes: Section[QNameIndexEntry] = Section()
        self._triggers: Section[TriggerEntry] = Section()
        self._dirty = False

        self._collection: Collection | None = store.get_collection(self.path)
        if self._collection is None:
            LOGGER.debug("No configuration collection at %s", self.path)
            return

        content = self._collection.get_resource(COLLECTION_CONFIG_FILENAME)
        if content is None:
            LOGGER.debug("No %s in %s", COLLECTION_CONFIG_FILENAME, self.path)
            return

        result = parse_document(content)
        if result.error is not None:
            if strict:
                raise result.error
            self.parse_error = result.error
            LOGGER.warning("Ignoring unreadable configuration at %s: %s", self.path, result.error)
            return

        self._apply(result.config)
        LOGGER.info("Loaded configuration for %s", collection_name)

    def _apply(self, parsed: ParsedConfig | None) -> None:
        if parsed is None:
            return
        self._fulltext = parsed.fulltext
        self._range_indexes = parsed.range_indexes
        self._qname_indexes = parsed.qname_indexes
        self._triggers = parsed.triggers

    # -- change tracking ---------------------------------------------------

    @property
    def dirty(self) -> bool:
        return self._dirty

    def has_changed(self) -> bool:
        """Whether the configuration was modified since it was loaded."""
        return self._dirty

    def _touch(self) -> None:
        self._dirty = True

    # -- presence ----------------------------------------------------------

    def has_fulltext_index(self) -> bool:
        return self._fulltext is not None

    def has_fulltext_paths(self) -> bool:
        return self._fulltext is not None and self._fulltext.paths.present

    def has_range_indexes(self) -> bool:
        return self._range_indexes.present

    def has_qname_indexes(self) -> bool:
        return self._qname_indexes.present

    def has_triggers(self) -> bool:
        return self._triggers.present

    # -- full-text index ---------------------------------------------------

    def _materialize_fulltext(self) -> FullTextIndexModel:
        if self._fulltext is None:
            self._fulltext = FullTextIndexModel()
        return self._fulltext

    def get_fulltext_default_all(self) -> bool:
        return self._fulltext.default_all if self._fulltext is not None else False

    def set_fulltext_default_all(self, default_all: bool) -> None:
        self._materialize_fulltext().default_all = default_all
        self._touch()

    def get_fulltext_attributes(self) -> bool:
        return self._fulltext.index_attributes if self._fulltext is not None else False

    def set_fulltext_attributes(self, attributes: bool) -> None:
        self._materialize_fulltext().index_attributes = attributes
        self._touch()

    def get_fulltext_alphanum(self) -> bool:
        return self._fulltext.index_alphanum if self._fulltext is not None else False

    def set_fulltext_alphanum(self, alphanum: bool) -> None:
        self._materialize_fulltext().index_alphanum = alphanum
        self._touch()

    def _fulltext_paths(self) -> Section[IndexPathEntry]:
        return self._fulltext.paths if self._fulltext is not None else Section()

    def get_fulltext_path_count(self) -> int:
        return len(self._fulltext_paths())

    def get_fulltext_path(self, index: int) -> str:
        return self._fulltext_paths().get(index).path

    def get_fulltext_path_action(self, index: int) -> str:
        return self._fulltext_paths().get(index).action

    def get_fulltext_paths(self) -> List[IndexPathEntry]:
        return self._fulltext_paths().snapshot()

    def add_fulltext_path(self, xpath: str, action: str) -> None:
        _check_path(xpath)
        _check_action(action)
        self._materialize_fulltext().paths.append(IndexPathEntry(xpath, action))  # type: ignore[arg-type]
        self._touch()

    def update_fulltext_path(
        self, index: int, xpath: str | None = None, action: str | None = None
    ) -> None:
        """Overwrite the given fields of a path; ``None`` leaves a field untouched."""
        entry = self._fulltext_paths().get(index)
        if xpath is not None:
            _check_path(xpath)
        if action is not None:
            _check_action(action)

        if xpath is not None:
            entry.path = xpath
        if action is not None:
            entry.action = action  # type: ignore[assignment]
        self._touch()

    def delete_fulltext_path(self, index: int) -> None:
        if self._fulltext_paths().remove_at(index):
            self._touch()

    # -- range indexes -----------------------------------------------------

    def get_range_indexes(self) -> List[RangeIndexEntry]:
        return self._range_indexes.snapshot()

    def get_range_index(self, index: int) -> RangeIndexEntry:
        return deepcopy(self._range_indexes.get(index))

    def get_range_index_count(self) -> int:
        return len(self._range_indexes)

    def add_range_index(self, xpath: str, scalar_type: str) -> None:
        self._range_indexes.append(RangeIndexEntry(xpath, scalar_type))
        self._touch()

    def update_range_index(
        self, index: int, xpath: str | None = None, scalar_type: str | None = None
    ) -> None:
        entry = self._range_indexes.get(index)
        if xpath is not None:
            entry.xpath = xpath
        if scalar_type is not None:
            entry.scalar_type = scalar_type
        self._touch()

    def delete_range_index(self, index: int) -> None:
        if self._range_indexes.remove_at(index):
            self._touch()

    # -- qname indexes -----------------------------------------------------

    def get_qname_indexes(self) -> List[QNameIndexEntry]:
        return self._qname_indexes.snapshot()

    def get_qname_index(self, index: int) -> QNameIndexEntry:
        return deepcopy(self._qname_indexes.get(index))

    def get_qname_index_count(self) -> int:
        return len(self._qname_indexes)

    def add_qname_index(self, qname: str, scalar_type: str) -> None:
        self._qname_indexes.append(QNameIndexEntry(qname, scalar_type))
        self._touch()

    def update_qname_index(
        self, index: int, qname: str | None = None, scalar_type: str | None = None
    ) -> None:
        entry = self._qname_indexes.get(index)
        if qname is not None:
            entry.qname = qname
        if scalar_type is not None:
            entry.scalar_type = scalar_type
        self._touch()

    def delete_qname_index(self, index: int) -> None:
        if self._qname_indexes.remove_at(index):
            self._touch()

    # -- triggers ----------------------------------------------------------

    def get_triggers(self) -> List[TriggerEntry]:
        return self._triggers.snapshot()

    def get_trigger(self, index: int) -> TriggerEntry:
        return deepcopy(self._triggers.get(index))

    def get_trigger_count(self) -> int:
        return len(self._triggers)

    def add_trigger(
        self,
        event: str,
        handler_class: str,
        parameters: Mapping[str, str] | None = None,
    ) -> None:
        params: Dict[str, str] = dict(parameters or {})
        self._triggers.append(TriggerEntry(event, handler_class, params))
        self._touch()

    def delete_trigger(self, index: int) -> None:
        if self._triggers.remove_at(index):
            self._touch()

    # -- persistence -------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation of the model; absent sections map to None."""
        fulltext = None
        if self._fulltext is not None:
            fulltext = {
                "default_all": self._fulltext.default_all,
                "attributes": self._fulltext.index_attributes,
                "alphanum": self._fulltext.index_alphanum,
                "paths": [asdict(entry) for entry in self._fulltext.paths]
                if self._fulltext.paths.present
                else None,
            }

        def _section(section: Section[Any]) -> List[Dict[str, Any]] | None:
            return [asdict(entry) for entry in section] if section.present else None

        return {
            "collection": self.collection_name,
            "path": self.path,
            "dirty": self._dirty,
            "fulltext": fulltext,
            "range_indexes": _section(self._range_indexes),
            "qname_indexes": _section(self._qname_indexes),
            "triggers": _section(self._triggers),
        }

    def to_xml(self) -> str:
        return serialize(
            self._fulltext,
            self._range_indexes,
            self._qname_indexes,
            self._triggers,
            fmt=self.fmt,
        )

    def save(self) -> bool:
        """Write the configuration back to the store.

        Returns:
            True if the store accepted the document, False otherwise.
        """
        try:
            if self._collection is None:
                self._collection = self.store.create_collection(self.path)
            self._collection.store_resource(COLLECTION_CONFIG_FILENAME, self.to_xml())
        except StoreError as exc:
            LOGGER.error("Failed to save configuration to %s: %s", self.path, exc)
            return False

        LOGGER.info("Saved configuration for %s", self.collection_name)
        return True

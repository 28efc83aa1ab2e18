"""Tests for ConfigDocument."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from xconf.config import COLLECTION_CONFIG_FILENAME, config_path_for
from xconf.dialect.parser import XConfParseError
from xconf.dialect.serializer import XmlFormat
from xconf.document import ConfigDocument
from xconf.models import QNameIndexEntry, RangeIndexEntry
from xconf.storage.base import StoreError
from xconf.storage.sqlite import SQLiteResourceStore

COLLECTION = "/db/books"

XCONF = """<collection xmlns="http://exist-db.org/collection-config/1.0">
    <index>
        <fulltext default="all" attributes="true" alphanum="false">
            <include path="//title"/>
            <exclude path="//meta"/>
        </fulltext>
        <create path="//price" type="xs:double"/>
        <create path="//date" type="xs:date"/>
        <create qname="author" type="xs:string"/>
    </index>
    <triggers>
        <trigger event="store" class="org.example.Audit">
            <parameter name="log" value="audit.log"/>
        </trigger>
    </triggers>
</collection>
"""


@pytest.fixture
def store(tmp_path):
    """Create a temporary resource store."""
    store = SQLiteResourceStore(tmp_path / "resources.db")
    yield store
    store.close()


def _seed(store: SQLiteResourceStore, content: str, collection: str = COLLECTION) -> None:
    store.create_collection(config_path_for(collection)).store_resource(
        COLLECTION_CONFIG_FILENAME, content
    )


@pytest.fixture
def loaded(store):
    _seed(store, XCONF)
    return ConfigDocument(COLLECTION, store)


class TestLoading:
    """Test constructing documents from the store."""

    def test_missing_collection_gives_empty_document(self, store) -> None:
        """No configuration collection is not an error."""
        document = ConfigDocument(COLLECTION, store)

        assert document.path == "/db/system/config/db/books"
        assert not document.has_fulltext_index()
        assert not document.has_range_indexes()
        assert not document.has_qname_indexes()
        assert not document.has_triggers()
        assert document.parse_error is None
        assert document.has_changed() is False

    def test_missing_resource_gives_empty_document(self, store) -> None:
        """A configuration collection without collection.xconf is empty."""
        store.create_collection(config_path_for(COLLECTION))

        document = ConfigDocument(COLLECTION, store)

        assert document.get_range_index_count() == 0
        assert document.parse_error is None

    def test_loaded_sections(self, loaded) -> None:
        """All sections are read from the stored document."""
        assert loaded.get_fulltext_default_all() is True
        assert loaded.get_fulltext_attributes() is True
        assert loaded.get_fulltext_alphanum() is False
        assert loaded.get_fulltext_path_count() == 2
        assert loaded.get_fulltext_path(0) == "//title"
        assert loaded.get_fulltext_path_action(1) == "exclude"
        assert loaded.get_range_index_count() == 2
        assert loaded.get_qname_index(0) == QNameIndexEntry("author", "xs:string")
        assert loaded.get_trigger(0).parameters == {"log": "audit.log"}
        assert loaded.dirty is False

    def test_no_fulltext_element(self, store) -> None:
        """Without a fulltext element getters fall back to defaults."""
        _seed(store, '<collection><index><create path="/a" type="xs:int"/></index></collection>')

        document = ConfigDocument(COLLECTION, store)

        assert document.get_fulltext_default_all() is False
        assert document.get_fulltext_path_count() == 0
        assert not document.has_fulltext_index()

    def test_malformed_document_falls_back_to_empty(self, store) -> None:
        """Parse failures leave an empty document and record the error."""
        _seed(store, "<collection><index>")

        document = ConfigDocument(COLLECTION, store)

        assert isinstance(document.parse_error, XConfParseError)
        assert document.get_range_index_count() == 0
        assert not document.has_fulltext_index()
        assert document.has_changed() is False

    def test_malformed_document_strict(self, store) -> None:
        """Strict loading raises the parse error."""
        _seed(store, "<collection><index>")

        with pytest.raises(XConfParseError):
            ConfigDocument(COLLECTION, store, strict=True)

    def test_load_failure_propagates(self) -> None:
        """Store faults while loading are not hidden."""
        store = MagicMock()
        store.get_collection.side_effect = StoreError("unreachable")

        with pytest.raises(StoreError):
            ConfigDocument(COLLECTION, store)

    def test_closed_database_raises_store_error(self, tmp_path) -> None:
        """A database that cannot be read fails with StoreError."""
        store = SQLiteResourceStore(tmp_path / "closed.db")
        store.close()

        with pytest.raises(StoreError):
            ConfigDocument(COLLECTION, store)

    def test_instances_are_independent(self, store) -> None:
        """Two documents for the same path do not share state."""
        _seed(store, XCONF)
        first = ConfigDocument(COLLECTION, store)
        second = ConfigDocument(COLLECTION, store)

        first.add_range_index("//extra", "xs:int")
        first.update_range_index(0, xpath="//changed")

        assert second.get_range_index_count() == 2
        assert second.get_range_index(0).xpath == "//price"
        assert second.dirty is False


class TestFullTextMutations:
    """Test full-text flag and path changes."""

    def test_add_path_materializes_model(self, store) -> None:
        """Adding a path to an absent model creates it with flags off."""
        document = ConfigDocument(COLLECTION, store)

        document.add_fulltext_path("/a/b", "include")

        assert document.get_fulltext_path_count() == 1
        assert document.get_fulltext_path(0) == "/a/b"
        assert document.get_fulltext_path_action(0) == "include"
        assert document.get_fulltext_default_all() is False
        assert document.has_fulltext_index()
        assert document.dirty is True

    @pytest.mark.parametrize(
        "setter, expected",
        [
            ("set_fulltext_default_all", (True, False, False)),
            ("set_fulltext_attributes", (False, True, False)),
            ("set_fulltext_alphanum", (False, False, True)),
        ],
    )
    def test_setters_materialize_model(self, store, setter: str, expected: tuple) -> None:
        """Only the targeted flag takes the caller's value."""
        document = ConfigDocument(COLLECTION, store)

        getattr(document, setter)(True)

        flags = (
            document.get_fulltext_default_all(),
            document.get_fulltext_attributes(),
            document.get_fulltext_alphanum(),
        )
        assert flags == expected
        assert document.get_fulltext_path_count() == 0
        assert document.dirty is True

    def test_setter_materializes_with_false_value(self, store) -> None:
        """Setting False on an absent model still creates it."""
        document = ConfigDocument(COLLECTION, store)

        document.set_fulltext_default_all(False)

        assert document.has_fulltext_index()
        assert document.get_fulltext_default_all() is False
        assert document.dirty is True

    def test_setter_mutates_existing_model(self, loaded) -> None:
        """Existing models are changed in place."""
        loaded.set_fulltext_default_all(False)

        assert loaded.get_fulltext_default_all() is False
        assert loaded.get_fulltext_attributes() is True
        assert loaded.get_fulltext_path_count() == 2

    def test_update_path_partial(self, loaded) -> None:
        """None leaves a field untouched."""
        loaded.update_fulltext_path(0, xpath="//heading")

        assert loaded.get_fulltext_path(0) == "//heading"
        assert loaded.get_fulltext_path_action(0) == "include"

        loaded.update_fulltext_path(0, action="exclude")

        assert loaded.get_fulltext_path(0) == "//heading"
        assert loaded.get_fulltext_path_action(0) == "exclude"

    def test_update_path_out_of_range(self, loaded) -> None:
        """Updating a missing path is a programming error."""
        with pytest.raises(IndexError):
            loaded.update_fulltext_path(5, xpath="//x")
        assert loaded.dirty is False

    def test_invalid_action(self, store) -> None:
        """Only include and exclude are accepted."""
        document = ConfigDocument(COLLECTION, store)

        with pytest.raises(ValueError):
            document.add_fulltext_path("//a", "ignore")
        assert document.dirty is False
        assert not document.has_fulltext_index()

    def test_empty_path_rejected(self, loaded) -> None:
        """Paths must not be empty."""
        with pytest.raises(ValueError):
            loaded.add_fulltext_path("", "include")
        with pytest.raises(ValueError):
            loaded.update_fulltext_path(0, xpath="")
        assert loaded.get_fulltext_path(0) == "//title"

    def test_delete_path(self, loaded) -> None:
        """Deleting keeps the remaining paths in order."""
        loaded.delete_fulltext_path(0)

        assert loaded.get_fulltext_path_count() == 1
        assert loaded.get_fulltext_path(0) == "//meta"
        assert loaded.dirty is True

    def test_delete_last_path_makes_section_absent(self, loaded) -> None:
        """Deleting the only path leaves the model without paths."""
        loaded.delete_fulltext_path(1)
        loaded.delete_fulltext_path(0)

        assert loaded.get_fulltext_path_count() == 0
        assert not loaded.has_fulltext_paths()
        assert loaded.has_fulltext_index()

    def test_delete_path_out_of_range(self, loaded) -> None:
        """Out of range deletes change nothing."""
        loaded.delete_fulltext_path(2)

        assert loaded.get_fulltext_path_count() == 2
        assert loaded.dirty is False

    def test_delete_path_on_absent_model(self, store) -> None:
        """Deleting from an absent model is a no-op."""
        document = ConfigDocument(COLLECTION, store)

        document.delete_fulltext_path(0)

        assert document.dirty is False
        assert not document.has_fulltext_index()


class TestRangeMutations:
    """Test range index changes."""

    def test_add(self, loaded) -> None:
        """Adding appends and marks dirty."""
        loaded.add_range_index("//isbn", "xs:string")

        assert loaded.get_range_index_count() == 3
        assert loaded.get_range_index(2) == RangeIndexEntry("//isbn", "xs:string")
        assert loaded.dirty is True

    def test_add_duplicates(self, store) -> None:
        """Duplicate declarations are kept."""
        document = ConfigDocument(COLLECTION, store)

        document.add_range_index("//a", "xs:int")
        document.add_range_index("//a", "xs:int")

        assert document.get_range_index_count() == 2

    def test_update_single_field(self, loaded) -> None:
        """Updating one field leaves everything else alone."""
        before = loaded.get_range_indexes()

        loaded.update_range_index(1, xpath="//published")

        assert loaded.get_range_index(1) == RangeIndexEntry("//published", "xs:date")
        assert loaded.get_range_index(0) == before[0]

    def test_update_in_two_steps_matches_one(self, loaded, store) -> None:
        """Complementary partial updates equal one full update."""
        loaded.update_range_index(0, xpath="//cost")
        loaded.update_range_index(0, scalar_type="xs:decimal")

        other = ConfigDocument(COLLECTION, store)
        other.update_range_index(0, "//cost", "xs:decimal")

        assert loaded.get_range_indexes() == other.get_range_indexes()

    def test_update_keeps_dirty(self, loaded) -> None:
        """An earlier change stays recorded after an update."""
        loaded.add_range_index("//x", "xs:int")
        loaded.update_range_index(0, None, None)

        assert loaded.dirty is True

    @pytest.mark.parametrize("index", [-1, 2, 99])
    def test_update_out_of_range(self, loaded, index: int) -> None:
        """Updating past the end raises IndexError without marking dirty."""
        with pytest.raises(IndexError):
            loaded.update_range_index(index, xpath="//x")
        assert loaded.dirty is False

    def test_update_on_absent_section(self, store) -> None:
        """Updating an absent section raises IndexError."""
        document = ConfigDocument(COLLECTION, store)

        with pytest.raises(IndexError):
            document.update_range_index(0, xpath="//x")

    def test_returned_entries_are_copies(self, loaded) -> None:
        """Editing a returned entry leaves the model and dirty flag alone."""
        loaded.get_range_index(0).xpath = "//changed"
        loaded.get_range_indexes()[1].scalar_type = "xs:int"

        assert loaded.get_range_index(0).xpath == "//price"
        assert loaded.get_range_index(1).scalar_type == "xs:date"
        assert loaded.dirty is False

    def test_delete_first(self, loaded) -> None:
        """Deleting index 0 shifts the second entry to the front."""
        second = loaded.get_range_index(1)

        loaded.delete_range_index(0)

        assert loaded.get_range_indexes() == [second]
        assert loaded.dirty is True

    def test_delete_last_entry_makes_section_absent(self, store) -> None:
        """Removing the only entry returns the section to absent."""
        document = ConfigDocument(COLLECTION, store)
        document.add_range_index("//a", "xs:int")

        document.delete_range_index(0)

        assert document.get_range_index_count() == 0
        assert not document.has_range_indexes()
        assert document.dirty is True

    @pytest.mark.parametrize("index", [-1, 2, 5])
    def test_delete_out_of_range(self, loaded, index: int) -> None:
        """Out of range deletes are ignored."""
        loaded.delete_range_index(index)

        assert loaded.get_range_index_count() == 2
        assert loaded.dirty is False

    def test_getters_return_copies(self, loaded) -> None:
        """The list returned by get_range_indexes is not the model's list."""
        entries = loaded.get_range_indexes()
        entries.clear()

        assert loaded.get_range_index_count() == 2


class TestQNameMutations:
    """Test qname index changes."""

    def test_add_update_delete(self, loaded) -> None:
        """Qname entries follow the same rules as range entries."""
        loaded.add_qname_index("title", "xs:string")
        assert loaded.get_qname_index_count() == 2

        loaded.update_qname_index(1, scalar_type="xs:token")
        assert loaded.get_qname_index(1) == QNameIndexEntry("title", "xs:token")

        loaded.update_qname_index(1, qname="subtitle")
        assert loaded.get_qname_index(1) == QNameIndexEntry("subtitle", "xs:token")

        loaded.delete_qname_index(0)
        assert loaded.get_qname_indexes() == [QNameIndexEntry("subtitle", "xs:token")]

        loaded.delete_qname_index(0)
        assert not loaded.has_qname_indexes()
        assert loaded.get_qname_index_count() == 0

    def test_update_out_of_range(self, loaded) -> None:
        with pytest.raises(IndexError):
            loaded.update_qname_index(1, qname="x")

    def test_delete_out_of_range(self, loaded) -> None:
        loaded.delete_qname_index(1)

        assert loaded.get_qname_index_count() == 1
        assert loaded.dirty is False

    def test_qname_changes_leave_range_untouched(self, loaded) -> None:
        """Both sections come from create elements but are edited separately."""
        loaded.delete_qname_index(0)

        assert loaded.get_range_index_count() == 2
        assert loaded.has_range_indexes()


class TestTriggerMutations:
    """Test trigger declarations."""

    def test_add_trigger(self, store) -> None:
        document = ConfigDocument(COLLECTION, store)
        params = {"a": "1"}

        document.add_trigger("store", "org.example.T", params)
        params["b"] = "2"

        assert document.get_trigger_count() == 1
        assert document.get_trigger(0).parameters == {"a": "1"}
        assert document.dirty is True

    def test_returned_trigger_is_a_copy(self, loaded) -> None:
        loaded.get_trigger(0).parameters["log"] = "other.log"

        assert loaded.get_trigger(0).parameters == {"log": "audit.log"}
        assert loaded.dirty is False

    def test_delete_trigger(self, loaded) -> None:
        loaded.delete_trigger(0)

        assert not loaded.has_triggers()
        assert loaded.dirty is True

    def test_delete_trigger_out_of_range(self, loaded) -> None:
        loaded.delete_trigger(3)

        assert loaded.get_trigger_count() == 1
        assert loaded.dirty is False


class TestSave:
    """Test persisting documents."""

    def test_save_and_reload(self, loaded, store) -> None:
        """Saved state is read back field for field."""
        loaded.add_range_index("//isbn", "xs:string")
        loaded.add_fulltext_path("//abstract", "include")
        loaded.add_trigger("remove", "org.example.Cleanup")

        assert loaded.save() is True

        reloaded = ConfigDocument(COLLECTION, store)
        assert reloaded.get_range_indexes() == loaded.get_range_indexes()
        assert reloaded.get_qname_indexes() == loaded.get_qname_indexes()
        assert reloaded.get_triggers() == loaded.get_triggers()
        assert reloaded.get_fulltext_default_all() == loaded.get_fulltext_default_all()
        assert reloaded.get_fulltext_attributes() == loaded.get_fulltext_attributes()
        assert reloaded.get_fulltext_alphanum() == loaded.get_fulltext_alphanum()
        assert sorted(
            (e.path, e.action) for e in reloaded.get_fulltext_paths()
        ) == sorted((e.path, e.action) for e in loaded.get_fulltext_paths())
        assert reloaded.dirty is False

    def test_save_creates_configuration(self, store) -> None:
        """An empty document can be populated and saved for the first time."""
        document = ConfigDocument(COLLECTION, store)
        document.add_qname_index("author", "xs:string")

        assert document.save() is True
        assert config_path_for(COLLECTION) in store.list_collections()

        reloaded = ConfigDocument(COLLECTION, store)
        assert reloaded.get_qname_indexes() == [QNameIndexEntry("author", "xs:string")]
        assert not reloaded.has_fulltext_index()

    def test_save_empty_document(self, store) -> None:
        """Saving with every section absent writes a valid document."""
        document = ConfigDocument(COLLECTION, store)

        assert document.save() is True
        reloaded = ConfigDocument(COLLECTION, store)
        assert reloaded.parse_error is None
        assert not reloaded.has_range_indexes()

    def test_save_failure_returns_false(self) -> None:
        """Store faults while saving are reported as False."""
        collection = MagicMock()
        collection.get_resource.return_value = None
        collection.store_resource.side_effect = StoreError("disk full")
        store = MagicMock()
        store.get_collection.return_value = collection

        document = ConfigDocument(COLLECTION, store)
        document.add_range_index("//a", "xs:int")

        assert document.save() is False
        assert document.dirty is True

    def test_save_failure_creating_collection(self) -> None:
        store = MagicMock()
        store.get_collection.return_value = None
        store.create_collection.side_effect = StoreError("read only")

        document = ConfigDocument(COLLECTION, store)

        assert document.save() is False

    def test_save_uses_configured_newline(self, store) -> None:
        """The injected format decides the newline."""
        document = ConfigDocument(COLLECTION, store, fmt=XmlFormat(newline="\r\n"))
        document.add_range_index("//a", "xs:int")
        document.save()

        content = store.get_collection(config_path_for(COLLECTION)).get_resource(
            COLLECTION_CONFIG_FILENAME
        )
        assert content.count("\r\n") == content.count("\n")

    def test_to_dict(self, loaded) -> None:
        """to_dict reports absent sections as None."""
        loaded.delete_trigger(0)
        data = loaded.to_dict()

        assert data["collection"] == COLLECTION
        assert data["fulltext"]["default_all"] is True
        assert data["fulltext"]["paths"][0] == {"path": "//title", "action": "include"}
        assert data["range_indexes"][0] == {"xpath": "//price", "scalar_type": "xs:double"}
        assert data["triggers"] is None
        assert data["dirty"] is True

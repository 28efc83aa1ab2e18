"""Parse collection.xconf documents into model sections.

Elements are located by local name at any depth below the root, so both
namespace-qualified and bare documents are understood:

<collection xmlns="http://exist-db.org/collection-config/1.0">
  <index>
    <fulltext default="all" attributes="false" alphanum="false">
      <include path="//title"/>
      <exclude path="//meta"/>
    </fulltext>
    <create path="//item/price" type="xs:double"/>
    <create qname="author" type="xs:string"/>
  </index>
  <triggers>
    <trigger event="store" class="org.example.Handler">
      <parameter name="key" value="value"/>
    </trigger>
  </triggers>
</collection>
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Iterator, List

from xconf.models import (
    ACTION_EXCLUDE,
    ACTION_INCLUDE,
    FullTextIndexModel,
    IndexPathEntry,
    QNameIndexEntry,
    RangeIndexEntry,
    Section,
    TriggerEntry,
)

LOGGER = logging.getLogger(__name__)


class XConfParseError(ValueError):
    """Raised when a configuration document cannot be parsed."""


@dataclass(slots=True)
class ParsedConfig:
    """The four independently optional pieces of a configuration document."""

    fulltext: FullTextIndexModel | None = None
    range_indexes: Section[RangeIndexEntry] = field(default_factory=Section)
    qname_indexes: Section[QNameIndexEntry] = field(default_factory=Section)
    triggers: Section[TriggerEntry] = field(default_factory=Section)


@dataclass(slots=True)
class ParseResult:
    """Either a parsed configuration or the error that prevented parsing."""

    config: ParsedConfig | None = None
    error: XConfParseError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _local_name(tag: object) -> str | None:
    if not isinstance(tag, str):
        return None
    return tag.rsplit("}", 1)[-1]


def _descendants(element: ET.Element, name: str) -> Iterator[ET.Element]:
    """Yield elements named ``name`` below ``element`` in document order."""
    for child in element.iter():
        if child is not element and _local_name(child.tag) == name:
            yield child


def read_fulltext(root: ET.Element) -> FullTextIndexModel | None:
    elem = next(_descendants(root, "fulltext"), None)
    if elem is None:
        return None

    paths: Section[IndexPathEntry] = Section()
    for include in _descendants(elem, "include"):
        paths.append(IndexPathEntry(include.get("path", ""), ACTION_INCLUDE))
    for exclude in _descendants(elem, "exclude"):
        paths.append(IndexPathEntry(exclude.get("path", ""), ACTION_EXCLUDE))

    return FullTextIndexModel(
        default_all=elem.get("default") == "all",
        index_attributes=elem.get("attributes") == "true",
        index_alphanum=elem.get("alphanum") == "true",
        paths=paths,
    )


def read_create_indexes(
    root: ET.Element,
) -> tuple[Section[RangeIndexEntry], Section[QNameIndexEntry]]:
    """Split ``create`` elements into range and qname sections.

    The ``path`` and ``qname`` checks are applied independently, so an element
    carrying both contributes to both sections.
    """
    creates: List[ET.Element] = list(_descendants(root, "create"))
    if not creates:
        return Section(), Section()

    ranges: List[RangeIndexEntry] = []
    qnames: List[QNameIndexEntry] = []
    for create in creates:
        scalar_type = create.get("type", "")
        if create.get("path"):
            ranges.append(RangeIndexEntry(create.get("path", ""), scalar_type))
        if create.get("qname"):
            qnames.append(QNameIndexEntry(create.get("qname", ""), scalar_type))
    return Section(ranges), Section(qnames)


def read_triggers(root: ET.Element) -> Section[TriggerEntry]:
    elements = list(_descendants(root, "trigger"))
    if not elements:
        return Section()

    triggers: List[TriggerEntry] = []
    for elem in elements:
        parameters = {}
        for parameter in _descendants(elem, "parameter"):
            parameters[parameter.get("name", "")] = parameter.get("value", "")
        triggers.append(TriggerEntry(elem.get("event", ""), elem.get("class", ""), parameters))
    return Section(triggers)


def parse_root(root: ET.Element) -> ParsedConfig:
    """Build the model sections from the root element of a document."""
    range_indexes, qname_indexes = read_create_indexes(root)
    return ParsedConfig(
        fulltext=read_fulltext(root),
        range_indexes=range_indexes,
        qname_indexes=qname_indexes,
        triggers=read_triggers(root),
    )


def parse_document(text: str | bytes) -> ParseResult:
    """Parse raw xconf text, reporting malformed input through the result."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        LOGGER.debug("Malformed configuration document: %s", exc)
        error = XConfParseError(f"Malformed configuration document: {exc}")
        error.__cause__ = exc
        return ParseResult(error=error)
    return ParseResult(config=parse_root(root))

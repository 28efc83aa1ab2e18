"""Render model sections back into the collection.xconf dialect."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List
from xml.sax.saxutils import quoteattr

from xconf.config import XCONF_NAMESPACE
from xconf.models import (
    FullTextIndexModel,
    QNameIndexEntry,
    RangeIndexEntry,
    TriggerEntry,
)


@dataclass(slots=True)
class XmlFormat:
    """Formatting options for serialized documents."""

    newline: str = "\n"


def _attrs(*pairs: tuple[str, str]) -> str:
    return "".join(f" {name}={quoteattr(value)}" for name, value in pairs)


def fulltext_lines(fulltext: FullTextIndexModel) -> List[str]:
    lines = [
        "\t\t<fulltext"
        + _attrs(
            ("default", "all" if fulltext.default_all else "none"),
            ("attributes", "true" if fulltext.index_attributes else "false"),
            ("alphanum", "true" if fulltext.index_alphanum else "false"),
        )
        + ">"
    ]
    for entry in fulltext.paths:
        lines.append(f"\t\t\t<{entry.action}{_attrs(('path', entry.path))}/>")
    lines.append("\t\t</fulltext>")
    return lines


def range_lines(entries: Iterable[RangeIndexEntry]) -> List[str]:
    return [
        f"\t\t<create{_attrs(('path', entry.xpath), ('type', entry.scalar_type))}/>"
        for entry in entries
    ]


def qname_lines(entries: Iterable[QNameIndexEntry]) -> List[str]:
    return [
        f"\t\t<create{_attrs(('qname', entry.qname), ('type', entry.scalar_type))}/>"
        for entry in entries
    ]


def trigger_lines(entries: Iterable[TriggerEntry]) -> List[str]:
    triggers = list(entries)
    if not triggers:
        return []

    lines = ["\t<triggers>"]
    for trigger in triggers:
        attrs = _attrs(("event", trigger.event), ("class", trigger.handler_class))
        if not trigger.parameters:
            lines.append(f"\t\t<trigger{attrs}/>")
            continue
        lines.append(f"\t\t<trigger{attrs}>")
        for name, value in trigger.parameters.items():
            lines.append(f"\t\t\t<parameter{_attrs(('name', name), ('value', value))}/>")
        lines.append("\t\t</trigger>")
    lines.append("\t</triggers>")
    return lines


def serialize(
    fulltext: FullTextIndexModel | None,
    range_indexes: Iterable[RangeIndexEntry],
    qname_indexes: Iterable[QNameIndexEntry],
    triggers: Iterable[TriggerEntry] = (),
    *,
    fmt: XmlFormat | None = None,
) -> str:
    """Produce the canonical xconf text.

    Absent sections are written as empty ones. Qname declarations are always
    taken from ``qname_indexes``.
    """
    fmt = fmt or XmlFormat()
    lines = [f"<collection{_attrs(('xmlns', XCONF_NAMESPACE))}>", "\t<index>"]
    if fulltext is not None:
        lines.extend(fulltext_lines(fulltext))
    lines.extend(range_lines(range_indexes))
    lines.extend(qname_lines(qname_indexes))
    lines.append("\t</index>")
    lines.extend(trigger_lines(triggers))
    lines.append("</collection>")
    return fmt.newline.join(lines)

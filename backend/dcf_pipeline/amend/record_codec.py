"""Codec between flat XML record fragments and row dicts.

A record fragment is a flat sequence of ``<tag>value</tag>`` elements with
no enclosing root, e.g. ``<resId>R1</resId><sampCountry>IT</sampCountry>``.
It is parsed by wrapping it in a synthetic root. Nested structure is not
supported: every opening tag becomes the "current field" and every non-blank
text node is stored under it, last write wins.

DatasetRecordParser streams the ``<result>`` blocks of a full dataset file
into staging Records.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import IO

from lxml import etree

from dcf_app.models.enums import AmendType
from dcf_pipeline.amend.exceptions import ParseError
from dcf_pipeline.amend.staging import Record
from dcf_pipeline.amend.versions import BASELINE_VERSION, split_sender_id

logger = logging.getLogger(__name__)

DUMMY_ROOT = "dummy"
RESULT_TAG = "result"
AM_TYPE_TAG = "amType"
NULLIFIED_TAG = "isNullified"

_NULLIFIED_TRUE = frozenset({"1", "true", "y", "yes"})


def _local_name(tag: object) -> str | None:
    """Strip any namespace from an element tag. Comments/PIs return None."""
    if not isinstance(tag, str):
        return None
    return etree.QName(tag).localname


def _is_blank(text: str | None) -> bool:
    return text is None or not text.strip()


def xml_node(tag: str, text: str) -> str:
    """Build a single ``<tag>text</tag>`` element with escaped text."""
    node = etree.Element(tag)
    node.text = text
    return etree.tostring(node, encoding="unicode")


def amend_marker(amend_type: AmendType) -> str:
    """The literal tag appended to a record's content, e.g. <amType>U</amType>."""
    return xml_node(AM_TYPE_TAG, amend_type.value)


def parse_fragment(fragment: str) -> dict[str, str]:
    """Parse a flat record fragment into a field -> value dict.

    Args:
        fragment: Flat ``<tag>value</tag>`` sequence without a root element.

    Returns:
        Dict of field name to text, in first-seen order.

    Raises:
        ParseError: If the fragment is not well-formed.
    """
    try:
        root = etree.fromstring(f"<{DUMMY_ROOT}>{fragment}</{DUMMY_ROOT}>".encode())
    except etree.XMLSyntaxError as e:
        raise ParseError(f"Malformed record fragment: {e}") from e

    row: dict[str, str] = {}
    current: str | None = None

    for event, elem in etree.iterwalk(root, events=("start", "end")):
        if elem is root:
            continue
        if event == "start":
            name = _local_name(elem.tag)
            if name is None:
                continue
            current = name
            if not _is_blank(elem.text):
                row[current] = elem.text
        elif current is not None and not _is_blank(elem.tail):
            # Text after a closing tag belongs to the last opened field
            row[current] = elem.tail

    return row


def serialize_row(
    row: dict[str, object], fields: Iterable[str] | None = None
) -> str:
    """Serialize a row into a flat record fragment.

    Args:
        row: Field name -> value. Values are converted with ``str()``.
        fields: Output-eligible field names, in output order. Defaults to
            the row's own key order.

    Returns:
        Concatenated ``<tag>value</tag>`` elements. Fields that are missing,
        None or empty are skipped.
    """
    names = list(fields) if fields is not None else list(row)
    parts: list[str] = []
    for name in names:
        value = row.get(name)
        if value is None:
            continue
        text = str(value)
        if not text:
            continue
        parts.append(xml_node(name, text))
    return "".join(parts)


class DatasetRecordParser:
    """Stream the records of a dataset file.

    Each ``<result>`` block becomes one Record. Inside a block:

    - ``isNullified`` sets ``Record.nullified``;
    - ``amType`` sets ``Record.amend_type``;
    - the version field (e.g. ``senderDatasetId`` = ``FR1704.01``) gives the
      dataset version; the first occurrence in the file wins;
    - every other non-blank field is appended to ``Record.content``, and the
      row id field also becomes ``Record.row_id``.

    Usage::

        with DatasetRecordParser(path, "resId", "senderDatasetId") as parser:
            for record in parser:
                store.add(record)
    """

    def __init__(
        self,
        source: Path | str | IO[bytes],
        row_id_field: str,
        version_field: str,
        default_version: str = BASELINE_VERSION,
    ) -> None:
        self.source = source
        self.row_id_field = row_id_field
        self.version_field = version_field
        self.default_version = default_version
        self.dataset_version: str | None = None
        self._handle: IO[bytes] | None = None

    def __enter__(self) -> DatasetRecordParser:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def _open(self) -> IO[bytes]:
        if isinstance(self.source, (str, Path)):
            try:
                self._handle = open(self.source, "rb")  # noqa: SIM115
            except OSError as e:
                raise ParseError(f"Cannot open dataset file {self.source}: {e}") from e
            return self._handle
        return self.source

    def __iter__(self) -> Iterator[Record]:
        stream = self._open()
        context = etree.iterparse(stream, events=("end",), remove_comments=True)
        count = 0
        try:
            for _event, elem in context:
                if _local_name(elem.tag) != RESULT_TAG:
                    continue
                record = self._build_record(elem)
                # Free the parsed block; datasets can be large
                elem.clear()
                count += 1
                yield record
        except etree.XMLSyntaxError as e:
            raise ParseError(f"Malformed dataset file: {e}") from e
        logger.debug(
            f"Parsed {count} records (dataset version "
            f"{self.dataset_version or self.default_version})"
        )

    def parse_all(self) -> list[Record]:
        """Parse the whole file into a list."""
        return list(self)

    def _build_record(self, result: etree._Element) -> Record:
        parts: list[str] = []
        row_id: str | None = None
        amend_type: AmendType | None = None
        nullified = False

        for elem in result.iterdescendants():
            name = _local_name(elem.tag)
            if name is None or _is_blank(elem.text):
                continue
            text = elem.text

            if name == NULLIFIED_TAG:
                nullified = text.strip().lower() in _NULLIFIED_TRUE
            elif name == AM_TYPE_TAG:
                amend_type = AmendType.from_code(text)
            elif name == self.version_field:
                if self.dataset_version is None:
                    self.dataset_version = split_sender_id(text)[1]
            else:
                parts.append(xml_node(name, text))
                if name == self.row_id_field:
                    row_id = text

        if row_id is None:
            raise ParseError(
                f"Record without '{self.row_id_field}' field in dataset file"
            )

        return Record(
            row_id=row_id,
            version=self.dataset_version or self.default_version,
            content="".join(parts),
            amend_type=amend_type,
            nullified=nullified,
        )

"""Read the header and operation blocks of a downloaded dataset file.

Only the leading metadata is needed, so parsing stops as soon as both blocks
have been read; the (possibly large) dataset body is never loaded.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO

from lxml import etree

from dcf_app.schemas.message import DatasetMetadata, HeaderSchema, OperationSchema
from dcf_pipeline.amend.exceptions import ParseError

logger = logging.getLogger(__name__)

HEADER_TAG = "header"
OPERATION_TAG = "operation"


def _block_fields(block: etree._Element) -> dict[str, str]:
    """Collect the leaf values of a header/operation block by element name."""
    fields: dict[str, str] = {}
    for child in block:
        if not isinstance(child.tag, str):
            continue
        text = (child.text or "").strip()
        if text:
            fields[etree.QName(child).localname] = text
    return fields


def parse_dataset_metadata(source: Path | str | IO[bytes]) -> DatasetMetadata:
    """Parse the header and operation of a dataset file.

    Args:
        source: Path to the dataset XML file, or a binary stream.

    Returns:
        DatasetMetadata. A block missing from the file is left empty.

    Raises:
        ParseError: If the file cannot be read or is not well-formed.
    """
    header: HeaderSchema | None = None
    operation: OperationSchema | None = None

    try:
        context = etree.iterparse(
            str(source) if isinstance(source, Path) else source,
            events=("end",),
            tag=(f"{{*}}{HEADER_TAG}", f"{{*}}{OPERATION_TAG}"),
        )
        for _event, elem in context:
            name = etree.QName(elem).localname
            fields = _block_fields(elem)
            if name == HEADER_TAG:
                header = HeaderSchema.model_validate(fields)
            else:
                operation = OperationSchema.model_validate(fields)
            elem.clear()
            if header is not None and operation is not None:
                break
    except etree.XMLSyntaxError as e:
        raise ParseError(f"Malformed dataset file {source}: {e}") from e
    except OSError as e:
        raise ParseError(f"Cannot read dataset file {source}: {e}") from e

    if header is None or operation is None:
        logger.warning(f"Dataset file {source} is missing header or operation block")

    return DatasetMetadata(
        header=header or HeaderSchema(),
        operation=operation or OperationSchema(),
    )

"""Assemble the message file submitted to the data collection service.

Layout::

    <?xml version="1.0" encoding="UTF-8"?>
    <message>
    <header>...</header>
    <payload>
    <operation>...</operation>
    <dataset>
    <result>record content</result>
    ...
    </dataset>
    </payload>
    </message>

Record content is already a serialized fragment and is written verbatim
inside its <result> element.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from dcf_app.schemas.message import MessageBlock, MessageConfig
from dcf_pipeline.amend.record_codec import RESULT_TAG, xml_node
from dcf_pipeline.amend.staging import Record

logger = logging.getLogger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'


class ReportAssembler:
    """Builds message files from a MessageConfig and staged records."""

    def __init__(self, config: MessageConfig):
        self.config = config

    def _block(self, tag: str, block: MessageBlock) -> str:
        items = block.xml_items()
        emitted = {name for name, _ in items}
        skipped = [
            info.alias or name
            for name, info in type(block).model_fields.items()
            if (info.alias or name) not in emitted
        ]
        if skipped:
            logger.debug(f"Skipping empty <{tag}> fields: {', '.join(skipped)}")
        inner = "".join(xml_node(name, value) for name, value in items)
        return f"<{tag}>{inner}</{tag}>"

    def _lines(self, records: Iterable[Record]) -> Iterator[str]:
        yield XML_DECLARATION
        yield "<message>"
        yield self._block("header", self.config.header)
        yield "<payload>"
        yield self._block("operation", self.config.operation)
        yield "<dataset>"
        for record in records:
            yield f"<{RESULT_TAG}>{record.content}</{RESULT_TAG}>"
        yield "</dataset>"
        yield "</payload>"
        yield "</message>"

    def build(self, records: Iterable[Record]) -> str:
        """Return the full message for ``records``."""
        return "\n".join(self._lines(records)) + "\n"

    def build_empty(self) -> str:
        """Return the message with an empty dataset (Reject, Submit)."""
        return self.build([])

    def write(self, records: Iterable[Record], path: Path | str) -> Path:
        """Write the message for ``records`` to ``path``."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        count = 0
        with open(path, "w", encoding="utf-8") as f:
            for line in self._lines(records):
                if line.startswith(f"<{RESULT_TAG}>"):
                    count += 1
                f.write(line)
                f.write("\n")
        logger.info(f"Wrote message with {count} records to {path}")
        return path

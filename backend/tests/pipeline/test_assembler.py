"""Tests for the message assembler."""

from pathlib import Path

from lxml import etree

from dcf_app.models.enums import OperationType
from dcf_app.schemas.message import HeaderSchema, MessageConfig, OperationSchema
from dcf_pipeline.amend.assembler import ReportAssembler
from dcf_pipeline.amend.staging import Record

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_config(op_type: OperationType = OperationType.INSERT) -> MessageConfig:
    return MessageConfig(
        header=HeaderSchema(
            type="GDE2",
            version="1.0",
            sender_message_id="FR1704_1",
            sender_org_code=None,
            receiver_org_code="",
        ),
        operation=OperationSchema(
            op_type=op_type,
            sender_dataset_id="FR1704.01",
            dc_code="TEST_DC",
            org_code="ORG",
        ),
    )


def _make_records() -> list[Record]:
    return [
        Record("R1", "01", "<resId>R1</resId><value>a</value><amType>U</amType>"),
        Record("R2", "00", "<resId>R2</resId><value>b</value><amType>D</amType>"),
    ]


# ---------------------------------------------------------------------------
# ReportAssembler
# ---------------------------------------------------------------------------


class TestReportAssembler:
    def test_envelope_structure(self) -> None:
        xml = ReportAssembler(_make_config()).build(_make_records())

        root = etree.fromstring(xml.encode("utf-8"))
        assert root.tag == "message"
        assert [child.tag for child in root] == ["header", "payload"]
        payload = root.find("payload")
        assert [child.tag for child in payload] == ["operation", "dataset"]
        results = payload.find("dataset").findall("result")
        assert len(results) == 2
        assert results[0].findtext("resId") == "R1"
        assert results[1].findtext("amType") == "D"

    def test_starts_with_declaration(self) -> None:
        xml = ReportAssembler(_make_config()).build([])
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')

    def test_record_content_written_verbatim(self) -> None:
        records = _make_records()
        xml = ReportAssembler(_make_config()).build(records)
        assert f"<result>{records[0].content}</result>" in xml

    def test_header_fields_in_order_without_blanks(self) -> None:
        xml = ReportAssembler(_make_config()).build([])
        assert (
            "<header><type>GDE2</type><version>1.0</version>"
            "<senderMessageId>FR1704_1</senderMessageId></header>"
        ) in xml

    def test_operation_fields(self) -> None:
        xml = ReportAssembler(_make_config(OperationType.REPLACE)).build([])
        assert (
            "<operation><opType>Replace</opType>"
            "<senderDatasetId>FR1704.01</senderDatasetId>"
            "<dcCode>TEST_DC</dcCode><orgCode>ORG</orgCode></operation>"
        ) in xml

    def test_build_empty(self) -> None:
        xml = ReportAssembler(_make_config(OperationType.SUBMIT)).build_empty()

        root = etree.fromstring(xml.encode("utf-8"))
        assert root.find("payload/dataset").findall("result") == []
        assert root.findtext("payload/operation/opType") == "Submit"

    def test_write(self, tmp_path: Path) -> None:
        path = tmp_path / "out" / "message.xml"

        written = ReportAssembler(_make_config()).write(_make_records(), path)

        assert written == path
        assert path.read_text(encoding="utf-8") == ReportAssembler(
            _make_config()
        ).build(_make_records())

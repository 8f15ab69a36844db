"""Pydantic schemas for the header/operation blocks of a DCF message.

Field aliases are the XML element names used on the wire; declaration order
is the element order required by the message schema.
"""

from pydantic import BaseModel, Field, field_validator

from dcf_app.models.enums import OperationType


class MessageBlock(BaseModel):
    model_config = {"populate_by_name": True}

    def xml_items(self) -> list[tuple[str, str]]:
        """Return (element name, value) pairs in schema order, skipping blanks."""
        items: list[tuple[str, str]] = []
        for name, info in type(self).model_fields.items():
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, OperationType):
                value = value.value
            value = str(value)
            if not value:
                continue
            items.append((info.alias or name, value))
        return items


class HeaderSchema(MessageBlock):
    """The <header> block of a message."""

    type: str | None = Field(None, alias="type")
    version: str | None = Field(None, alias="version")
    sender_message_id: str | None = Field(None, alias="senderMessageId")
    sender_org_code: str | None = Field(None, alias="senderOrgCode")
    receiver_org_code: str | None = Field(None, alias="receiverOrgCode")


class OperationSchema(MessageBlock):
    """The <operation> block of a message."""

    op_type: OperationType | None = Field(None, alias="opType")
    dataset_id: str | None = Field(None, alias="datasetId")
    sender_dataset_id: str | None = Field(None, alias="senderDatasetId")
    dc_code: str | None = Field(None, alias="dcCode")
    dc_table: str | None = Field(None, alias="dcTable")
    org_code: str | None = Field(None, alias="orgCode")
    op_com: str | None = Field(None, alias="opCom")

    @field_validator("op_type", mode="before")
    @classmethod
    def _coerce_op_type(cls, value: object) -> object:
        if isinstance(value, str):
            return OperationType.from_string(value)
        return value


class DatasetMetadata(BaseModel):
    """Header and operation read from a downloaded dataset file."""

    header: HeaderSchema = Field(default_factory=HeaderSchema)
    operation: OperationSchema = Field(default_factory=OperationSchema)


class MessageConfig(BaseModel):
    """Everything the assembler needs besides the records themselves."""

    header: HeaderSchema
    operation: OperationSchema

    @property
    def op_type(self) -> OperationType | None:
        return self.operation.op_type

    @property
    def needs_empty_dataset(self) -> bool:
        return self.op_type is not None and self.op_type.needs_empty_dataset

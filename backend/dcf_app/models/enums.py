"""SQLAlchemy ENUM types for the database schema."""

import enum


class AmendType(str, enum.Enum):
    """Amendment tag carried by a record relative to a reference version.

    The absence of a tag (``None``) means the record is a plain insert.
    """

    UPDATE = "U"
    DELETE = "D"

    @classmethod
    def from_code(cls, code: str | None) -> "AmendType | None":
        """Map a wire code (``U``/``D``, any case) to a member, else None."""
        if code is None:
            return None
        code = code.strip()
        for member in cls:
            if member.value.lower() == code.lower():
                return member
        return None


class DatasetStatus(str, enum.Enum):
    """Status of a dataset as reported by the data collection service."""

    DRAFT = "DRAFT"  # local only, never sent
    UPLOAD_FAILED = "UPLOAD_FAILED"  # local only, send failed
    VALID = "VALID"
    UPLOADED = "UPLOADED"  # sent, no response yet
    PROCESSING = "PROCESSING"
    VALID_WITH_WARNINGS = "VALID_WITH_WARNINGS"
    REJECTED_EDITABLE = "REJECTED EDITABLE"
    REJECTED = "REJECTED"
    DELETED = "DELETED"
    SUBMITTED = "SUBMITTED"
    SUBMISSION_SENT = "SUBMISSION_SENT"
    ACCEPTED_DWH = "ACCEPTED DWH"
    UPDATED_BY_DATA_RECEIVER = "Uploaded by data receiver"
    OTHER = "OTHER"  # unknown/error state

    @classmethod
    def from_string(cls, text: str | None) -> "DatasetStatus":
        """Case-insensitive lookup; unknown values map to OTHER."""
        if isinstance(text, cls):
            return text
        if text:
            for member in cls:
                if member.value.lower() == text.strip().lower():
                    return member
        return cls.OTHER

    @property
    def is_existing(self) -> bool:
        """True if the dataset still exists upstream (not deleted/rejected)."""
        return self not in (
            DatasetStatus.DELETED,
            DatasetStatus.REJECTED,
            DatasetStatus.OTHER,
        )

    @property
    def is_downloadable(self) -> bool:
        return self in (
            DatasetStatus.REJECTED_EDITABLE,
            DatasetStatus.ACCEPTED_DWH,
            DatasetStatus.VALID,
            DatasetStatus.VALID_WITH_WARNINGS,
            DatasetStatus.SUBMITTED,
        )


class OperationType(str, enum.Enum):
    """Operation requested from the data collection service in a message."""

    INSERT = "Insert"
    REPLACE = "Replace"
    REJECT = "Reject"
    SUBMIT = "Submit"
    NOT_SUPPORTED = "NotSupported"

    @property
    def needs_empty_dataset(self) -> bool:
        """Reject and Submit messages carry no records."""
        return self in (OperationType.REJECT, OperationType.SUBMIT)

    @classmethod
    def from_string(cls, text: str | None) -> "OperationType":
        """Case-insensitive lookup; unknown values map to NOT_SUPPORTED."""
        if text:
            for member in cls:
                if member.value.lower() == text.strip().lower():
                    return member
        return cls.NOT_SUPPORTED

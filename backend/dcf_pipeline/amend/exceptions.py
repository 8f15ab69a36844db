"""Errors raised by the amendment engine.

None of these are retried. Each one aborts the operation that raised it and
surfaces to the caller unchanged.
"""


class AmendError(Exception):
    """Base class for reconciliation failures."""


class DownloadError(AmendError):
    """A version's source file could not be retrieved or is missing."""

    def __init__(self, message: str, dataset_id: str | None = None):
        super().__init__(message)
        self.dataset_id = dataset_id


class ParseError(AmendError):
    """A dataset file or a record fragment is malformed."""


class EmptyDeltaError(AmendError):
    """The delta between two versions contains no records."""

    def __init__(self, old_version: str, new_version: str):
        super().__init__(
            f"Version {new_version} has no differences from version {old_version}; "
            "nothing to submit"
        )
        self.old_version = old_version
        self.new_version = new_version


class MissingPreviousVersionError(AmendError):
    """The version preceding the one being exported is not stored locally."""

    def __init__(self, sender_dataset_id: str, version: str):
        super().__init__(
            f"Cannot export report {sender_dataset_id} version {version}: "
            "its previous version cannot be found"
        )
        self.sender_dataset_id = sender_dataset_id
        self.version = version

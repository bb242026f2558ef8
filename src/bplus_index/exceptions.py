"""Exceptions raised by the indexed table layer."""


class BPlusIndexError(Exception):
    """Base class for bplus_index errors."""


class DuplicateRowError(BPlusIndexError):
    """A row with the same primary key is already in the table."""

    def __init__(self, row_id: int):
        super().__init__(f"row id {row_id!r} already exists")
        self.row_id = row_id


class UnknownIndexError(BPlusIndexError, KeyError):
    """The requested index name is neither 'primary' nor 'secondary'."""

    def __init__(self, kind: str):
        super().__init__(f"unknown index {kind!r}")
        self.kind = kind

    def __str__(self) -> str:
        return self.args[0]

"""Error kinds raised by chbridge components."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for every error surfaced by a chbridge component.

    Attributes:
        kind: Stable name of the error kind (e.g. 'QueryError')
        stage: Stage that failed ('discovery', 'read', 'write') or None
        message: Underlying message without the stage prefix
    """

    kind = "BridgeError"

    def __init__(self, message: str, stage: str | None = None) -> None:
        self.message = message
        self.stage = stage
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.stage:
            return f"{self.stage} failed: {self.message}"
        return self.message


class DatabaseConnectionError(BridgeError):
    """The database could not be reached or refused the credentials."""

    kind = "ConnectionError"


class QueryError(BridgeError):
    """A statement was malformed or rejected by the database."""

    kind = "QueryError"


class FileAccessError(BridgeError):
    """A source file could not be read or a destination could not be written."""

    kind = "FileAccessError"


class ValidationError(BridgeError):
    """The caller supplied an unusable projection, file, or configuration."""

    kind = "ValidationError"

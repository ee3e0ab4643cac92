"""Exceptions raised by treegrid."""


class TreeGridException(Exception):
    """Base exception class for all treegrid exceptions."""


class InvalidMoveToDescendant(TreeGridException):
    """Raised when attempting to move a node to one of its descendants."""


class NodeNotFound(TreeGridException):
    """Raised when a node key is not present in the forest."""


class NoActiveEdit(TreeGridException):
    """Raised when an operation needs an edit session and there is none."""


class EditorBusy(TreeGridException):
    """Raised when a mutation is attempted while a save is in flight."""


class UnsavedNodeError(TreeGridException):
    """Raised when a server-side operation targets a never-persisted node."""


class StructuralIntegrityError(TreeGridException):
    """Raised when records contain duplicate identities or parent cycles."""


class DataSourceError(TreeGridException):
    """Raised by data sources when listing or persisting records fails.

    :param detail: human readable message, usually the one sent by the
        server.
    """

    def __init__(self, detail, status=None):
        super().__init__(detail)
        self.detail = detail
        self.status = status

class GraphEditorError(Exception):
    """Base class for every error raised by the graph editor."""


class DuplicateIdError(GraphEditorError):
    def __init__(self, node_id):
        super().__init__(f"Node with id {node_id!r} already exists")
        self.node_id = node_id


class NotFoundError(GraphEditorError):
    def __init__(self, what):
        super().__init__(f"{what} not found")
        self.what = what


class MalformedDocumentError(GraphEditorError):
    """A document failed JSON parsing or shape validation."""


class IOFailureError(GraphEditorError):
    """Reading or writing the persisted document failed."""


class LoadInProgressError(GraphEditorError):
    """A second load was started before the first one finished."""

from graph_editor.entities import CategoryTable, Link, LockState, Node, Position
from graph_editor.errors import (
    DuplicateIdError,
    GraphEditorError,
    IOFailureError,
    LoadInProgressError,
    MalformedDocumentError,
    NotFoundError,
)
from graph_editor.positions import PositionLockController
from graph_editor.serialization import from_document, to_document
from graph_editor.session import EditorSession
from graph_editor.store import GraphSnapshot, GraphStore
from graph_editor.views import aggregate, filtered_view

__version__ = "0.1.0"

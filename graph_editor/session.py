"""
Editor session: the one authoritative store of a single-user editing session.

The store is replaced wholesale on "New Graph" and on a successful load. A
load that fails leaves the current store untouched. Saving serializes the
store as it is at that moment; edits made afterwards keep it dirty.
"""
import logging

from graph_editor import config
from graph_editor.errors import IOFailureError, LoadInProgressError, MalformedDocumentError
from graph_editor.persistence import DocumentFile
from graph_editor.positions import PositionLockController
from graph_editor.serialization import from_document, parse_positions, to_document
from graph_editor.store import GraphStore

logger = logging.getLogger(__name__)


class EditorSession:
    def __init__(self, document_file=None, store=None):
        self.document_file = document_file or DocumentFile(config.DATA_FILE)
        self._load_pending = False
        self._replace(store or GraphStore())

    def _replace(self, store):
        self.store = store
        self.positions = PositionLockController(store)

    @property
    def load_pending(self):
        return self._load_pending

    @property
    def dirty(self):
        return self.store.dirty

    # ---------- lifecycle ----------

    def new_graph(self):
        self._replace(GraphStore(categories=self.store.categories.copy()))
        logger.info("Started a new graph")

    def begin_load(self):
        if self._load_pending:
            raise LoadInProgressError("A load is already in progress")
        self._load_pending = True

    def finish_load(self, document):
        """Apply the content of a load started with ``begin_load``."""
        try:
            store = from_document(document, categories=self.store.categories)
        except MalformedDocumentError as e:
            logger.warning("Load failed, keeping current graph: %s", e)
            raise
        finally:
            self._load_pending = False
        self._replace(store)
        return store

    def cancel_load(self):
        self._load_pending = False

    def load(self, document):
        self.begin_load()
        return self.finish_load(document)

    def load_positions(self, document):
        positions = parse_positions(document)
        applied = self.store.apply_positions(positions)
        logger.info("Applied %d node position(s) from file", applied)
        return applied

    def open(self):
        """Load the persisted document if there is one; a bad file leaves the graph empty."""
        if not self.document_file.exists():
            return self.store
        try:
            return self.load(self.document_file.read_text())
        except (MalformedDocumentError, IOFailureError) as e:
            logger.warning("Could not open %s: %s", self.document_file.path, e)
            return self.store

    # ---------- persistence ----------

    def save(self):
        """
        Write the store as it is now. Raises IOFailureError; the session
        stays usable either way.
        """
        revision = self.store.revision
        document = to_document(self.store)
        self.document_file.write(document)
        self.store.mark_clean(revision)
        return document

    def replace_and_save(self, document):
        """Replace the graph with ``document`` and persist it (HTTP save)."""
        self.load(document)
        return self.save()

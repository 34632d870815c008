import json
import logging
import os
import tempfile

from graph_editor.errors import IOFailureError, MalformedDocumentError
from graph_editor.serialization import empty_document

logger = logging.getLogger(__name__)


class DocumentFile:
    """The persisted graph document on disk (``nodePositions.json`` by default)."""

    def __init__(self, path):
        self.path = os.path.abspath(path)

    def exists(self):
        return os.path.isfile(self.path)

    def read_text(self):
        """Raw document text; a missing file reads as an empty document."""
        if not self.exists():
            return json.dumps(empty_document())
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return f.read()
        except OSError as e:
            logger.error("Error reading %s: %s", self.path, e)
            raise IOFailureError(f"Could not read {self.path}: {e}") from e

    def read(self):
        text = self.read_text()
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedDocumentError(f"{self.path} is not valid JSON: {e}") from e

    def write(self, document):
        """Write the document (indent 2) through a temp file so a failed write never truncates it."""
        directory = os.path.dirname(self.path)
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2, allow_nan=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except ValueError as e:
            # NaN or Infinity has no JSON form
            raise MalformedDocumentError(f"Document cannot be written as JSON: {e}") from e
        except OSError as e:
            logger.error("Error writing %s: %s", self.path, e)
            raise IOFailureError(f"Could not write {self.path}: {e}") from e
        logger.info("Saved document to %s", self.path)

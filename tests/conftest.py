import random

import pytest

from graph_editor.persistence import DocumentFile
from graph_editor.session import EditorSession
from graph_editor.store import GraphStore


@pytest.fixture
def store():
    return GraphStore(rng=random.Random(7))


@pytest.fixture
def abc_store(store):
    """Three nodes A, B, C with links A->B and B->C."""
    for node_id in ("A", "B", "C"):
        store.add_node(node_id)
    store.add_link("A", "B")
    store.add_link("B", "C")
    return store


@pytest.fixture
def document_file(tmp_path):
    return DocumentFile(tmp_path / "nodePositions.json")


@pytest.fixture
def session(document_file):
    return EditorSession(document_file=document_file, store=GraphStore(rng=random.Random(7)))

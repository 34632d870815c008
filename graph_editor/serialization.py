"""
Graph store <-> persisted JSON document.

Document form::

    {
      "nodes": [{"id": "A", "label": "A", "group": 1, "category": "default",
                 "color": "#1A75FF", "textSize": 6, "x": 0.0, "y": 0.0, "z": 0.0,
                 "price": 0, "month": "", "energy": "", "time": ""}],
      "links": [{"source": "A", "target": "B", "value": 1,
                 "color": "#F0F0F0", "thickness": 1}]
    }

Legacy form (flat list, ``parent`` implies a ``parent -> id`` link)::

    [{"id": "A", "label": "A", "x": 0, "y": 0, "z": 0},
     {"id": "B", "label": "B", "x": 1, "y": 2, "z": 3, "parent": "A"}]
"""
import json
import logging

from graph_editor.entities import (
    CategoryTable,
    InvalidAttributeError,
    Position,
    endpoint_id,
    normalize_link,
    normalize_node,
)
from graph_editor.errors import DuplicateIdError, MalformedDocumentError
from graph_editor.store import GraphStore

logger = logging.getLogger(__name__)


def _node_entry(node):
    pos = node.position or Position(0.0, 0.0, 0.0)
    entry = {"id": node.id}
    entry.update(node.attrs())
    entry.update(pos.as_dict())
    return entry


def _link_entry(link):
    entry = {"source": link.source, "target": link.target}
    entry.update(link.attrs())
    return entry


def to_document(store):
    """
    Every optional attribute is written with its effective value and every
    node gets numeric coordinates (unplaced nodes are written at 0, 0, 0).
    """
    snap = store.snapshot()
    return {
        "nodes": [_node_entry(n) for n in snap.nodes],
        "links": [_link_entry(link) for link in snap.links],
    }


def dumps(store):
    return json.dumps(to_document(store), indent=2, allow_nan=False)


def _parse(doc):
    if isinstance(doc, (bytes, bytearray)):
        try:
            doc = doc.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedDocumentError(f"Document is not UTF-8: {e}") from e
    if isinstance(doc, str):
        try:
            return json.loads(doc)
        except json.JSONDecodeError as e:
            raise MalformedDocumentError(f"Invalid JSON: {e}") from e
    return doc


def _legacy_to_standard(entries):
    nodes, links = [], []
    for entry in entries:
        if not isinstance(entry, dict):
            raise MalformedDocumentError(f"Legacy entry {entry!r} is not an object")
        node = {k: v for k, v in entry.items() if k != "parent"}
        nodes.append(node)
        if entry.get("parent") not in (None, ""):
            links.append({"source": entry["parent"], "target": entry.get("id")})
    return {"nodes": nodes, "links": links}


def from_document(doc, categories=None, rng=None):
    """
    Build a fresh store from a document (JSON text or parsed data).

    Raises MalformedDocumentError on invalid JSON, a bad top-level shape,
    nodes without ids, duplicate ids, or links to missing nodes. Self links
    and repeated pairs are skipped. The returned store is always complete;
    callers keep their current store when this raises.
    """
    data = _parse(doc)
    if isinstance(data, list):
        data = _legacy_to_standard(data)
    if not isinstance(data, dict):
        raise MalformedDocumentError("Document must be an object with nodes and links")
    raw_nodes = data.get("nodes")
    raw_links = data.get("links")
    if not isinstance(raw_nodes, list):
        raise MalformedDocumentError("'nodes' must be an array")
    if not isinstance(raw_links, list):
        raise MalformedDocumentError("'links' must be an array")

    store = GraphStore(categories=categories.copy() if categories else CategoryTable(), rng=rng)
    for raw in raw_nodes:
        node_id, attrs, position = normalize_node(raw, store.categories)
        try:
            store.insert_normalized_node(node_id, attrs, position)
        except DuplicateIdError as e:
            raise MalformedDocumentError(str(e)) from e

    for raw in raw_links:
        source, target, attrs = normalize_link(raw)
        if source not in store or target not in store:
            raise MalformedDocumentError(f"Link {source} -> {target} references a missing node")
        if not store.insert_normalized_link(source, target, attrs):
            logger.warning("Skipping self or duplicate link %s -> %s", source, target)

    store.mark_clean()
    logger.info("Loaded document: %d nodes, %d links", len(store), store.link_count)
    return store


def parse_positions(doc):
    """
    Read a positions-only file ``{id: {x, y, z}}`` into ``{id: Position}``.
    """
    data = _parse(doc)
    if not isinstance(data, dict):
        raise MalformedDocumentError("Positions file must map node ids to {x, y, z}")
    positions = {}
    for node_id, raw in data.items():
        try:
            positions[endpoint_id(node_id)] = Position.coerce(raw)
        except InvalidAttributeError as e:
            raise MalformedDocumentError(f"Bad position for {node_id!r}: {e}") from e
    return positions


def positions_of(store):
    """The inverse of ``parse_positions`` for the current store."""
    return {
        n.id: (n.position or Position(0.0, 0.0, 0.0)).as_dict()
        for n in store.nodes()
    }


def empty_document():
    return {"nodes": [], "links": []}

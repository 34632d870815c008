"""
The authoritative node/link collections.

Nodes and links live in a ``networkx.DiGraph``: node data holds the node
attributes plus ``position`` / ``fixedPosition``, edge data holds the link
attributes. A link is directed (source -> target) but at most one link may
exist per unordered pair, so every lookup checks both directions.
"""
import logging
import random
from dataclasses import dataclass
from typing import Optional, Tuple

import networkx as nx

from graph_editor import config
from graph_editor.entities import (
    CategoryTable,
    InvalidAttributeError,
    Link,
    LockState,
    Node,
    Position,
    clean_link_patch,
    clean_link_value,
    clean_node_patch,
    node_defaults,
)
from graph_editor.errors import DuplicateIdError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable copy of the graph, used for rendering and serialization."""

    nodes: Tuple[Node, ...] = ()
    links: Tuple[Link, ...] = ()
    lock_state: LockState = LockState.DYNAMIC
    revision: int = 0

    @property
    def node_ids(self):
        return [n.id for n in self.nodes]

    def get_node(self, node_id) -> Optional[Node]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def link_pairs(self):
        return {link.pair for link in self.links}


class GraphStore:
    def __init__(self, categories=None, rng=None):
        self.G = nx.DiGraph()
        self.categories = categories if categories is not None else CategoryTable()
        self.lock_state = LockState.DYNAMIC
        self._rng = rng or random.Random()
        self.revision = 0
        self._saved_revision = 0

    # ---------- bookkeeping ----------

    def _touch(self):
        self.revision += 1

    @property
    def dirty(self):
        return self.revision != self._saved_revision

    def mark_clean(self, revision=None):
        """Mark the store saved as of ``revision`` (default: now)."""
        self._saved_revision = self.revision if revision is None else revision

    def __len__(self):
        return self.G.number_of_nodes()

    def __contains__(self, node_id):
        return node_id in self.G

    @property
    def link_count(self):
        return self.G.number_of_edges()

    def has_node(self, node_id):
        return node_id in self.G

    def node_ids(self):
        return list(self.G.nodes())

    def _require_node(self, node_id):
        if node_id not in self.G:
            raise NotFoundError(f"Node {node_id!r}")
        return self.G.nodes[node_id]

    def _find_link(self, a, b):
        if self.G.has_edge(a, b):
            return a, b
        if self.G.has_edge(b, a):
            return b, a
        return None

    def _require_link(self, a, b):
        edge = self._find_link(a, b)
        if edge is None:
            raise NotFoundError(f"Link {a!r} - {b!r}")
        return edge

    def has_link(self, a, b):
        return self._find_link(a, b) is not None

    # ---------- queries ----------

    def _node_record(self, node_id):
        data = self.G.nodes[node_id]
        return Node(id=node_id, **data)

    def _link_record(self, u, v):
        return Link(source=u, target=v, **self.G[u][v])

    def get_node(self, node_id) -> Node:
        self._require_node(node_id)
        return self._node_record(node_id)

    def get_link(self, a, b) -> Link:
        return self._link_record(*self._require_link(a, b))

    def nodes(self):
        return [self._node_record(n) for n in self.G.nodes()]

    def links(self):
        return [self._link_record(u, v) for u, v in self.G.edges()]

    def neighbors(self, node_id):
        self._require_node(node_id)
        return set(self.G.successors(node_id)) | set(self.G.predecessors(node_id))

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            nodes=tuple(self.nodes()),
            links=tuple(self.links()),
            lock_state=self.lock_state,
            revision=self.revision,
        )

    # ---------- node operations ----------

    def add_node(self, node_id, attrs=None) -> Node:
        if not isinstance(node_id, str) or not node_id.strip():
            raise InvalidAttributeError("id", node_id, "expected a non-empty string")
        node_id = node_id.strip()
        if node_id in self.G:
            raise DuplicateIdError(node_id)

        cleaned = clean_node_patch(attrs or {})
        category = cleaned.get("category", config.DEFAULT_CATEGORY)
        data = node_defaults(node_id, self.categories, category)
        position = cleaned.pop("position", None) or Position.random(rng=self._rng)
        data.update(cleaned)

        pinned = position if self.lock_state is LockState.FIXED else None
        self.G.add_node(node_id, position=position, fixedPosition=pinned, **data)
        self._touch()
        logger.info("Added node %s (category=%s)", node_id, data["category"])
        return self._node_record(node_id)

    def delete_node(self, node_id):
        self._require_node(node_id)
        # remove_node drops every incident edge in the same call
        removed = self.G.degree(node_id)
        self.G.remove_node(node_id)
        self._touch()
        logger.info("Deleted node %s and %d link(s)", node_id, removed)

    def update_node_attr(self, node_id, patch) -> Node:
        data = self._require_node(node_id)
        cleaned = clean_node_patch(patch)
        if "category" in cleaned and "color" not in cleaned:
            cleaned["color"] = self.categories.color_for(cleaned["category"])
        position = cleaned.pop("position", None)

        data.update(cleaned)
        if position is not None:
            self._write_position(node_id, position)
        self._touch()
        return self._node_record(node_id)

    # ---------- link operations ----------

    def add_link(self, source, target, value=config.DEFAULT_LINK_VALUE) -> bool:
        """Returns False (and changes nothing) for self, dangling or duplicate links."""
        value = clean_link_value("value", value)
        if source == target or source not in self.G or target not in self.G:
            return False
        if self._find_link(source, target) is not None:
            return False
        self.G.add_edge(
            source, target,
            value=value,
            color=config.DEFAULT_LINK_COLOR,
            thickness=config.DEFAULT_LINK_THICKNESS,
        )
        self._touch()
        logger.info("Added link %s -> %s", source, target)
        return True

    def delete_link(self, a, b):
        u, v = self._require_link(a, b)
        self.G.remove_edge(u, v)
        self._touch()
        logger.info("Deleted link %s -> %s", u, v)

    def update_link_attr(self, a, b, patch) -> Link:
        u, v = self._require_link(a, b)
        cleaned = clean_link_patch(patch)
        self.G[u][v].update(cleaned)
        self._touch()
        return self._link_record(u, v)

    # ---------- bulk loading ----------

    def insert_normalized_node(self, node_id, attrs, position=None):
        """Insert an already-normalized node (document loading)."""
        if node_id in self.G:
            raise DuplicateIdError(node_id)
        self.G.add_node(node_id, position=position, fixedPosition=None, **attrs)
        self._touch()

    def insert_normalized_link(self, source, target, attrs):
        """Insert an already-normalized link; returns False if it breaks an invariant."""
        if source == target or source not in self.G or target not in self.G:
            return False
        if self._find_link(source, target) is not None:
            return False
        self.G.add_edge(source, target, **attrs)
        self._touch()
        return True

    # ---------- positions ----------

    def _write_position(self, node_id, position):
        data = self.G.nodes[node_id]
        data["position"] = position
        if self.lock_state is LockState.FIXED:
            data["fixedPosition"] = position

    def set_position(self, node_id, position):
        """Full overwrite of one node's position (renderer write-back)."""
        self._require_node(node_id)
        self._write_position(node_id, Position.coerce(position))
        self._touch()

    def apply_positions(self, positions) -> int:
        """
        Bulk-update positions from ``{id: {x, y, z}}``; unknown ids are
        ignored. All entries are validated before any is written.
        """
        known = {
            node_id: Position.coerce(pos)
            for node_id, pos in positions.items()
            if node_id in self.G
        }
        for node_id, pos in known.items():
            self._write_position(node_id, pos)
        if known:
            self._touch()
        logger.debug("Applied %d of %d positions", len(known), len(positions))
        return len(known)

    def set_lock_state(self, state):
        """
        Whole-graph pin transition. FIXED pins every node at its current
        position (nodes never placed are pinned at the origin); DYNAMIC
        removes every pin.
        """
        if state is LockState.FIXED:
            origin = Position(0.0, 0.0, 0.0)
            for node_id, data in self.G.nodes(data=True):
                if data["position"] is None:
                    data["position"] = origin
                data["fixedPosition"] = data["position"]
        else:
            for _, data in self.G.nodes(data=True):
                data["fixedPosition"] = None
        self.lock_state = state
        self._touch()
        logger.info("Node positions %s", "locked" if state is LockState.FIXED else "unlocked")

    # ---------- categories ----------

    def add_category(self, key, color):
        self.categories.add(key, color)
        self._touch()

    def set_category_color(self, key, color):
        if key not in self.categories:
            raise NotFoundError(f"Category {key!r}")
        self.categories.add(key, color)
        self._touch()

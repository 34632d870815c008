"""
Boundary to the 3d-force-graph renderer.

Out: a plain ``graphData`` payload built from a snapshot (the renderer gets
copies, never store objects). In: events posted back by the clientside code
(drag end, simulation ticks, clicks), which become store writes.
"""
import logging

from graph_editor.entities import InvalidAttributeError, Position
from graph_editor.errors import NotFoundError

logger = logging.getLogger(__name__)


def _render_node(node, categories, momentary):
    entry = {
        "id": node.id,
        "name": node.label,
        "group": node.group,
        "category": categories.resolve(node.category),
        "color": node.color,
        "textSize": node.textSize,
        "price": node.price,
        "month": node.month,
        "energy": node.energy,
        "time": node.time,
    }
    if node.position is not None:
        entry.update(node.position.as_dict())
    pin = node.fixedPosition
    if pin is None and node.id in momentary:
        pin = node.position
    if pin is not None:
        entry.update({"fx": pin.x, "fy": pin.y, "fz": pin.z})
    return entry


def to_render_data(snapshot, categories, momentary=()):
    """
    Converts a snapshot into the dictionary ``ForceGraph3D.graphData`` expects.
    Pinned nodes (and nodes with a momentary drag pin) carry fx/fy/fz.
    """
    momentary = set(momentary)
    return {
        "nodes": [_render_node(n, categories, momentary) for n in snapshot.nodes],
        "links": [
            {
                "source": link.source,
                "target": link.target,
                "label": f"{link.source} > {link.target}",
                "value": link.value,
                "color": link.color,
                "thickness": link.thickness,
            }
            for link in snapshot.links
        ],
    }


def build_info_dicts(snapshot):
    """Incoming/outgoing links per node and attributes per link, for the info box."""
    node_info = {
        n.id: {"incoming": [], "outgoing": []}
        for n in snapshot.nodes
    }
    edge_info = {}
    for link in snapshot.links:
        node_info[link.source]["outgoing"].append((link.source, link.target, link.value))
        node_info[link.target]["incoming"].append((link.source, link.target, link.value))
        edge_info[f"{link.source}->{link.target}"] = {
            "source": link.source,
            "target": link.target,
            "value": link.value,
            "color": link.color,
            "thickness": link.thickness,
        }
    return node_info, edge_info


def apply_render_event(controller, event):
    """
    Handle one renderer event:

        {"type": "dragEnd", "id": "A", "x": .., "y": .., "z": ..}
        {"type": "tick", "positions": {"A": {"x": .., "y": .., "z": ..}}}
        {"type": "click", "id": "A"}

    Returns a small result dict, or None for events that are ignored.
    """
    if not isinstance(event, dict):
        return None
    kind = event.get("type")
    if kind == "dragEnd":
        node_id = event.get("id")
        try:
            pinned = controller.drag_end(node_id, Position.coerce(event))
        except NotFoundError:
            # node deleted while the drag was in flight
            logger.debug("Drag end for unknown node %s ignored", node_id)
            return None
        except InvalidAttributeError as e:
            logger.warning("Drag end for %s ignored: %s", node_id, e)
            return None
        return {"type": kind, "id": node_id, "pinned": pinned}
    if kind == "tick":
        positions = event.get("positions") or {}
        if not isinstance(positions, dict):
            logger.warning("Tick without a position map ignored")
            return None
        try:
            applied = controller.tick(positions)
        except InvalidAttributeError as e:
            logger.warning("Tick ignored: %s", e)
            return None
        return {"type": kind, "applied": applied}
    if kind == "click":
        node_id = event.get("id")
        if node_id not in controller.store:
            return None
        return {"type": kind, "id": node_id}
    logger.warning("Unknown renderer event %r", kind)
    return None

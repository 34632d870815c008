"""
Documents in and out of the store, including the legacy flat form and
positions-only files.
"""
import json

import pytest

from graph_editor.entities import CategoryTable, LockState, Position
from graph_editor.errors import MalformedDocumentError
from graph_editor.serialization import (
    dumps,
    empty_document,
    from_document,
    parse_positions,
    positions_of,
    to_document,
)
from graph_editor.store import GraphStore


def _doc():
    return {
        "nodes": [
            {"id": "A", "label": "Alpha", "category": "income", "x": 1, "y": 2, "z": 3},
            {"id": "B", "price": 10, "month": "January", "category": "expenses"},
            {"id": "C", "color": "#abcdef", "textSize": 9},
        ],
        "links": [
            {"source": "A", "target": "B", "value": 2},
            {"source": "B", "target": "C", "thickness": 3},
        ],
    }


class TestToDocument:

    def test_effective_values_written(self, abc_store):
        """Every attribute is written and every node gets numeric coordinates."""
        doc = to_document(abc_store)
        assert [n["id"] for n in doc["nodes"]] == ["A", "B", "C"]
        node = doc["nodes"][0]
        for key in ("label", "group", "category", "color", "textSize", "x", "y", "z",
                    "price", "month", "energy", "time"):
            assert key in node
        assert doc["links"][0] == {"source": "A", "target": "B", "value": 1,
                                   "color": "#F0F0F0", "thickness": 1}

    def test_pins_not_written(self, abc_store):
        abc_store.set_position("A", (1, 2, 3))
        abc_store.set_lock_state(LockState.FIXED)
        node = to_document(abc_store)["nodes"][0]
        assert "fx" not in node
        assert "fixedPosition" not in node

    def test_dumps_is_indented_json(self, abc_store):
        text = dumps(abc_store)
        assert text.startswith("{\n  ")
        assert json.loads(text) == to_document(abc_store)

    def test_empty_store(self):
        assert to_document(GraphStore()) == empty_document()


class TestFromDocument:

    def test_missing_color_comes_from_category(self):
        store = from_document({"nodes": [{"id": "A"}], "links": []})
        assert store.get_node("A").color == "#1A75FF"

    def test_loaded_values(self):
        store = from_document(_doc())
        a = store.get_node("A")
        assert a.label == "Alpha"
        assert a.color == "#00FF00"
        assert a.position == Position(1.0, 2.0, 3.0)
        assert store.get_node("B").position is None
        assert store.get_node("C").color == "#ABCDEF"
        assert store.get_link("A", "B").value == 2
        assert store.get_link("B", "C").thickness == 3
        assert not store.dirty

    def test_round_trip(self):
        """Saving a loaded store and loading it again gives the same graph."""
        first = from_document(_doc())
        second = from_document(dumps(first))
        assert [n.attrs() for n in second.nodes()] == [n.attrs() for n in first.nodes()]
        assert second.links() == first.links()

    def test_accepts_bytes(self):
        store = from_document(json.dumps(_doc()).encode("utf-8"))
        assert len(store) == 3

    def test_nodes_not_an_array(self):
        with pytest.raises(MalformedDocumentError):
            from_document({"nodes": {"A": {}}, "links": []})

    def test_links_missing(self):
        with pytest.raises(MalformedDocumentError):
            from_document({"nodes": []})

    def test_invalid_json(self):
        with pytest.raises(MalformedDocumentError):
            from_document("{nodes: ")

    def test_duplicate_ids(self):
        with pytest.raises(MalformedDocumentError):
            from_document({"nodes": [{"id": "A"}, {"id": "A"}], "links": []})

    def test_dangling_link(self):
        with pytest.raises(MalformedDocumentError):
            from_document({"nodes": [{"id": "A"}], "links": [{"source": "A", "target": "Z"}]})

    def test_self_and_duplicate_links_skipped(self):
        store = from_document({
            "nodes": [{"id": "A"}, {"id": "B"}],
            "links": [
                {"source": "A", "target": "A"},
                {"source": "A", "target": "B"},
                {"source": "B", "target": "A"},
            ],
        })
        assert store.link_count == 1

    def test_resolved_endpoints(self):
        store = from_document({
            "nodes": [{"id": "A"}, {"id": "B"}],
            "links": [{"source": {"id": "A"}, "target": {"id": "B"}}],
        })
        assert store.has_link("A", "B")

    def test_categories_copied(self):
        categories = CategoryTable()
        categories.add("travel", "#123456")
        store = from_document({"nodes": [{"id": "A", "category": "travel"}], "links": []}, categories)
        assert store.get_node("A").color == "#123456"
        assert store.categories is not categories


class TestLegacyForm:

    def test_parent_becomes_link(self):
        store = from_document([
            {"id": "A", "label": "A", "x": 0, "y": 0, "z": 0},
            {"id": "B", "label": "B", "x": 1, "y": 2, "z": 3, "parent": "A"},
        ])
        assert store.node_ids() == ["A", "B"]
        link = store.get_link("A", "B")
        assert (link.source, link.target) == ("A", "B")

    def test_non_object_entry(self):
        with pytest.raises(MalformedDocumentError):
            from_document(["A", "B"])


class TestPositionsFile:

    def test_parse(self):
        positions = parse_positions('{"A": {"x": 1, "y": 2, "z": 3}}')
        assert positions == {"A": Position(1.0, 2.0, 3.0)}

    def test_bad_entry(self):
        with pytest.raises(MalformedDocumentError):
            parse_positions({"A": {"x": 1}})

    def test_not_a_mapping(self):
        with pytest.raises(MalformedDocumentError):
            parse_positions([1, 2, 3])

    def test_positions_of_round_trip(self, abc_store):
        abc_store.set_position("A", (7, 8, 9))
        assert parse_positions(positions_of(abc_store))["A"] == Position(7.0, 8.0, 9.0)


class TestNonFiniteNumbers:

    def test_nan_coordinates_never_written(self):
        """NaN coordinates are dropped on load, so the saved document is strict JSON."""
        store = from_document('{"nodes": [{"id": "A", "x": NaN, "y": 0, "z": 0, "textSize": Infinity}], "links": []}')
        node = store.get_node("A")
        assert node.position is None
        assert node.textSize == 6
        text = dumps(store)
        assert "NaN" not in text
        assert json.loads(text)["nodes"][0]["x"] == 0

    def test_infinite_group_loads_with_default(self):
        store = from_document('{"nodes": [{"id": "A", "group": Infinity}, {"id": "B", "group": 1e999}], "links": []}')
        assert store.get_node("A").group == 1
        assert store.get_node("B").group == 1

    def test_dumps_refuses_non_finite(self):
        store = GraphStore()
        store.add_node("A")
        # bypass validation to reach the serializer
        store.G.nodes["A"]["price"] = float("nan")
        with pytest.raises(ValueError):
            dumps(store)

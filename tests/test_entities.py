"""
Entity shapes, validation and ingestion normalization.
"""
import random

import pytest

from graph_editor.entities import (
    CategoryTable,
    InvalidAttributeError,
    Position,
    clean_link_patch,
    clean_node_patch,
    endpoint_id,
    normalize_link,
    normalize_node,
)
from graph_editor.errors import MalformedDocumentError


class TestPosition:

    def test_random_stays_inside_extent(self):
        """Random positions fall inside the cube [-extent, extent]^3."""
        rng = random.Random(1)
        for _ in range(50):
            pos = Position.random(extent=10, rng=rng)
            assert all(-10 <= c <= 10 for c in (pos.x, pos.y, pos.z))

    def test_from_mapping_without_coordinates(self):
        assert Position.from_mapping({"id": "A"}) is None

    def test_from_mapping_partial_coordinates_rejected(self):
        with pytest.raises(InvalidAttributeError):
            Position.from_mapping({"x": 1, "y": 2})

    def test_coerce_accepts_sequences_and_dicts(self):
        assert Position.coerce([1, 2, 3]) == Position(1.0, 2.0, 3.0)
        assert Position.coerce({"x": 1, "y": 2, "z": 3}) == Position(1.0, 2.0, 3.0)

    def test_coerce_rejects_garbage(self):
        with pytest.raises(InvalidAttributeError):
            Position.coerce("nowhere")
        with pytest.raises(InvalidAttributeError):
            Position.coerce({})


class TestCategoryTable:

    def test_seed_categories(self):
        table = CategoryTable()
        assert list(table) == ["default", "expenses", "income", "assets"]
        assert table.color_for("expenses") == "#FF0000"

    def test_unknown_category_resolves_to_default(self):
        table = CategoryTable()
        assert table.resolve("travel") == "default"
        assert table.color_for("travel") == "#1A75FF"

    def test_add_validates_color(self):
        table = CategoryTable()
        table.add("travel", "#00ffaa")
        assert table.color_for("travel") == "#00FFAA"
        with pytest.raises(InvalidAttributeError):
            table.add("food", "green")

    def test_copy_is_independent(self):
        table = CategoryTable()
        other = table.copy()
        other.add("travel", "#123456")
        assert "travel" not in table


class TestPatchValidation:

    def test_node_id_is_immutable(self):
        with pytest.raises(InvalidAttributeError):
            clean_node_patch({"id": "B"})

    def test_bad_color_rejected(self):
        with pytest.raises(InvalidAttributeError):
            clean_node_patch({"color": "#12345"})

    def test_text_size_must_be_positive(self):
        with pytest.raises(InvalidAttributeError):
            clean_node_patch({"textSize": 0})

    def test_enumerations_checked(self):
        assert clean_node_patch({"month": "March"}) == {"month": "March"}
        assert clean_node_patch({"energy": ""}) == {"energy": ""}
        with pytest.raises(InvalidAttributeError):
            clean_node_patch({"time": "4 hours"})

    def test_price_empty_means_zero(self):
        assert clean_node_patch({"price": None}) == {"price": 0.0}
        assert clean_node_patch({"price": "12.5"}) == {"price": 12.5}

    def test_link_endpoints_immutable(self):
        with pytest.raises(InvalidAttributeError):
            clean_link_patch({"source": "X"})

    def test_link_thickness_positive(self):
        assert clean_link_patch({"thickness": 2.5}) == {"thickness": 2.5}
        with pytest.raises(InvalidAttributeError):
            clean_link_patch({"thickness": -1})


class TestNormalization:

    def test_defaults_filled(self):
        """Missing optional attributes get defaults; color follows the category."""
        node_id, attrs, position = normalize_node({"id": "A", "category": "income"}, CategoryTable())
        assert node_id == "A"
        assert attrs["label"] == "A"
        assert attrs["group"] == 1
        assert attrs["color"] == "#00FF00"
        assert attrs["textSize"] == 6
        assert position is None

    def test_numeric_id_becomes_string(self):
        node_id, _, _ = normalize_node({"id": 5}, CategoryTable())
        assert node_id == "5"

    def test_missing_id_is_malformed(self):
        with pytest.raises(MalformedDocumentError):
            normalize_node({"label": "no id"}, CategoryTable())

    def test_invalid_optional_attribute_dropped(self):
        _, attrs, _ = normalize_node({"id": "A", "color": "red", "month": "Smarch"}, CategoryTable())
        assert attrs["color"] == "#1A75FF"
        assert attrs["month"] == ""

    def test_unknown_category_kept_as_written(self):
        _, attrs, _ = normalize_node({"id": "A", "category": "travel"}, CategoryTable())
        assert attrs["category"] == "travel"
        assert attrs["color"] == "#1A75FF"

    def test_link_endpoint_objects_reduced_to_ids(self):
        source, target, attrs = normalize_link({"source": {"id": "A", "x": 1}, "target": "B"})
        assert (source, target) == ("A", "B")
        assert attrs == {"value": 1, "color": "#F0F0F0", "thickness": 1}

    def test_bad_endpoint_is_malformed(self):
        with pytest.raises(MalformedDocumentError):
            endpoint_id(None)


class TestNumericValidation:

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan"), 10 ** 400, 1.7, True, "x"])
    def test_group_must_be_a_finite_integer(self, value):
        with pytest.raises(InvalidAttributeError):
            clean_node_patch({"group": value})

    def test_integral_group_accepted(self):
        assert clean_node_patch({"group": 3.0}) == {"group": 3}
        assert clean_node_patch({"group": "4"}) == {"group": 4}

    @pytest.mark.parametrize("value", [float("inf"), float("nan"), "1e999"])
    def test_price_must_be_finite(self, value):
        with pytest.raises(InvalidAttributeError):
            clean_node_patch({"price": value})

    def test_non_finite_sizes_rejected(self):
        with pytest.raises(InvalidAttributeError):
            clean_node_patch({"textSize": float("inf")})
        with pytest.raises(InvalidAttributeError):
            clean_link_patch({"thickness": float("nan")})
        with pytest.raises(InvalidAttributeError):
            clean_link_patch({"value": float("-inf")})

    def test_non_finite_coordinates_rejected(self):
        with pytest.raises(InvalidAttributeError):
            Position.coerce({"x": float("nan"), "y": 0, "z": 0})

    def test_overflowing_group_dropped_on_load(self):
        """An infinite group in a document falls back to the default group."""
        _, attrs, _ = normalize_node({"id": "A", "group": float("inf")}, CategoryTable())
        assert attrs["group"] == 1

"""
Node, Link and Category shapes plus the normalization applied on ingestion.

Everything that enters the store goes through ``normalize_node`` /
``normalize_link`` (documents) or ``clean_node_patch`` / ``clean_link_patch``
(edits). Link endpoints are always reduced to bare ids here, so the store
never keeps references to node objects.
"""
import logging
import math
import random
import re
from dataclasses import dataclass, field
from enum import Enum
from numbers import Real
from typing import Optional

from graph_editor import config
from graph_editor.errors import GraphEditorError, MalformedDocumentError

logger = logging.getLogger(__name__)

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")

NODE_KEYS = (
    "label", "group", "category", "color", "textSize",
    "price", "month", "energy", "time",
)
LINK_KEYS = ("value", "color", "thickness")


class InvalidAttributeError(GraphEditorError, ValueError):
    def __init__(self, key, value, reason):
        super().__init__(f"Invalid value for {key!r}: {value!r} ({reason})")
        self.key = key
        self.value = value


class LockState(Enum):
    DYNAMIC = "dynamic"   # renderer owns positions, nothing pinned
    FIXED = "fixed"       # every node pinned at its current position


@dataclass(frozen=True)
class Position:
    x: float
    y: float
    z: float

    @classmethod
    def random(cls, extent=config.POSITION_EXTENT, rng=random):
        return cls(
            rng.uniform(-extent, extent),
            rng.uniform(-extent, extent),
            rng.uniform(-extent, extent),
        )

    @classmethod
    def from_mapping(cls, data):
        """
        Build a position from ``{"x": .., "y": .., "z": ..}``.
        Returns None when no coordinate is present; raises when only some are.
        """
        coords = [data.get(axis) for axis in ("x", "y", "z")]
        if all(c is None for c in coords):
            return None
        if any(not _is_number(c) for c in coords):
            raise InvalidAttributeError("position", coords, "needs numeric x, y and z")
        return cls(float(coords[0]), float(coords[1]), float(coords[2]))

    @classmethod
    def coerce(cls, value):
        if isinstance(value, Position):
            return value
        if isinstance(value, (list, tuple)) and len(value) == 3:
            value = dict(zip(("x", "y", "z"), value))
        if isinstance(value, dict):
            pos = cls.from_mapping(value)
            if pos is not None:
                return pos
        raise InvalidAttributeError("position", value, "expected x, y, z")

    def as_dict(self):
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass(frozen=True)
class Node:
    id: str
    label: str
    group: int = config.DEFAULT_GROUP
    category: str = config.DEFAULT_CATEGORY
    color: str = config.SEED_CATEGORIES[config.DEFAULT_CATEGORY]
    textSize: float = config.DEFAULT_TEXT_SIZE
    position: Optional[Position] = None
    fixedPosition: Optional[Position] = None
    price: float = 0.0
    month: str = ""
    energy: str = ""
    time: str = ""

    @property
    def is_pinned(self):
        return self.fixedPosition is not None

    def attrs(self):
        return {key: getattr(self, key) for key in NODE_KEYS}


@dataclass(frozen=True)
class Link:
    source: str
    target: str
    value: float = config.DEFAULT_LINK_VALUE
    color: str = config.DEFAULT_LINK_COLOR
    thickness: float = config.DEFAULT_LINK_THICKNESS

    @property
    def pair(self):
        return frozenset((self.source, self.target))

    def attrs(self):
        return {key: getattr(self, key) for key in LINK_KEYS}


@dataclass
class CategoryTable:
    """Category key -> default color. Unknown keys resolve to ``default``."""

    colors: dict = field(default_factory=lambda: dict(config.SEED_CATEGORIES))

    def __contains__(self, key):
        return key in self.colors

    def __iter__(self):
        return iter(self.colors)

    def resolve(self, key):
        return key if key in self.colors else config.DEFAULT_CATEGORY

    def color_for(self, key):
        return self.colors[self.resolve(key)]

    def add(self, key, color):
        if not isinstance(key, str) or not key.strip():
            raise InvalidAttributeError("category", key, "must be a non-empty string")
        self.colors[key.strip()] = _check_color("color", color)

    def copy(self):
        return CategoryTable(dict(self.colors))


# ---------- VALIDATION ----------

def _is_number(value):
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return isinstance(value, int) or math.isfinite(value)


def _check_color(key, value):
    if not isinstance(value, str) or not HEX_COLOR.match(value):
        raise InvalidAttributeError(key, value, "expected #RRGGBB")
    return value.upper()


def _check_positive(key, value):
    if not _is_number(value) or value <= 0:
        raise InvalidAttributeError(key, value, "expected a positive number")
    return value


def _check_choice(key, value, choices):
    # Empty means "not set"
    if value is None or value == "":
        return ""
    if value not in choices:
        raise InvalidAttributeError(key, value, f"expected one of {', '.join(choices)}")
    return value


def _clean_node_value(key, value):
    if key == "label":
        if not isinstance(value, str):
            raise InvalidAttributeError(key, value, "expected a string")
        return value
    if key == "group":
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            raise InvalidAttributeError(key, value, "expected an integer") from None
        if isinstance(value, bool) or not math.isfinite(number) or not number.is_integer():
            raise InvalidAttributeError(key, value, "expected an integer")
        return int(number)
    if key == "category":
        if not isinstance(value, str) or not value.strip():
            raise InvalidAttributeError(key, value, "expected a non-empty string")
        return value.strip()
    if key == "color":
        return _check_color(key, value)
    if key == "textSize":
        return _check_positive(key, value)
    if key == "price":
        if value is None or value == "":
            return 0.0
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            raise InvalidAttributeError(key, value, "expected a number") from None
        if isinstance(value, bool) or not math.isfinite(number):
            raise InvalidAttributeError(key, value, "expected a finite number")
        return number
    if key == "month":
        return _check_choice(key, value, config.MONTHS)
    if key == "energy":
        return _check_choice(key, value, config.ENERGY_LEVELS)
    if key == "time":
        return _check_choice(key, value, config.TIME_OPTIONS)
    raise InvalidAttributeError(key, value, "unknown node attribute")


def clean_link_value(key, value):
    if key == "value":
        if not _is_number(value):
            raise InvalidAttributeError(key, value, "expected a number")
        return value
    if key == "color":
        return _check_color(key, value)
    if key == "thickness":
        return _check_positive(key, value)
    raise InvalidAttributeError(key, value, "unknown link attribute")


def clean_node_patch(patch):
    """
    Validate a partial node update. ``position`` may be included and is
    coerced to a ``Position``; the id can never be patched.
    Raises InvalidAttributeError before anything is applied.
    """
    cleaned = {}
    for key, value in patch.items():
        if key == "id":
            raise InvalidAttributeError(key, value, "node ids are immutable")
        if key == "position":
            cleaned[key] = Position.coerce(value)
        else:
            cleaned[key] = _clean_node_value(key, value)
    return cleaned


def clean_link_patch(patch):
    cleaned = {}
    for key, value in patch.items():
        if key in ("source", "target"):
            raise InvalidAttributeError(key, value, "link endpoints are immutable")
        cleaned[key] = clean_link_value(key, value)
    return cleaned


# ---------- INGESTION ----------

def endpoint_id(value):
    """A link endpoint arrives either as a bare id or as a resolved node."""
    if isinstance(value, dict):
        value = value.get("id")
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise MalformedDocumentError(f"Link endpoint {value!r} is not a node id")
    return str(value)


def node_defaults(node_id, categories, category=config.DEFAULT_CATEGORY):
    return {
        "label": node_id,
        "group": config.DEFAULT_GROUP,
        "category": category,
        "color": categories.color_for(category),
        "textSize": config.DEFAULT_TEXT_SIZE,
        "price": 0.0,
        "month": "",
        "energy": "",
        "time": "",
    }


def normalize_node(raw, categories):
    """
    Turn a raw document node into ``(node_id, attrs, position)``.

    Missing label/group/category/color/textSize are filled with defaults;
    the color default comes from the node's category. Invalid optional
    attributes are dropped (and logged) rather than failing the whole load.
    Pinned coordinates are ignored: loaded graphs always start Dynamic.
    """
    if not isinstance(raw, dict):
        raise MalformedDocumentError(f"Node entry {raw!r} is not an object")
    node_id = raw.get("id")
    if isinstance(node_id, bool) or not isinstance(node_id, (str, int)) or str(node_id) == "":
        raise MalformedDocumentError(f"Node entry is missing an id: {raw!r}")
    node_id = str(node_id)

    category = raw.get("category") or config.DEFAULT_CATEGORY
    try:
        category = _clean_node_value("category", category)
    except InvalidAttributeError:
        logger.warning("Node %s: bad category %r, using default", node_id, category)
        category = config.DEFAULT_CATEGORY

    attrs = node_defaults(node_id, categories, category)
    for key in NODE_KEYS:
        if key == "category" or raw.get(key) is None:
            continue
        try:
            attrs[key] = _clean_node_value(key, raw[key])
        except InvalidAttributeError as e:
            logger.warning("Node %s: dropping %s", node_id, e)

    try:
        position = Position.from_mapping(raw)
    except InvalidAttributeError:
        logger.warning("Node %s: incomplete coordinates ignored", node_id)
        position = None
    return node_id, attrs, position


def normalize_link(raw):
    """Turn a raw document link into ``(source, target, attrs)``."""
    if not isinstance(raw, dict):
        raise MalformedDocumentError(f"Link entry {raw!r} is not an object")
    source = endpoint_id(raw.get("source"))
    target = endpoint_id(raw.get("target"))
    attrs = {
        "value": config.DEFAULT_LINK_VALUE,
        "color": config.DEFAULT_LINK_COLOR,
        "thickness": config.DEFAULT_LINK_THICKNESS,
    }
    for key in LINK_KEYS:
        if raw.get(key) is None:
            continue
        try:
            attrs[key] = clean_link_value(key, raw[key])
        except InvalidAttributeError as e:
            logger.warning("Link %s->%s: dropping %s", source, target, e)
    return source, target, attrs

import os

# ------------------------------
# Config (defaults; env overrides, no flags)
# ------------------------------
WORK_DIR = os.getcwd()
DATA_FILE = os.environ.get(
    "GRAPH_EDITOR_DATA_FILE", os.path.join(WORK_DIR, "nodePositions.json")
)
HOST = os.environ.get("GRAPH_EDITOR_HOST", "127.0.0.1")
PORT = int(os.environ.get("GRAPH_EDITOR_PORT", "3000"))
DEBUG = os.environ.get("GRAPH_EDITOR_DEBUG", "0").lower() in ("1", "true", "yes")
LOG_LEVEL = os.environ.get("GRAPH_EDITOR_LOG_LEVEL", "INFO").upper()

# ---------- ENTITY DEFAULTS ----------
DEFAULT_CATEGORY = "default"
SEED_CATEGORIES = {
    "default": "#1A75FF",
    "expenses": "#FF0000",
    "income": "#00FF00",
    "assets": "#0000FF",
}
EXPENSE_CATEGORY = "expenses"

DEFAULT_GROUP = 1
DEFAULT_TEXT_SIZE = 6
DEFAULT_LINK_VALUE = 1
DEFAULT_LINK_COLOR = "#F0F0F0"
DEFAULT_LINK_THICKNESS = 1

# New nodes start somewhere in the cube [-EXTENT, EXTENT]^3
POSITION_EXTENT = 100

MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
ENERGY_LEVELS = ("Low", "Medium", "High")
TIME_OPTIONS = ("30 minutes", "1 hour", "2 hours", "3 hours")

# ---------- RENDERER ----------
EXTERNAL_SCRIPTS = [
    "https://unpkg.com/three@0.150.1/build/three.min.js",
    "https://unpkg.com/three-spritetext",
    "https://unpkg.com/3d-force-graph",
]
BACKGROUND_COLOR = "#000011"
SELECTED_NODE_COLOR = "#ffff00"

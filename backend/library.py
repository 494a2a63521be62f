"""
Library / master-data helpers.

Lookup categories live in u_lib_list. A handful of category codes are
"combination" libraries whose rows pair a code from one library with a code
from another (e.g. anomaly priority -> display color). Rows are never hard
deleted: lib_delete is flipped between 0 (active) and 1 (deleted).

The COLOR library stores "R,G,B" in lib_id and a color name in lib_desc. The
name is suggested from a fixed palette by nearest Euclidean distance.
"""

import math
from typing import Dict, List, Optional, Tuple

# combo lib_code -> (code_1 source library, code_2 source library)
COMBO_CONFIG: Dict[str, Tuple[str, str]] = {
    "AMLYCODFND": ("AMLY_COD", "AMLY_FND"),
    "ANMLYCLR": ("AMLY_TYP", "COLOR"),
    "ANMTRGINSP": ("AMLY_COD", "INSPTYPE"),
    "ANMALTDAYS": ("AMLY_TYP", "ALTDAYS"),
}

COLOR_LIBRARY = "COLOR"
CONTRACTOR_LIBRARY = "CONTR_NAM"
PRIORITY_LIBRARY = "AMLY_TYP"
PRIORITY_COLOR_COMBO = "ANMLYCLR"

DEFAULT_WORKUNIT = "000"

# Palette used for nearest-name suggestions
COLOR_NAMES: Dict[Tuple[int, int, int], str] = {
    (255, 0, 0): "Red",
    (0, 255, 0): "Green",
    (0, 0, 255): "Blue",
    (255, 255, 0): "Yellow",
    (255, 0, 255): "Magenta",
    (0, 255, 255): "Cyan",
    (255, 255, 255): "White",
    (0, 0, 0): "Black",
    (128, 128, 128): "Gray",
    (255, 165, 0): "Orange",
    (128, 0, 128): "Purple",
    (165, 42, 42): "Brown",
    (255, 192, 203): "Pink",
    (0, 128, 0): "Dark Green",
    (0, 0, 128): "Navy",
    (128, 0, 0): "Maroon",
    (192, 192, 192): "Silver",
    (255, 215, 0): "Gold",
}

# Name -> RGB, used when a user types a color name instead of picking one
NAME_TO_RGB: Dict[str, Tuple[int, int, int]] = {
    "red": (255, 0, 0),
    "green": (0, 255, 0),
    "blue": (0, 0, 255),
    "yellow": (255, 255, 0),
    "magenta": (255, 0, 255),
    "cyan": (0, 255, 255),
    "white": (255, 255, 255),
    "black": (0, 0, 0),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
    "orange": (255, 165, 0),
    "purple": (128, 0, 128),
    "brown": (165, 42, 42),
    "pink": (255, 192, 203),
    "navy": (0, 0, 128),
    "maroon": (128, 0, 0),
    "silver": (192, 192, 192),
    "gold": (255, 215, 0),
    "dark red": (139, 0, 0),
    "dark green": (0, 100, 0),
    "dark blue": (0, 0, 139),
    "light red": (255, 182, 193),
    "light green": (144, 238, 144),
    "light blue": (173, 216, 230),
}

NEAREST_COLOR_THRESHOLD = 30
CUSTOM_COLOR = "Custom Color"


def is_combo_library(lib_code: str) -> bool:
    return lib_code in COMBO_CONFIG


def is_hidden(row: Dict) -> bool:
    """Rows flagged hidden_item Y/y never reach the UI."""
    return (row.get("hidden_item") or "") in ("Y", "y")


def is_deleted(row: Dict) -> bool:
    return bool(row.get("lib_delete") or 0)


def toggled_delete_flag(current: Optional[int]) -> int:
    """Soft-delete toggle: 0 -> 1, 1 -> 0 (None counts as active)."""
    return 0 if current else 1


def split_codes(code_param: str) -> List[str]:
    """Split a comma-separated library code list, dropping blanks."""
    return [c.strip() for c in (code_param or "").split(",") if c.strip()]


# =============================================================================
# COLOR HELPERS
# =============================================================================

def nearest_color_name(r: int, g: int, b: int) -> str:
    """
    Suggest a palette name for an RGB triple.

    Exact matches return the palette name. Otherwise the nearest palette
    entry wins if it is closer than NEAREST_COLOR_THRESHOLD, else
    "Custom Color".
    """
    exact = COLOR_NAMES.get((r, g, b))
    if exact:
        return exact

    best_name = CUSTOM_COLOR
    best_distance = math.inf
    for (pr, pg, pb), name in COLOR_NAMES.items():
        distance = math.sqrt((r - pr) ** 2 + (g - pg) ** 2 + (b - pb) ** 2)
        if distance < best_distance:
            best_distance = distance
            best_name = name

    return best_name if best_distance < NEAREST_COLOR_THRESHOLD else CUSTOM_COLOR


def parse_rgb(value: Optional[str]) -> Optional[Tuple[int, int, int]]:
    """Parse "R,G,B" into a clamped int triple. Returns None when malformed."""
    if not value:
        return None
    parts = [p.strip() for p in str(value).split(",")]
    if len(parts) != 3:
        return None
    try:
        rgb = tuple(max(0, min(255, int(float(p)))) for p in parts)
    except ValueError:
        return None
    return rgb  # type: ignore[return-value]


def format_rgb(rgb: Tuple[int, int, int]) -> str:
    return ",".join(str(c) for c in rgb)


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return "#{:02x}{:02x}{:02x}".format(r, g, b)


def hex_to_rgb(value: str) -> Optional[Tuple[int, int, int]]:
    value = (value or "").strip().lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        return None
    try:
        return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
    except ValueError:
        return None


def name_to_rgb(name: str) -> Optional[Tuple[int, int, int]]:
    return NAME_TO_RGB.get((name or "").strip().lower())


def prepare_color_item(data: Dict) -> Dict:
    """
    Normalise a COLOR library payload.

    lib_id may arrive as "R,G,B", "#rrggbb" or a color name; it is stored
    as "R,G,B". A missing lib_desc is filled with the suggested palette name.
    """
    raw = (data.get("lib_id") or "").strip()
    if raw.startswith("#"):
        rgb = hex_to_rgb(raw)
    else:
        rgb = parse_rgb(raw) or name_to_rgb(raw)
    if rgb is None:
        raise ValueError(f"Invalid color value: {raw!r}")

    prepared = dict(data)
    prepared["lib_id"] = format_rgb(rgb)
    if not (prepared.get("lib_desc") or "").strip():
        prepared["lib_desc"] = nearest_color_name(*rgb)
    return prepared

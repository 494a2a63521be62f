"""
Row shaping shared by the report endpoints and the PDF generators.

Priority handling follows one precedence for defect colors: the color stored
on the record, then the AMLY_TYP / ANMLYCLR library map, then a fixed
fallback palette keyed by the normalised priority label.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from library import parse_rgb

RGB = Tuple[int, int, int]

PRIORITY_ORDER: Dict[str, int] = {
    "critical": 1, "c": 1, "priority 1": 1,
    "high": 2, "h": 2, "priority 2": 2,
    "medium": 3, "m": 3, "priority 3": 3,
    "low": 4, "l": 4, "priority 4": 4,
    "observation": 5, "o": 5, "priority 5": 5,
    "priority 6": 6,
    "informational": 7,
}
UNKNOWN_PRIORITY_RANK = 99

# label -> (background, text)
FALLBACK_PRIORITY_COLORS: Dict[str, Tuple[RGB, RGB]] = {
    "critical": ((192, 0, 0), (255, 255, 255)),
    "high": ((255, 102, 0), (255, 255, 255)),
    "medium": ((255, 192, 0), (0, 0, 0)),
    "low": ((146, 208, 80), (0, 0, 0)),
    "observation": ((189, 215, 238), (0, 0, 0)),
}
DEFAULT_PRIORITY_COLOR: Tuple[RGB, RGB] = ((220, 220, 220), (0, 0, 0))
RECTIFIED_COLOR: Tuple[RGB, RGB] = ((0, 176, 80), (255, 255, 255))

WHITE: RGB = (255, 255, 255)
BLACK: RGB = (0, 0, 0)

EVENT_TYPE_LABELS = {
    "START_TASK": "Start Task",
    "STOP_TASK": "Stop Task",
    "PAUSE_TASK": "Pause Task",
    "RESUME_TASK": "Resume Task",
    "INSPECTION": "Inspection",
    "ANNOTATION": "Annotation",
    "CHAPTER": "Chapter",
    "NOTE": "Note",
    "ANOMALY": "Anomaly Detected",
    "SNAPSHOT": "Snapshot",
}


def clean_param(value: Optional[str]) -> Optional[str]:
    """Query values "undefined", "null" and blanks count as missing."""
    if value is None:
        return None
    value = value.strip()
    if not value or value in ("undefined", "null"):
        return None
    return value


# =============================================================================
# PRIORITIES
# =============================================================================

def _normalise_priority(priority: Optional[str]) -> str:
    return (priority or "").strip().lower()


def priority_rank(priority: Optional[str]) -> int:
    return PRIORITY_ORDER.get(_normalise_priority(priority), UNKNOWN_PRIORITY_RANK)


def sort_by_priority(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Stable sort by priority rank; unknown priorities go last."""
    return sorted(rows, key=lambda r: priority_rank(r.get("priority")))


def _fallback_key(label: str) -> Optional[str]:
    rank = PRIORITY_ORDER.get(label)
    for name in FALLBACK_PRIORITY_COLORS:
        if label == name or (rank is not None and PRIORITY_ORDER[name] == rank):
            return name
    return None


def text_color_for(bg: RGB) -> RGB:
    """Black text on light backgrounds (luminance > 140), white otherwise."""
    r, g, b = bg
    luminance = 0.299 * r + 0.587 * g + 0.114 * b
    return BLACK if luminance > 140 else WHITE


def priority_style(priority: Optional[str], color_map: Optional[Dict[str, str]] = None,
                   record_color: Optional[str] = None) -> Tuple[RGB, RGB]:
    """Resolve (background, text) for a priority cell."""
    direct = parse_rgb(record_color)
    if direct:
        return direct, text_color_for(direct)

    label = _normalise_priority(priority)
    mapped = parse_rgb((color_map or {}).get(label))
    if mapped:
        return mapped, text_color_for(mapped)

    key = _fallback_key(label)
    if key:
        return FALLBACK_PRIORITY_COLORS[key]
    return DEFAULT_PRIORITY_COLOR


def build_priority_colors(priority_types: List[Dict[str, Any]],
                          combos: List[Dict[str, Any]]) -> Dict[str, str]:
    """
    {priority label (lower case): "R,G,B"} from AMLY_TYP rows and ANMLYCLR combos.

    Labels without a color map to "".
    """
    id_to_color = {c["code_1"]: c["code_2"] for c in combos if c.get("code_1") and c.get("code_2")}
    colors = {}
    for row in priority_types:
        label = (row.get("lib_desc") or "").lower()
        if label:
            colors[label] = id_to_color.get(row.get("lib_id"), "")
    return colors


def is_rectified(row: Dict[str, Any]) -> bool:
    value = row.get("is_rectified")
    return value is True or value == "true" or bool(row.get("rectified_remarks"))


# =============================================================================
# FORMATTING
# =============================================================================

def format_counter(value: Any) -> str:
    """Seconds -> HH:MM:SS. Non-numeric values are returned as-is."""
    if value is None or value == "":
        return ""
    try:
        n = float(value)
    except (TypeError, ValueError):
        return str(value)
    if n < 0:
        return str(value)
    hours = int(n // 3600)
    minutes = int((n % 3600) // 60)
    seconds = int(n % 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_depth(depth: Any) -> str:
    if depth is None or depth == 0 or depth == "":
        return "-"
    try:
        return f"{float(depth):g}m"
    except (TypeError, ValueError):
        return f"{depth}m"


def friendly_event_type(event_type: Optional[str]) -> str:
    if not event_type:
        return "-"
    return EVENT_TYPE_LABELS.get(event_type, event_type.replace("_", " "))


def format_datetime(value: Any) -> str:
    if not value:
        return "-"
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M")
    try:
        return datetime.fromisoformat(str(value)).strftime("%d/%m/%Y %H:%M")
    except ValueError:
        return str(value)


# =============================================================================
# DIVE / VIDEO LOG SHAPING
# =============================================================================

def group_by(rows: List[Dict[str, Any]], key: str) -> Dict[Any, List[Dict[str, Any]]]:
    grouped: Dict[Any, List[Dict[str, Any]]] = {}
    for row in rows:
        grouped.setdefault(row.get(key), []).append(row)
    return grouped


def dedupe_video_logs(logs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Collapse duplicate events of one tape.

    Rows must arrive ordered by event_time. Events sharing (event_type,
    timecode_start) keep the earliest event_time and the latest remarks.
    """
    merged: Dict[Tuple[Any, Any], Dict[str, Any]] = {}
    for log in logs:
        key = (log.get("event_type"), log.get("timecode_start"))
        if key not in merged:
            merged[key] = dict(log)
        elif log.get("remarks"):
            merged[key]["remarks"] = log["remarks"]
    return list(merged.values())


def attach_tape_logs(tapes: List[Dict[str, Any]], logs: List[Dict[str, Any]],
                     dive_numbers: Dict[Any, Any]) -> List[Dict[str, Any]]:
    """Nest deduplicated logs under their tapes, dropping tapes with no events."""
    logs_by_tape = group_by(logs, "tape_id")
    result = []
    for tape in tapes:
        tape_logs = dedupe_video_logs(logs_by_tape.get(tape["tape_id"], []))
        if not tape_logs:
            continue
        node = dict(tape)
        node["dive_no"] = dive_numbers.get(tape.get("dive_job_id"))
        node["logs"] = tape_logs
        result.append(node)
    return result


def _tape_sort_key(tape: Dict[str, Any]):
    value = tape.get("tape_no") or ""
    try:
        return (0, float(value), "")
    except (TypeError, ValueError):
        return (1, 0.0, str(value))


def sort_tapes(tapes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(tapes, key=_tape_sort_key)

"""
Scope-of-Work (SOW) matrix editor.

Holds an editable selection of inspection scope for one (jobpack, structure)
pair and reconciles it against the persisted SOW items on save.

A selection is identified by SelectionKey(report, component, inspection type,
scope), where scope is either WHOLE (the component inspected as one unit) or
a Range(start, end) of its elevation span. For a given (report, component,
inspection type) group the whole-component key and range keys are mutually
exclusive: selecting one kind clears the other.

Elevation ranges are derived from a per-component sorted breakpoint list and
the component's elevation bounds. They are listed topmost first as
(upper, lower) pairs.

Saving computes a SavePlan (header upsert, item upserts, item deletes) as a
diff against the loaded items and hands it to the client in one call.
"""

import logging
import math
import re
from dataclasses import dataclass, asdict, field, replace
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Union

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_INCOMPLETE = "incomplete"

COPY_EMPTY = "empty"
COPY_ALL = "copy"
COPY_PENDING = "copy_pending"
COPY_MODES = (COPY_EMPTY, COPY_ALL, COPY_PENDING)

# Inspection types whose code or name contains one of these never belong in a SOW
EXCLUDED_TYPE_KEYWORDS = [
    "EXSUM", "LOG", "CALIB", "SUMMARY", "UTCLB",
    "CPCLB", "ROVCLB", "SETUP", "CHECK", "TEST_PIECE",
]

_EPSILON = 1e-9


class ValidationError(ValueError):
    """A blocking user input error, raised before any persistence call."""


class SOWSaveError(RuntimeError):
    """Persisting the SOW failed part way."""


# =============================================================================
# KEYS
# =============================================================================

@dataclass(frozen=True)
class Whole:
    """Scope covering the whole component (no elevation split)."""

    def __repr__(self) -> str:
        return "WHOLE"


WHOLE = Whole()


@dataclass(frozen=True)
class Range:
    """Elevation sub-range of a component, stored as (upper, lower)."""
    start: float
    end: float

    @property
    def label(self) -> str:
        return f"{self.start:.1f}m - {self.end:.1f}m"

    def matches(self, start: Any, end: Any) -> bool:
        # rows may be stored lower-first
        return ((_same(self.start, start) and _same(self.end, end))
                or (_same(self.start, end) and _same(self.end, start)))


Scope = Union[Whole, Range]


@dataclass(frozen=True)
class SelectionKey:
    report: Optional[str]
    component_id: int
    inspection_type_id: int
    scope: Scope = WHOLE

    @property
    def group(self) -> Tuple[Optional[str], int, int]:
        return self.report, self.component_id, self.inspection_type_id


def scope_from_pair(start: Any, end: Any) -> Scope:
    """Map a persisted (start, end) pair to a scope; (0, 0) means whole."""
    start = float(start or 0)
    end = float(end or 0)
    if start == 0 and end == 0:
        return WHOLE
    return Range(max(start, end), min(start, end))


def _same(a: Any, b: Any) -> bool:
    try:
        return abs(float(a) - float(b)) < _EPSILON
    except (TypeError, ValueError):
        return False


def _report_of(item: Dict[str, Any]) -> Optional[str]:
    return item.get("report_number") or None


def _key_order(key: SelectionKey):
    if isinstance(key.scope, Range):
        return (key.report or "", key.component_id, key.inspection_type_id, 1, -key.scope.start, -key.scope.end)
    return (key.report or "", key.component_id, key.inspection_type_id, 0, 0.0, 0.0)


def _fmt_elevation(value: float) -> str:
    return f"{value:g}"


def _find_range(item: Optional[Dict[str, Any]], scope: Range) -> Optional[Dict[str, Any]]:
    if not item:
        return None
    for entry in item.get("elevation_data") or []:
        if scope.matches(entry.get("start", 0), entry.get("end", 0)):
            return entry
    return None


# =============================================================================
# INSPECTION TYPE FILTER
# =============================================================================

def is_sow_inspection_type(itype: Dict[str, Any]) -> bool:
    """True if an inspection type is usable in a SOW matrix."""
    code = str(itype.get("code") or "").strip()
    name = str(itype.get("name") or "").strip()
    if not code or not name:
        return False
    if code.upper() in ("NULL", "UNDEFINED") or name.upper() in ("NULL", "UNDEFINED"):
        return False
    if not re.search(r"[A-Za-z]", name):
        return False

    code_u = code.upper()
    name_u = name.upper()
    return not any(k in code_u or k in name_u for k in EXCLUDED_TYPE_KEYWORDS)


def filter_inspection_types(types: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [t for t in types if is_sow_inspection_type(t)]


# =============================================================================
# SAVE PLAN
# =============================================================================

@dataclass
class SavePlan:
    """Header upsert plus the item upserts/deletes needed to match the selection."""
    header: Dict[str, Any]
    upserts: List[Dict[str, Any]] = field(default_factory=list)
    deletes: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


# =============================================================================
# EDITOR
# =============================================================================

class SOWEditor:
    """
    In-memory SOW matrix for one (jobpack, structure).

    The client must provide fetch_sow(jobpack_id, structure_id) returning
    {"header": ..., "items": [...]} or None, and apply_save_plan(plan)
    returning the saved header.
    """

    def __init__(self, client, jobpack_id: int, structure_id: int,
                 components: List[Dict[str, Any]], inspection_types: List[Dict[str, Any]],
                 structure_type: str = "PLATFORM", structure_title: Optional[str] = None):
        self.client = client
        self.jobpack_id = jobpack_id
        self.structure_id = structure_id
        self.structure_type = structure_type
        self.structure_title = structure_title

        self.components: Dict[int, Dict[str, Any]] = {c["id"]: c for c in components}
        self.inspection_types: Dict[int, Dict[str, Any]] = {
            t["id"]: t for t in filter_inspection_types(inspection_types)
        }
        self._reset()

    def _reset(self):
        self.sow: Optional[Dict[str, Any]] = None
        self.items: List[Dict[str, Any]] = []
        self.reports: List[Dict[str, Any]] = []
        self.active_report: Optional[str] = None
        self.pending_report: Optional[Dict[str, Any]] = None
        self.selected_components: Dict[Optional[str], Set[int]] = {}
        self.selected: Set[SelectionKey] = set()
        self.breakpoints: Dict[int, List[float]] = {}
        self.split_enabled: Dict[int, bool] = {}

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def load(self):
        """
        Rebuild the editor state from the persisted SOW.

        A missing SOW or a failed fetch leaves the editor empty.
        """
        previous_active = self.active_report
        try:
            payload = self.client.fetch_sow(self.jobpack_id, self.structure_id)
        except Exception as e:
            logger.error(f"Failed to load SOW for jobpack {self.jobpack_id} "
                         f"structure {self.structure_id}: {e}", exc_info=True)
            self._reset()
            return

        self._reset()
        if not payload or not payload.get("header"):
            return

        self.sow = payload["header"]
        self.items = list(payload.get("items") or [])
        self.reports = [dict(r) for r in self.sow.get("report_numbers") or []]
        for report in self.reports:
            self.selected_components.setdefault(report.get("number"), set())

        breakpoints: Dict[int, Set[float]] = {}
        for item in self.items:
            report = _report_of(item)
            cid = item["component_id"]
            tid = item["inspection_type_id"]
            self.selected_components.setdefault(report, set()).add(cid)

            ranges = item.get("elevation_data") or []
            if item.get("elevation_required") and ranges:
                self.split_enabled[cid] = True
                for entry in ranges:
                    start = float(entry.get("start") or 0)
                    end = float(entry.get("end") or 0)
                    self.selected.add(SelectionKey(report, cid, tid, scope_from_pair(start, end)))
                    breakpoints.setdefault(cid, set()).update((start, end))
            else:
                self.selected.add(SelectionKey(report, cid, tid, WHOLE))

        self.breakpoints = {cid: sorted(points) for cid, points in breakpoints.items()}

        numbers = [r.get("number") for r in self.reports]
        if previous_active in numbers:
            self.active_report = previous_active
        else:
            self.active_report = numbers[0] if numbers else None

    # -------------------------------------------------------------------------
    # Report numbers
    # -------------------------------------------------------------------------

    def report_numbers(self) -> List[str]:
        return [r.get("number") for r in self.reports]

    def set_active_report(self, number: Optional[str]):
        if number is not None and number not in self.report_numbers():
            raise ValidationError(f"Unknown report number: {number}")
        self.active_report = number

    def add_report_number(self, number: str, contractor_ref: str = "") -> str:
        """
        Add a report number.

        Returns "empty" for blank input, "added" when the report was inserted
        directly (first report), or "pending_copy" when the copy-scope decision
        must be made through confirm_copy_scope() / cancel_copy_scope().
        """
        number = (number or "").strip()
        if not number:
            return "empty"
        if number in self.report_numbers():
            raise ValidationError("Report number already exists")

        entry = {
            "number": number,
            "contractor_ref": (contractor_ref or "").strip(),
            "date": date.today().isoformat(),
        }
        if not self.reports:
            self.reports.append(entry)
            self.selected_components[number] = set()
            self.active_report = number
            return "added"

        self.pending_report = entry
        return "pending_copy"

    def cancel_copy_scope(self):
        self.pending_report = None

    def confirm_copy_scope(self, mode: str = COPY_EMPTY, source: Optional[str] = None):
        """
        Insert the pending report, seeding its selection from another report.

        mode "empty" starts blank, "copy" copies every key of the source report
        and "copy_pending" skips keys whose persisted item or range is completed.
        """
        if self.pending_report is None:
            raise ValidationError("No report number is waiting to be added")
        if mode not in COPY_MODES:
            raise ValidationError(f"Unknown copy mode: {mode}")
        if mode != COPY_EMPTY and source not in self.report_numbers():
            raise ValidationError("Select a report number to copy from")

        target = self.pending_report["number"]
        components: Set[int] = set()

        if mode != COPY_EMPTY:
            for key in list(self.selected):
                if key.report != source:
                    continue
                if mode == COPY_PENDING and self._is_completed(key):
                    continue
                self.selected.add(replace(key, report=target))
                components.add(key.component_id)
            if mode == COPY_ALL:
                components |= self.selected_components.get(source, set())

        self.reports.append(self.pending_report)
        self.selected_components[target] = components
        self.active_report = target
        self.pending_report = None

    def remove_report_number(self, number: str):
        """Drop a report along with every selection made under it."""
        if number not in self.report_numbers():
            return
        self.reports = [r for r in self.reports if r.get("number") != number]
        self.selected = {k for k in self.selected if k.report != number}
        self.selected_components.pop(number, None)
        if self.active_report == number:
            remaining = self.report_numbers()
            self.active_report = remaining[0] if remaining else None

    def _is_completed(self, key: SelectionKey) -> bool:
        item = self._find_item(*key.group)
        if item is None:
            return False
        if item.get("status") == STATUS_COMPLETED:
            return True
        if item.get("elevation_required") and isinstance(key.scope, Range):
            entry = _find_range(item, key.scope)
            return bool(entry and entry.get("status") == STATUS_COMPLETED)
        return False

    # -------------------------------------------------------------------------
    # Components and selections
    # -------------------------------------------------------------------------

    def add_component(self, component_id: int):
        if component_id not in self.components:
            raise ValidationError(f"Unknown component: {component_id}")
        self.selected_components.setdefault(self.active_report, set()).add(component_id)

    def remove_component(self, component_id: int):
        self.selected_components.get(self.active_report, set()).discard(component_id)
        self.selected = {
            k for k in self.selected
            if not (k.report == self.active_report and k.component_id == component_id)
        }

    def is_selected(self, component_id: int, inspection_type_id: int, scope: Scope = WHOLE) -> bool:
        return SelectionKey(self.active_report, component_id, inspection_type_id, scope) in self.selected

    def toggle_selection(self, component_id: int, inspection_type_id: int, scope: Scope = WHOLE) -> bool:
        """
        Flip one key for the active report. Returns the new selected state.

        Turning on the whole-component key clears the group's ranges and
        turning on a range clears the whole-component key.
        """
        key = SelectionKey(self.active_report, component_id, inspection_type_id, scope)
        if key in self.selected:
            self.selected.discard(key)
            return False

        if isinstance(scope, Range):
            self._check_range_bounds(component_id, scope)
            self.selected.discard(replace(key, scope=WHOLE))
        else:
            self.selected = {k for k in self.selected if k.group != key.group}

        self.selected.add(key)
        self.selected_components.setdefault(self.active_report, set()).add(component_id)
        return True

    def _check_range_bounds(self, component_id: int, scope: Range):
        bounds = self.bounds(component_id)
        if bounds is None:
            raise ValidationError("Component has no elevation span to split")
        lo, hi = bounds
        for value in (scope.start, scope.end):
            if value < lo - _EPSILON or value > hi + _EPSILON:
                raise ValidationError(
                    f"Elevation must be between {_fmt_elevation(lo)}m and {_fmt_elevation(hi)}m"
                )

    # -------------------------------------------------------------------------
    # Elevation splitting
    # -------------------------------------------------------------------------

    def bounds(self, component_id: int) -> Optional[Tuple[float, float]]:
        """(min, max) of the component's elevation span, or None if unknown."""
        comp = self.components.get(component_id) or {}
        elv_1, elv_2 = comp.get("elv_1"), comp.get("elv_2")
        if elv_1 is None or elv_2 is None:
            return None
        elv_1, elv_2 = float(elv_1), float(elv_2)
        return min(elv_1, elv_2), max(elv_1, elv_2)

    def set_split_enabled(self, component_id: int, enabled: bool = True):
        self.split_enabled[component_id] = bool(enabled)

    def add_component_breakpoint(self, component_id: int, elevation: Any) -> bool:
        """
        Insert a breakpoint strictly inside the component's span.

        NaN is ignored and duplicates are skipped (both return False).
        """
        try:
            value = float(elevation)
        except (TypeError, ValueError):
            raise ValidationError("Elevation must be a number")
        if math.isnan(value):
            return False

        bounds = self.bounds(component_id)
        if bounds is not None:
            lo, hi = bounds
            if value <= lo or value >= hi:
                raise ValidationError(
                    f"Elevation must be between {_fmt_elevation(lo)}m and {_fmt_elevation(hi)}m"
                )

        points = self.breakpoints.setdefault(component_id, [])
        if any(_same(value, p) for p in points):
            return False
        points.append(value)
        points.sort()
        return True

    def remove_component_breakpoint(self, component_id: int, elevation: Any):
        points = self.breakpoints.get(component_id, [])
        self.breakpoints[component_id] = [p for p in points if not _same(p, elevation)]

    def auto_split(self, component_id: int, interval: Any) -> List[float]:
        """Replace the breakpoints with evenly spaced points every `interval` metres."""
        bounds = self.bounds(component_id)
        if bounds is None:
            raise ValidationError("Component has no elevation span to split")
        lo, hi = bounds
        try:
            step = float(interval)
        except (TypeError, ValueError):
            raise ValidationError("Interval must be a number")
        if not step > 0.001 or not hi > lo:
            raise ValidationError("Interval must be greater than 0")

        points: Set[float] = set()
        value = lo + step
        while value < hi:
            # half-up rounding to one decimal
            rounded = math.floor(value * 10 + 0.5) / 10
            if lo < rounded < hi:
                points.add(rounded)
            value += step

        self.breakpoints[component_id] = sorted(points)
        self.split_enabled[component_id] = True
        return self.breakpoints[component_id]

    def component_ranges(self, component_id: int) -> List[Tuple[Any, Any]]:
        """Display ranges, topmost first, as (upper, lower) pairs."""
        comp = self.components.get(component_id) or {}
        bounds = self.bounds(component_id)
        if bounds is not None and self.split_enabled.get(component_id):
            lo, hi = bounds
            inner = [b for b in self.breakpoints.get(component_id, []) if lo < b < hi]
            points = [hi] + sorted(inner, reverse=True) + [lo]
            return [(points[i], points[i + 1]) for i in range(len(points) - 1)]
        return [(comp.get("elv_1"), comp.get("elv_2"))]

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def _find_item(self, report: Optional[str], component_id: int,
                   inspection_type_id: int) -> Optional[Dict[str, Any]]:
        for item in self.items:
            if (item.get("component_id") == component_id
                    and item.get("inspection_type_id") == inspection_type_id
                    and _report_of(item) == report):
                return item
        return None

    def item_status(self, component_id: int, inspection_type_id: int, scope: Scope = WHOLE) -> str:
        item = self._find_item(self.active_report, component_id, inspection_type_id)
        if item is None:
            return STATUS_PENDING
        if item.get("elevation_required"):
            entry = _find_range(item, scope) if isinstance(scope, Range) else None
            return (entry or {}).get("status") or STATUS_PENDING
        return item.get("status") or STATUS_PENDING

    def stats(self) -> Dict[str, int]:
        items = [i for i in self.items if _report_of(i) == self.active_report]
        result = {"total": len(items), STATUS_COMPLETED: 0, STATUS_INCOMPLETE: 0, STATUS_PENDING: 0}
        for item in items:
            status = item.get("status") or STATUS_PENDING
            if status in result:
                result[status] += 1
        return result

    # -------------------------------------------------------------------------
    # Saving
    # -------------------------------------------------------------------------

    def _header_payload(self, user: Optional[str]) -> Dict[str, Any]:
        user = user or "system"
        if self.sow and self.sow.get("id"):
            metadata = dict(self.sow.get("metadata") or {})
            metadata["updated_by"] = user
            return {
                "id": self.sow["id"],
                "report_numbers": self.reports,
                "metadata": metadata,
                "updated_by": user,
                "updated_at": self.sow.get("updated_at"),
            }
        return {
            "jobpack_id": self.jobpack_id,
            "structure_id": self.structure_id,
            "structure_type": self.structure_type,
            "structure_title": self.structure_title,
            "report_numbers": self.reports,
            "metadata": {"created_by": user},
            "created_by": user,
        }

    def build_save_plan(self, user: Optional[str] = None) -> SavePlan:
        """Diff the selection against the loaded items."""
        plan = SavePlan(header=self._header_payload(user))

        groups: Dict[Tuple[Optional[str], int, int], List[Scope]] = {}
        for key in sorted(self.selected, key=_key_order):
            groups.setdefault(key.group, []).append(key.scope)

        for (report, cid, tid), scopes in groups.items():
            comp = self.components.get(cid)
            itype = self.inspection_types.get(tid)
            if comp is None or itype is None:
                logger.warning(f"Skipping selection for unknown component {cid} / inspection type {tid}")
                continue

            ranges = [s for s in scopes if isinstance(s, Range)]
            split = WHOLE not in scopes and bool(ranges)
            existing = self._find_item(report, cid, tid)

            elevation_data = []
            if split:
                for rng in ranges:
                    previous = _find_range(existing, rng) or {}
                    elevation_data.append({
                        "elevation": rng.label,
                        "start": rng.start,
                        "end": rng.end,
                        "status": previous.get("status") or STATUS_PENDING,
                        "inspection_count": previous.get("inspection_count") or 0,
                    })

            payload = {
                "component_qid": comp.get("qid"),
                "component_type": comp.get("type"),
                "description": comp.get("description"),
                "s_node": comp.get("s_node"),
                "f_node": comp.get("f_node"),
                "s_leg": comp.get("s_leg"),
                "f_leg": comp.get("f_leg"),
                "inspection_code": itype.get("code"),
                "inspection_name": itype.get("name"),
                "elevation_required": split,
                "elevation_data": elevation_data,
                "status": (existing or {}).get("status") or STATUS_PENDING,
                "report_number": report,
            }
            if existing:
                payload["id"] = existing["id"]
            else:
                payload["component_id"] = cid
                payload["inspection_type_id"] = tid
            plan.upserts.append(payload)

        for item in self.items:
            group = (_report_of(item), item.get("component_id"), item.get("inspection_type_id"))
            if group not in groups:
                plan.deletes.append(item["id"])

        return plan

    def save(self, pending_input: str = "", confirm: Optional[Callable[[str], bool]] = None,
             user: Optional[str] = None) -> bool:
        """
        Persist the selection and reload.

        Raises ValidationError (before any client call) when no report number
        exists. A typed but unadded report number is passed to `confirm`;
        declining cancels the save and returns False.
        """
        if not self.reports:
            raise ValidationError("Please add at least one Report Number before saving.")

        typed = (pending_input or "").strip()
        if typed and typed not in self.report_numbers():
            message = (f'Report number "{typed}" has not been added yet. '
                       f'Continue saving without it?')
            if confirm is not None and not confirm(message):
                return False
            logger.warning(f"Saving SOW without unadded report number {typed}")

        plan = self.build_save_plan(user)
        try:
            header = self.client.apply_save_plan(plan)
        except SOWSaveError:
            raise
        except Exception as e:
            logger.error(f"Error saving SOW: {e}", exc_info=True)
            raise SOWSaveError(f"Failed to save SOW: {e}") from e

        logger.info(f"Saved SOW {header.get('id') if header else None}: "
                    f"{len(plan.upserts)} upserts, {len(plan.deletes)} deletes")
        self.load()
        return True

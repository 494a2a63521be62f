"""
Job-pack creation wizard.

A job pack (work pack) bundles structures, components and inspection types
for a field campaign. It is collected through a strictly linear five-step
flow:

1. General     - name, contractor, topside/subsea scope, planning details
2. Mode        - STRUCTURE, COMPONENT_TYPE or COMPONENT
3. Selection   - structures (+ component types or components, by mode)
4. Inspection  - inspection codes per selected structure
5. Submit

Each step validates only its own fields. Going back never clears state.
build_jobpack_records() turns a submitted payload into the rows persisted
by database.create_jobpack().
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

MODE_STRUCTURE = "STRUCTURE"
MODE_COMPONENT_TYPE = "COMPONENT_TYPE"
MODE_COMPONENT = "COMPONENT"
VALID_MODES = [MODE_STRUCTURE, MODE_COMPONENT_TYPE, MODE_COMPONENT]

# Wizard mode -> workpl.tasktype
TASK_TYPES = {
    MODE_STRUCTURE: "STRUCTURE",
    MODE_COMPONENT_TYPE: "COMP TYPE",
    MODE_COMPONENT: "COMPONENT",
}

PLAN_TYPES = ["PLANNED", "INSTANT"]

INSPNO_WIDTH = 11
DEFAULT_WORKUNIT = "000"

STEP_GENERAL = 1
STEP_MODE = 2
STEP_SELECTION = 3
STEP_INSPECTION = 4
STEP_SUBMIT = 5
STEP_TITLES = {
    STEP_GENERAL: "General",
    STEP_MODE: "Mode",
    STEP_SELECTION: "Selection",
    STEP_INSPECTION: "Inspection",
    STEP_SUBMIT: "Submit",
}


class WizardValidationError(ValueError):
    """Raised when a step's required fields are missing."""


def format_inspno(sequence: int) -> str:
    return str(sequence).zfill(INSPNO_WIDTH)


def next_inspno(current_max: Optional[str]) -> str:
    """max(inspno) + 1, zero padded; an empty or non-numeric table starts at 1."""
    try:
        sequence = int(current_max) + 1 if current_max else 1
    except (TypeError, ValueError):
        sequence = 1
    return format_inspno(sequence)


@dataclass
class WizardState:
    """Everything the wizard collects, keyed the way the create endpoint expects."""
    name: str = ""
    contractor: Optional[Dict[str, Any]] = None  # CONTR_NAM library row
    mode: Optional[str] = None
    scope: Dict[str, bool] = field(default_factory=lambda: {"topside": False, "subsea": False})
    structures: List[int] = field(default_factory=list)
    component_types: List[str] = field(default_factory=list)
    components: List[int] = field(default_factory=list)
    inspection_types: List[str] = field(default_factory=list)
    structure_component_selections: Dict[int, List[str]] = field(default_factory=dict)
    structure_specific_components: Dict[int, List[int]] = field(default_factory=dict)
    structure_specific_inspection_types: Dict[int, List[str]] = field(default_factory=dict)
    plan_type: str = "PLANNED"
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    company_rep: str = ""
    vessel: str = ""
    dive_type: str = ""
    contract_ref: str = ""
    contractor_ref: str = ""
    estimated_time: Optional[str] = None
    comments: str = ""

    def to_payload(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


class JobPackWizard:
    """Linear step controller over a WizardState."""

    def __init__(self, state: Optional[WizardState] = None):
        self.state = state or WizardState()
        self.step = STEP_GENERAL
        self.active_structure: Optional[int] = None

    @property
    def title(self) -> str:
        return STEP_TITLES[self.step]

    def validate_step(self, step: int) -> Optional[str]:
        """Return the blocking message for a step, or None when it is complete."""
        s = self.state
        if step == STEP_GENERAL:
            if not s.name.strip():
                return "Job pack name is required"
            if not s.contractor:
                return "Contractor is required"
            if not (s.scope.get("topside") or s.scope.get("subsea")):
                return "Select at least one of Topside or Subsea"
            if s.plan_type not in PLAN_TYPES:
                return "Plan type must be PLANNED or INSTANT"
        elif step == STEP_MODE:
            if s.mode not in VALID_MODES:
                return "Select a job pack mode"
        elif step == STEP_SELECTION:
            if not s.structures:
                return "Select at least one structure"
            if s.mode == MODE_COMPONENT_TYPE:
                has_types = bool(s.component_types) or any(
                    s.structure_component_selections.get(st) for st in s.structures
                )
                if not has_types:
                    return "Select at least one component type"
            if s.mode == MODE_COMPONENT:
                has_components = bool(s.components) or any(
                    s.structure_specific_components.get(st) for st in s.structures
                )
                if not has_components:
                    return "Select at least one component"
        elif step == STEP_INSPECTION:
            missing = [st for st in s.structures if not self.codes_for(st)]
            if missing:
                return f"Select inspection types for every structure (missing: {', '.join(str(m) for m in missing)})"
        return None

    def next(self) -> int:
        message = self.validate_step(self.step)
        if message:
            raise WizardValidationError(message)
        if self.step < STEP_SUBMIT:
            self.step += 1
        if self.step == STEP_INSPECTION and self.active_structure not in self.state.structures:
            self.active_structure = self.state.structures[0] if self.state.structures else None
        return self.step

    def back(self) -> int:
        if self.step > STEP_GENERAL:
            self.step -= 1
        return self.step

    # -------------------------------------------------------------------------
    # Inspection step
    # -------------------------------------------------------------------------

    def codes_for(self, structure_id: int) -> List[str]:
        """A structure's own list once it has one, else the global codes."""
        specific = self.state.structure_specific_inspection_types
        if structure_id in specific:
            return specific[structure_id]
        return list(self.state.inspection_types)

    def toggle_inspection_code(self, structure_id: int, code: str) -> bool:
        specific = self.state.structure_specific_inspection_types
        if structure_id not in specific:
            specific[structure_id] = list(self.state.inspection_types)
        codes = specific[structure_id]
        if code in codes:
            codes.remove(code)
            return False
        codes.append(code)
        return True

    def apply_to_all(self, structure_id: Optional[int] = None):
        """Overwrite every selected structure's codes with the active structure's."""
        source = structure_id if structure_id is not None else self.active_structure
        if source is None:
            raise WizardValidationError("No active structure to copy from")
        codes = list(self.codes_for(source))
        for st in self.state.structures:
            self.state.structure_specific_inspection_types[st] = list(codes)

    def submit(self, create_fn: Callable[[Dict[str, Any]], Any]):
        for step in (STEP_GENERAL, STEP_MODE, STEP_SELECTION, STEP_INSPECTION):
            message = self.validate_step(step)
            if message:
                self.step = step
                raise WizardValidationError(message)
        self.step = STEP_SUBMIT
        return create_fn(self.state.to_payload())


# =============================================================================
# PERSISTENCE RECORDS
# =============================================================================

def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _as_list(value: Any) -> List[Any]:
    return list(value) if value else []


def _unique(values: List[Any]) -> List[Any]:
    seen = []
    for v in values:
        if v not in seen:
            seen.append(v)
    return seen


def _lookup(mapping: Dict, structure_id: Any) -> List[Any]:
    # JSON object keys arrive as strings
    if not mapping:
        return []
    return _as_list(mapping.get(structure_id) or mapping.get(str(structure_id)))


def build_jobpack_records(payload: Dict[str, Any], inspno: str, user: Optional[str]) -> Dict[str, Any]:
    """
    Expand a wizard payload into workpl/taskstr/taskcomp/taskinsp rows.

    Inspection codes per structure come from structure_specific_inspection_types
    when present, else from inspection_types (or the single inspection_type).
    """
    mode = payload.get("mode")
    if mode not in VALID_MODES:
        raise ValueError("mode must be one of STRUCTURE, COMPONENT_TYPE, COMPONENT")

    scope = payload.get("scope") or {}
    topside = 1 if scope.get("topside") else 0
    subsea = 1 if scope.get("subsea") else 0
    contractor = payload.get("contractor") or {}

    global_types = _as_list(payload.get("inspection_types"))
    if not global_types and payload.get("inspection_type"):
        global_types = [payload["inspection_type"]]

    def types_for(structure_id):
        return _lookup(payload.get("structure_specific_inspection_types"), structure_id) or global_types

    jobpack = {
        "inspno": inspno,
        "jobname": (payload.get("name") or "")[:20],
        "tasktype": TASK_TYPES.get(mode, mode),
        "cr_user": (user or "unknown")[:30],
        "cr_date": datetime.utcnow(),
        "workunit": DEFAULT_WORKUNIT,
        "contrac": contractor.get("lib_id") if isinstance(contractor, dict) else contractor,
        "status": "OPEN",
        "topside": topside,
        "subsea": subsea,
        "plantype": payload.get("plan_type"),
        "istart": payload.get("start_date"),
        "iend": payload.get("end_date"),
        "comprep": payload.get("company_rep"),
        "vessel": (payload.get("vessel") or "")[:20],
        "divetyp": payload.get("dive_type"),
        "contract_ref": payload.get("contract_ref"),
        "contractor_ref": payload.get("contractor_ref"),
        "idesc": payload.get("comments"),
        "site_hrs": _int_or_none(payload.get("estimated_time")),
    }

    structures = _unique([int(s) for s in _as_list(payload.get("structures"))])
    taskstr = [{"inspno": inspno, "str_id": s, "workunit": DEFAULT_WORKUNIT} for s in structures]
    taskcomp: List[Dict[str, Any]] = []
    taskinsp: List[Dict[str, Any]] = []

    def insp_row(str_id, inspcode, comp_id=0, compcode=""):
        return {
            "inspno": inspno,
            "str_id": str_id,
            "comp_id": comp_id,
            "compcode": compcode,
            "inspcode": inspcode,
            "plantype": payload.get("plan_type"),
            "topside": topside,
            "subsea": subsea,
            "workunit": DEFAULT_WORKUNIT,
        }

    if mode == MODE_STRUCTURE:
        for s in structures:
            for code in types_for(s):
                taskinsp.append(insp_row(s, code))

    elif mode == MODE_COMPONENT_TYPE:
        for s in structures:
            comp_types = _lookup(payload.get("structure_component_selections"), s) \
                or _as_list(payload.get("component_types"))
            for comp_code in comp_types:
                for code in types_for(s):
                    taskinsp.append(insp_row(s, code, compcode=comp_code))

    else:
        specific = payload.get("structure_specific_components") or {}
        if specific:
            for s in structures:
                for comp_id in _lookup(specific, s):
                    taskcomp.append({"inspno": inspno, "str_id": s, "comp_id": int(comp_id)})
                    for code in types_for(s):
                        taskinsp.append(insp_row(s, code, comp_id=int(comp_id)))
        else:
            for comp_id in _as_list(payload.get("components")):
                taskcomp.append({"inspno": inspno, "str_id": 0, "comp_id": int(comp_id)})

    return {
        "jobpack": jobpack,
        "taskstr": taskstr,
        "taskcomp": taskcomp,
        "taskinsp": taskinsp,
    }

"""
Persistence clients for the SOW editor.
"""

from typing import Any, Dict, Optional

import database as db
from sow_editor import SavePlan, SOWEditor, SOWSaveError


class SOWClient:
    """Interface the SOWEditor talks to."""

    def fetch_sow(self, jobpack_id: int, structure_id: int) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def apply_save_plan(self, plan: SavePlan) -> Dict[str, Any]:
        raise NotImplementedError


class DatabaseSOWClient(SOWClient):
    """Reads and writes the SOW tables directly; a save plan is one transaction."""

    def fetch_sow(self, jobpack_id: int, structure_id: int) -> Optional[Dict[str, Any]]:
        return db.find_sow(jobpack_id, structure_id)

    def apply_save_plan(self, plan: SavePlan) -> Dict[str, Any]:
        try:
            return db.apply_sow_save_plan(plan.to_dict())
        except ValueError as e:
            raise SOWSaveError(str(e)) from e


def open_sow_editor(jobpack_id: int, structure_id: int, client: SOWClient = None) -> SOWEditor:
    """Build an editor over a structure's components and load its SOW."""
    structure = db.get_structure(structure_id)
    if not structure:
        raise ValueError(f"Structure not found: {structure_id}")

    editor = SOWEditor(
        client or DatabaseSOWClient(),
        jobpack_id,
        structure_id,
        components=db.get_components(structure_id),
        inspection_types=db.get_inspection_types(),
        structure_type=structure["str_type"],
        structure_title=structure["title"],
    )
    editor.load()
    return editor

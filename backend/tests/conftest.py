"""
conftest.py - Shared pytest fixtures for the inspection backend test suite.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that the flat
    modules (``database``, ``sow_editor``, ...) import the same way app.py
    imports them.

The database and storage folder are pointed at a temporary directory before
any backend module is imported; every test starts from empty tables.
"""

import os
import sys
import tempfile

import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any backend imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

_TMP_DIR = tempfile.mkdtemp(prefix="inspection-tests-")
os.environ["DATABASE_PATH"] = os.path.join(_TMP_DIR, "test.db")
os.environ["UPLOAD_FOLDER"] = os.path.join(_TMP_DIR, "storage")
os.environ["REPORT_OUTPUT_FOLDER"] = os.path.join(_TMP_DIR, "reports")


@pytest.fixture(autouse=True)
def clean_db():
    """Empty every table before each test."""
    import database as db
    db.reset_db()
    yield
    db.Session.remove()


@pytest.fixture
def client():
    """Flask test client."""
    from app import app
    app.config["TESTING"] = True
    with app.test_client() as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# SOW editor fixtures
# ---------------------------------------------------------------------------

class RecordingSOWClient:
    """
    In-memory SOW client that records every call.

    apply_save_plan() applies the plan to its own state so a following
    fetch_sow() sees the saved rows, like the database client does.
    """

    def __init__(self, payload=None):
        self.payload = payload
        self.calls = []
        self.plans = []
        self._next_id = 1000

    def fetch_sow(self, jobpack_id, structure_id):
        self.calls.append(("fetch_sow", jobpack_id, structure_id))
        return self.payload

    def apply_save_plan(self, plan):
        self.calls.append(("apply_save_plan",))
        self.plans.append(plan)

        header = dict(plan.header)
        header.setdefault("id", 1)
        items = {i["id"]: dict(i) for i in (self.payload or {}).get("items", [])}
        for item_id in plan.deletes:
            items.pop(item_id, None)
        for data in plan.upserts:
            if "id" in data:
                items[data["id"]].update(data)
            else:
                self._next_id += 1
                items[self._next_id] = dict(data, id=self._next_id, sow_id=header["id"])
        self.payload = {"header": header, "items": list(items.values())}
        return header


@pytest.fixture
def recording_client():
    return RecordingSOWClient()


@pytest.fixture
def components():
    """Two legs with elevation spans and one member without one."""
    return [
        {"id": 1, "qid": "LEG-A1", "type": "LEG", "description": "Leg A1", "elv_1": -2.0, "elv_2": -29.0},
        {"id": 2, "qid": "LEG-B1", "type": "LEG", "description": "Leg B1", "elv_1": 10.0, "elv_2": -20.0},
        {"id": 3, "qid": "HB-01", "type": "HORIZ", "description": "Horizontal brace"},
    ]


@pytest.fixture
def inspection_types():
    return [
        {"id": 10, "code": "GVI", "name": "General Visual Inspection"},
        {"id": 11, "code": "CVI", "name": "Close Visual Inspection"},
        {"id": 12, "code": "CPCLB", "name": "CP Calibration"},
    ]


@pytest.fixture
def make_editor(components, inspection_types):
    """Factory building a SOWEditor over the standard components."""
    from sow_editor import SOWEditor

    def _make(client):
        editor = SOWEditor(client, 7, 3, components, inspection_types, structure_title="Platform A")
        editor.load()
        return editor

    return _make


@pytest.fixture
def seeded_structure():
    """A persisted platform with components and inspection types."""
    import database as db

    structure = db.create_structure("Platform A", "PLATFORM", field_name="North Field")
    leg = db.create_component(structure["id"], "LEG-A1", "LEG", description="Leg A1", elv_1=-2.0, elv_2=-29.0)
    brace = db.create_component(structure["id"], "HB-01", "HORIZ", description="Horizontal brace")
    gvi = db.create_inspection_type("GVI", "General Visual Inspection")
    cvi = db.create_inspection_type("CVI", "Close Visual Inspection")
    return {"structure": structure, "leg": leg, "brace": brace, "gvi": gvi, "cvi": cvi}


@pytest.fixture
def sow_client_factory():
    """Build a RecordingSOWClient preloaded with a fetch_sow payload."""
    return RecordingSOWClient

"""
test_jobpack.py - Job-pack wizard steps, record fan-out and the create endpoint.
"""

import pytest

from jobpack import (
    MODE_COMPONENT,
    MODE_COMPONENT_TYPE,
    MODE_STRUCTURE,
    STEP_GENERAL,
    STEP_INSPECTION,
    STEP_MODE,
    STEP_SELECTION,
    STEP_SUBMIT,
    JobPackWizard,
    WizardValidationError,
    build_jobpack_records,
    format_inspno,
    next_inspno,
)


@pytest.fixture
def wizard():
    return JobPackWizard()


def _fill_general(wizard):
    wizard.state.name = "Campaign 26"
    wizard.state.contractor = {"lib_id": "7", "lib_desc": "Subsea Services"}
    wizard.state.scope["subsea"] = True


class TestInspno:

    def test_first_number(self):
        assert next_inspno(None) == "00000000001"

    def test_increment(self):
        assert next_inspno("00000000041") == "00000000042"

    def test_non_numeric_max_restarts(self):
        assert next_inspno("ABC") == "00000000001"

    def test_width(self):
        assert len(format_inspno(123)) == 11


class TestWizardSteps:

    def test_general_requires_name(self, wizard):
        with pytest.raises(WizardValidationError, match="Job pack name is required"):
            wizard.next()
        assert wizard.step == STEP_GENERAL

    def test_general_requires_scope(self, wizard):
        wizard.state.name = "Campaign 26"
        wizard.state.contractor = {"lib_id": "7"}
        with pytest.raises(WizardValidationError, match="Topside or Subsea"):
            wizard.next()

    def test_mode_required(self, wizard):
        _fill_general(wizard)
        wizard.next()
        assert wizard.step == STEP_MODE
        with pytest.raises(WizardValidationError, match="Select a job pack mode"):
            wizard.next()

    def test_component_mode_needs_components(self, wizard):
        _fill_general(wizard)
        wizard.state.mode = MODE_COMPONENT
        wizard.state.structures = [1]
        wizard.next()
        wizard.next()
        assert wizard.step == STEP_SELECTION
        with pytest.raises(WizardValidationError, match="Select at least one component"):
            wizard.next()

    def test_entering_inspection_step_activates_first_structure(self, wizard):
        _fill_general(wizard)
        wizard.state.mode = MODE_STRUCTURE
        wizard.state.structures = [5, 6]
        wizard.next()
        wizard.next()
        wizard.next()

        assert wizard.step == STEP_INSPECTION
        assert wizard.active_structure == 5

    def test_every_structure_needs_codes(self, wizard):
        _fill_general(wizard)
        wizard.state.mode = MODE_STRUCTURE
        wizard.state.structures = [5, 6]
        wizard.step = STEP_INSPECTION
        wizard.toggle_inspection_code(5, "GVI")

        with pytest.raises(WizardValidationError, match="missing: 6"):
            wizard.next()

    def test_apply_to_all(self, wizard):
        wizard.state.structures = [5, 6, 7]
        wizard.active_structure = 5
        wizard.toggle_inspection_code(5, "GVI")
        wizard.toggle_inspection_code(5, "CVI")
        wizard.toggle_inspection_code(6, "UT")

        wizard.apply_to_all()

        for structure_id in (5, 6, 7):
            assert wizard.codes_for(structure_id) == ["GVI", "CVI"]
        wizard.state.structure_specific_inspection_types[6].remove("CVI")
        assert wizard.codes_for(5) == ["GVI", "CVI"]

    def test_toggle_code_off(self, wizard):
        assert wizard.toggle_inspection_code(5, "GVI") is True
        assert wizard.toggle_inspection_code(5, "GVI") is False
        assert wizard.codes_for(5) == []

    def test_toggle_off_global_code(self, wizard):
        wizard.state.structures = [1]
        wizard.state.inspection_types = ["GVI", "CVI"]

        assert wizard.codes_for(1) == ["GVI", "CVI"]
        assert wizard.toggle_inspection_code(1, "GVI") is False
        assert wizard.codes_for(1) == ["CVI"]
        assert wizard.state.inspection_types == ["GVI", "CVI"]

    def test_cleared_structure_blocks_inspection_step(self, wizard):
        _fill_general(wizard)
        wizard.state.mode = MODE_STRUCTURE
        wizard.state.structures = [1, 2]
        wizard.state.inspection_types = ["GVI"]
        wizard.step = STEP_INSPECTION

        wizard.toggle_inspection_code(1, "GVI")

        assert wizard.codes_for(1) == []
        assert wizard.codes_for(2) == ["GVI"]
        with pytest.raises(WizardValidationError, match="missing: 1"):
            wizard.next()

    def test_back_keeps_state(self, wizard):
        _fill_general(wizard)
        wizard.state.mode = MODE_COMPONENT_TYPE
        wizard.next()
        wizard.next()

        assert wizard.back() == STEP_MODE
        assert wizard.back() == STEP_GENERAL
        assert wizard.back() == STEP_GENERAL
        assert wizard.state.name == "Campaign 26"
        assert wizard.state.mode == MODE_COMPONENT_TYPE

    def test_submit_validates_every_step(self, wizard):
        _fill_general(wizard)
        wizard.step = STEP_INSPECTION
        with pytest.raises(WizardValidationError, match="Select a job pack mode"):
            wizard.submit(lambda payload: None)
        assert wizard.step == STEP_MODE

    def test_submit_hands_payload_over(self, wizard):
        _fill_general(wizard)
        wizard.state.mode = MODE_STRUCTURE
        wizard.state.structures = [5]
        wizard.state.inspection_types = ["GVI"]
        received = []

        result = wizard.submit(lambda payload: received.append(payload) or "00000000001")

        assert result == "00000000001"
        assert wizard.step == STEP_SUBMIT
        assert received[0]["name"] == "Campaign 26"
        assert received[0]["inspection_types"] == ["GVI"]


class TestRecords:

    def test_structure_mode(self):
        records = build_jobpack_records({
            "name": "Campaign 26",
            "mode": MODE_STRUCTURE,
            "scope": {"topside": True},
            "structures": [1, 2],
            "inspection_types": ["GVI"],
            "structure_specific_inspection_types": {"2": ["CVI", "UT"]},
            "contractor": {"lib_id": "7"},
        }, "00000000001", "planner")

        assert records["jobpack"]["tasktype"] == "STRUCTURE"
        assert records["jobpack"]["contrac"] == "7"
        assert records["jobpack"]["topside"] == 1
        assert [r["str_id"] for r in records["taskstr"]] == [1, 2]
        assert [(r["str_id"], r["inspcode"]) for r in records["taskinsp"]] == [(1, "GVI"), (2, "CVI"), (2, "UT")]
        assert records["taskcomp"] == []

    def test_component_type_mode(self):
        records = build_jobpack_records({
            "name": "Campaign 26",
            "mode": MODE_COMPONENT_TYPE,
            "structures": [1],
            "component_types": ["LEG", "RISER"],
            "inspection_type": "GVI",
        }, "00000000002", None)

        assert records["jobpack"]["tasktype"] == "COMP TYPE"
        assert [(r["compcode"], r["inspcode"]) for r in records["taskinsp"]] == [("LEG", "GVI"), ("RISER", "GVI")]

    def test_component_mode_per_structure(self):
        records = build_jobpack_records({
            "name": "Campaign 26",
            "mode": MODE_COMPONENT,
            "structures": [1],
            "structure_specific_components": {"1": [11, 12]},
            "inspection_types": ["CVI"],
        }, "00000000003", "planner")

        assert [r["comp_id"] for r in records["taskcomp"]] == [11, 12]
        assert [(r["comp_id"], r["inspcode"]) for r in records["taskinsp"]] == [(11, "CVI"), (12, "CVI")]

    def test_invalid_mode(self):
        with pytest.raises(ValueError):
            build_jobpack_records({"name": "x", "mode": "EVERYTHING"}, "00000000001", None)

    def test_long_name_truncated(self):
        records = build_jobpack_records({"name": "A" * 40, "mode": MODE_STRUCTURE}, "00000000001", None)
        assert len(records["jobpack"]["jobname"]) == 20


class TestJobPackApi:

    def test_next_seq(self, client):
        response = client.get("/api/jobpack/utils/next-seq")
        assert response.get_json()["data"] == "00000000001"

    def test_create_and_fetch(self, client):
        response = client.post("/api/jobpack/create", json={
            "name": "Campaign 26",
            "mode": MODE_STRUCTURE,
            "scope": {"subsea": True},
            "structures": [1, 2],
            "inspection_types": ["GVI"],
            "structure_specific_inspection_types": {"2": ["CVI", "UT"]},
        }, headers={"X-User": "planner"})

        assert response.status_code == 201
        inspno = response.get_json()["data"]["inspno"]
        assert inspno == "00000000001"

        pack = client.get(f"/api/jobpack/{inspno}").get_json()["data"]
        assert pack["cr_user"] == "planner"
        assert len(pack["structures"]) == 2
        assert sorted(i["inspcode"] for i in pack["inspections"]) == ["CVI", "GVI", "UT"]

        assert client.get("/api/jobpack/utils/next-seq").get_json()["data"] == "00000000002"
        assert len(client.get("/api/jobpack").get_json()["data"]) == 1

    def test_create_requires_name(self, client):
        response = client.post("/api/jobpack/create", json={"mode": MODE_STRUCTURE})
        assert response.status_code == 400

    def test_create_rejects_bad_mode(self, client):
        response = client.post("/api/jobpack/create", json={"name": "x", "mode": "BAD"})
        assert response.status_code == 400

    def test_unknown_jobpack(self, client):
        assert client.get("/api/jobpack/00000000099").status_code == 404

    def test_contractors(self, client):
        client.post("/api/library/CONTR_NAM", json={"lib_id": "7", "lib_desc": "Subsea Services"})
        contractors = client.get("/api/jobpack/utils/contractors").get_json()["data"]
        assert [c["lib_desc"] for c in contractors] == ["Subsea Services"]

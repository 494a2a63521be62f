"""
test_reports_api.py - Report data endpoints and PDF downloads.
"""

import io

import pytest

import database as db


@pytest.fixture
def report_rows():
    """One job pack worth of anomalies, dives and video events."""
    low = db.create_anomaly(jobpack_id=1, structure_id=2, sow_report_no="R1", display_ref_no="A-001",
                            priority="Low", defect_type="Coating damage", description="Coating loss")
    critical = db.create_anomaly(jobpack_id=1, structure_id=2, sow_report_no="R1", display_ref_no="A-002",
                                 priority="Critical", description="Crack at node",
                                 inspection_date="2026-02-01T09:30:00")
    db.create_anomaly(jobpack_id=2, structure_id=2, sow_report_no="R1", priority="High")

    dive = db.create_dive_job(jobpack_id=1, structure_id=2, sow_report_no="R1", dive_no="D-01",
                              diver_name="J. Smith")
    db.add_dive_movement(dive["dive_job_id"], movement_type="On bottom", depth_meters=28.5,
                         movement_time="2026-02-01T08:06:00")
    db.add_dive_movement(dive["dive_job_id"], movement_type="Left surface", depth_meters=0,
                         movement_time="2026-02-01T08:00:00")

    tape = db.create_video_tape(dive["dive_job_id"], tape_no="1")
    db.create_video_tape(dive["dive_job_id"], tape_no="2")
    db.add_video_log(tape["tape_id"], event_type="START_TASK", timecode_start="00:00:10",
                     event_time="2026-02-01T08:10:00", remarks="first")
    db.add_video_log(tape["tape_id"], event_type="START_TASK", timecode_start="00:00:10",
                     event_time="2026-02-01T08:10:04", remarks="corrected")
    db.add_video_log(tape["tape_id"], event_type="STOP_TASK", timecode_start="00:30:00",
                     event_time="2026-02-01T08:40:00")
    return {"low": low, "critical": critical, "dive": dive, "tape": tape}


class TestReportData:

    def test_anomaly_report_with_attachments(self, client, report_rows):
        anomaly_id = report_rows["low"]["id"]
        client.post("/api/attachment", data={
            "file": (io.BytesIO(b"img"), "photo.png"),
            "source_type": "inspection",
            "source_id": str(anomaly_id),
        }, content_type="multipart/form-data")

        rows = client.get("/api/reports/anomaly-report?jobpack_id=1").get_json()["data"]

        assert [r["display_ref_no"] for r in rows] == ["A-001", "A-002"]
        assert len(rows[0]["attachments"]) == 1
        assert rows[1]["attachments"] == []

    def test_defect_summary_ordered_by_priority(self, client, report_rows):
        client.post("/api/library/AMLY_TYP", json={"lib_id": "1", "lib_desc": "Critical"})
        client.post("/api/library/combo/ANMLYCLR", json={"code_1": "1", "code_2": "192,0,0"})

        body = client.get("/api/reports/defect-summary?jobpack_id=1&structure_id=2").get_json()

        assert [r["priority"] for r in body["data"]] == ["Critical", "Low"]
        assert body["priority_colors"] == {"critical": "192,0,0"}

    def test_report_number_filter(self, client, report_rows):
        rows = client.get("/api/reports/defect-summary?jobpack_id=1&sow_report_no=R2").get_json()["data"]
        assert rows == []

    def test_placeholder_report_number_ignored(self, client, report_rows):
        rows = client.get("/api/reports/defect-summary?jobpack_id=1&sow_report_no=undefined").get_json()["data"]
        assert len(rows) == 2

    def test_diver_log(self, client, report_rows):
        jobs = client.get("/api/reports/diver-log?jobpack_id=1").get_json()["data"]

        assert [j["dive_no"] for j in jobs] == ["D-01"]
        assert [m["movement_type"] for m in jobs[0]["movements"]] == ["Left surface", "On bottom"]

    def test_video_log_deduplicated(self, client, report_rows):
        tapes = client.get("/api/reports/video-log?jobpack_id=1").get_json()["data"]

        assert len(tapes) == 1
        assert tapes[0]["dive_no"] == "D-01"
        logs = tapes[0]["logs"]
        assert [log["event_type"] for log in logs] == ["START_TASK", "STOP_TASK"]
        assert logs[0]["remarks"] == "corrected"
        assert logs[0]["event_time"] == "2026-02-01T08:10:00"

    def test_jobpack_required(self, client):
        assert client.get("/api/reports/diver-log").status_code == 400
        assert client.get("/api/reports/diver-log?jobpack_id=undefined").status_code == 400

    def test_unknown_report(self, client):
        assert client.get("/api/reports/weather?jobpack_id=1").status_code == 404
        assert client.get("/api/reports/weather/pdf?jobpack_id=1").status_code == 404

    def test_empty_jobpack(self, client):
        assert client.get("/api/reports/video-log?jobpack_id=42").get_json()["data"] == []


class TestReportPdf:

    @pytest.mark.parametrize("report_type, filename", [
        ("anomaly-report", "JP1_AnomalyReport.pdf"),
        ("defect-summary", "JP1_DefectSummary.pdf"),
        ("diver-log", "JP1_DiverLog.pdf"),
        ("video-log", "JP1_VideoLog.pdf"),
    ])
    def test_download(self, client, report_rows, report_type, filename):
        response = client.get(f"/api/reports/{report_type}/pdf?jobpack_id=1&reportNoPrefix=JP1")

        assert response.status_code == 200
        assert response.mimetype == "application/pdf"
        assert filename in response.headers["Content-Disposition"]
        assert response.data.startswith(b"%PDF")

    def test_download_empty_report(self, client):
        response = client.get("/api/reports/defect-summary/pdf?jobpack_id=42")

        assert response.status_code == 200
        assert "REPORT_DefectSummary.pdf" in response.headers["Content-Disposition"]
        assert response.data.startswith(b"%PDF")

    def test_download_uses_jobpack_details(self, client, report_rows, seeded_structure):
        client.post("/api/jobpack/create", json={
            "name": "Campaign 26", "mode": "STRUCTURE", "vessel": "MV Explorer",
            "structures": [seeded_structure["structure"]["id"]], "inspection_types": ["GVI"],
        })
        response = client.get(
            f"/api/reports/anomaly-report/pdf?jobpack_id=1&structure_id={seeded_structure['structure']['id']}"
            f"&preparedBy=A.%20Inspector&watermark=DRAFT"
        )

        assert response.status_code == 200
        assert response.data.startswith(b"%PDF")

    def test_pdf_requires_jobpack(self, client):
        assert client.get("/api/reports/video-log/pdf").status_code == 400

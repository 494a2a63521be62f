"""
test_attachments.py - Bucket storage helpers and the attachment endpoints.
"""

import io
import os

import pytest

import attachments as storage
import database as db


def _upload(client, filename="notes.txt", content=b"hello", **form):
    data = {"file": (io.BytesIO(content), filename)}
    data.update(form)
    return client.post("/api/attachment", data=data, content_type="multipart/form-data")


class TestStorage:

    def test_object_name_shape(self):
        name = storage.generate_object_name("Photo 1.JPG")
        assert name.startswith("uploads/")
        assert name.endswith(".jpg")
        millis, suffix = name[len("uploads/"):-len(".jpg")].split("-")
        assert millis.isdigit()
        assert len(suffix) == 6

    def test_allowed_file(self):
        assert storage.allowed_file("report.PDF")
        assert not storage.allowed_file("tool.exe")
        assert not storage.allowed_file("no_extension")
        assert storage.allowed_file("logo.png", {"png"})

    def test_upload_refuses_overwrite(self):
        storage.upload("attachments", "tests/a.txt", b"one")
        with pytest.raises(storage.StorageError):
            storage.upload("attachments", "tests/a.txt", b"two")

        storage.upload("attachments", "tests/a.txt", b"two", upsert=True)
        with open(storage.local_path("attachments", "tests/a.txt"), "rb") as f:
            assert f.read() == b"two"
        storage.remove("attachments", "tests/a.txt")

    def test_path_traversal_contained(self):
        path = storage.local_path("attachments", "../../etc/passwd")
        assert path.startswith(os.path.join(storage.UPLOAD_FOLDER, "attachments"))

    def test_url_round_trip(self):
        url = storage.public_url("contractor-logos", "7.png")
        assert url == "/storage/contractor-logos/7.png"
        assert storage.local_path_from_url(url) == storage.local_path("contractor-logos", "7.png")
        assert storage.local_path_from_url("https://example.com/logo.png") is None

    def test_tree(self):
        platforms = [{"id": 1, "title": "Platform A"}]
        components = [{"id": 10, "structure_id": 1, "qid": "LEG-A1"}, {"id": 11, "structure_id": 2, "qid": "X"}]
        attachments = [
            {"id": 100, "source_type": "platform", "source_id": 1},
            {"id": 101, "source_type": "component", "source_id": 10},
            {"id": 102, "source_type": "inspection", "source_id": 10},
        ]

        tree = storage.build_attachment_tree(platforms, components, attachments)

        assert [a["id"] for a in tree[0]["attachments"]] == [100]
        assert [c["id"] for c in tree[0]["components"]] == [10]
        assert [a["id"] for a in tree[0]["components"][0]["attachments"]] == [101]


class TestAttachmentApi:

    def test_upload_and_serve(self, client):
        response = _upload(client, name="Dive notes", source_type="component", source_id="5")

        assert response.status_code == 201
        attachment = response.get_json()["data"]
        assert attachment["name"] == "Dive notes"
        assert attachment["source_type"] == "component"
        assert attachment["source_id"] == 5
        meta = attachment["meta"]
        assert meta["original_file_name"] == "notes.txt"
        assert meta["file_size"] == 5
        assert meta["bucket"] == "attachments"
        assert meta["file_path"].startswith("uploads/")
        assert attachment["path"] == f"/storage/attachments/{meta['file_path']}"

        served = client.get(attachment["path"])
        assert served.status_code == 200
        assert served.data == b"hello"
        served.close()

    def test_rejects_missing_and_invalid_files(self, client):
        assert client.post("/api/attachment", data={}, content_type="multipart/form-data").status_code == 400
        assert _upload(client, filename="tool.exe").status_code == 400

    def test_pagination(self, client):
        _upload(client, filename="a.txt")
        _upload(client, filename="b.txt")
        _upload(client, filename="c.txt")

        body = client.get("/api/attachment?page=2&pageSize=2").get_json()
        assert body["pagination"] == {"page": 2, "pageSize": 2, "total": 3, "pages": 2}
        assert len(body["data"]) == 1

    def test_by_source(self, client):
        _upload(client, source_type="component", source_id="5")
        _upload(client, source_type="component", source_id="6")

        rows = client.get("/api/attachment/component/5").get_json()["data"]
        assert [r["source_id"] for r in rows] == [5]

    def test_tree_endpoint(self, client, seeded_structure):
        leg_id = seeded_structure["leg"]["id"]
        _upload(client, source_type="component", source_id=str(leg_id))

        tree = client.get("/api/attachment/tree").get_json()["data"]
        leg = next(c for c in tree[0]["components"] if c["id"] == leg_id)
        assert len(leg["attachments"]) == 1

    def test_delete(self, client):
        attachment = _upload(client).get_json()["data"]
        local = storage.local_path("attachments", attachment["meta"]["file_path"])
        assert os.path.exists(local)

        assert client.delete(f"/api/attachment?id={attachment['id']}").status_code == 200
        assert not os.path.exists(local)
        assert db.get_attachment(attachment["id"]) is None

    def test_delete_when_file_already_gone(self, client):
        attachment = _upload(client).get_json()["data"]
        os.remove(storage.local_path("attachments", attachment["meta"]["file_path"]))

        assert client.delete(f"/api/attachment?id={attachment['id']}").status_code == 200
        assert db.get_attachment(attachment["id"]) is None

    def test_delete_validation(self, client):
        assert client.delete("/api/attachment").status_code == 400
        assert client.delete("/api/attachment?id=abc").status_code == 400
        assert client.delete("/api/attachment?id=999").status_code == 404

    def test_missing_stored_file(self, client):
        assert client.get("/storage/attachments/uploads/nothing.txt").status_code == 404


class TestContractorLogo:

    def test_upload_logo(self, client):
        client.post("/api/library/CONTR_NAM", json={"lib_id": "7", "lib_desc": "Subsea Services"})
        response = client.post(
            "/api/library/CONTR_NAM/7/logo",
            data={"file": (io.BytesIO(b"\x89PNG fake"), "logo.png")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        assert response.get_json()["data"]["logo_url"] == "/storage/contractor-logos/7.png"

        again = client.post(
            "/api/library/CONTR_NAM/7/logo",
            data={"file": (io.BytesIO(b"\x89PNG newer"), "logo.png")},
            content_type="multipart/form-data",
        )
        assert again.status_code == 200

    def test_logo_must_be_image(self, client):
        client.post("/api/library/CONTR_NAM", json={"lib_id": "7", "lib_desc": "Subsea Services"})
        response = client.post(
            "/api/library/CONTR_NAM/7/logo",
            data={"file": (io.BytesIO(b"%PDF"), "logo.pdf")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 400

    def test_unknown_contractor(self, client):
        response = client.post(
            "/api/library/CONTR_NAM/99/logo",
            data={"file": (io.BytesIO(b"x"), "logo.png")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 404

"""
test_library.py - Library master data: color naming, soft delete, combinations.
"""

import pytest

import database as db
import library as lib


# ===========================================================================
# Color helpers
# ===========================================================================

class TestColors:

    def test_exact_palette_match(self):
        assert lib.nearest_color_name(255, 165, 0) == "Orange"

    def test_near_palette_match(self):
        assert lib.nearest_color_name(254, 1, 1) == "Red"

    def test_far_from_palette(self):
        assert lib.nearest_color_name(10, 10, 200) == lib.CUSTOM_COLOR

    def test_parse_rgb(self):
        assert lib.parse_rgb("10, 20 ,30") == (10, 20, 30)
        assert lib.parse_rgb("300,-5,0") == (255, 0, 0)
        assert lib.parse_rgb("1,2") is None
        assert lib.parse_rgb("a,b,c") is None

    def test_hex_conversions(self):
        assert lib.hex_to_rgb("#ff8000") == (255, 128, 0)
        assert lib.hex_to_rgb("#f80") == (255, 136, 0)
        assert lib.hex_to_rgb("#zzzzzz") is None
        assert lib.rgb_to_hex(255, 128, 0) == "#ff8000"

    def test_prepare_color_item_from_name(self):
        prepared = lib.prepare_color_item({"lib_id": "Dark Blue"})
        assert prepared["lib_id"] == "0,0,139"
        assert prepared["lib_desc"] == "Navy"

    def test_prepare_color_item_keeps_description(self):
        prepared = lib.prepare_color_item({"lib_id": "#00ff00", "lib_desc": "Go"})
        assert prepared == {"lib_id": "0,255,0", "lib_desc": "Go"}

    def test_prepare_color_item_invalid(self):
        with pytest.raises(ValueError):
            lib.prepare_color_item({"lib_id": "sparkly"})

    def test_soft_delete_toggle(self):
        assert lib.toggled_delete_flag(0) == 1
        assert lib.toggled_delete_flag(None) == 1
        assert lib.toggled_delete_flag(1) == 0

    def test_split_codes(self):
        assert lib.split_codes("AMLY_TYP, COLOR,,") == ["AMLY_TYP", "COLOR"]


# ===========================================================================
# Library API
# ===========================================================================

class TestLibraryApi:

    def test_create_color_item(self, client):
        response = client.post("/api/library/COLOR", json={"lib_id": "254,1,1"})

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["lib_id"] == "254,1,1"
        assert data["lib_desc"] == "Red"
        assert data["lib_delete"] == 0

    def test_invalid_color_rejected(self, client):
        response = client.post("/api/library/COLOR", json={"lib_id": "not-a-color"})
        assert response.status_code == 400

    def test_next_numeric_id(self, client):
        first = client.post("/api/library/AMLY_TYP", json={"lib_desc": "Critical"}).get_json()["data"]
        second = client.post("/api/library/AMLY_TYP", json={"lib_desc": "High"}).get_json()["data"]
        assert (first["lib_id"], second["lib_id"]) == ("1", "2")

    def test_duplicate_id_conflict(self, client):
        client.post("/api/library/AMLY_TYP", json={"lib_id": "C", "lib_desc": "Critical"})
        response = client.post("/api/library/AMLY_TYP", json={"lib_id": "C", "lib_desc": "Again"})
        assert response.status_code == 409

    def test_description_required(self, client):
        response = client.post("/api/library/AMLY_TYP", json={"lib_id": "X"})
        assert response.status_code == 400

    def test_toggle_soft_delete(self, client):
        client.post("/api/library/AMLY_TYP", json={"lib_id": "1", "lib_desc": "Critical"})

        deleted = client.post("/api/library/AMLY_TYP/1/toggle").get_json()["data"]
        assert deleted["lib_delete"] == 1

        active = client.get("/api/library/AMLY_TYP?include_deleted=false").get_json()["data"]
        assert active == []
        everything = client.get("/api/library/AMLY_TYP").get_json()["data"]
        assert len(everything) == 1

        restored = client.post("/api/library/AMLY_TYP/1/toggle").get_json()["data"]
        assert restored["lib_delete"] == 0

    def test_toggle_unknown_item(self, client):
        assert client.post("/api/library/AMLY_TYP/404/toggle").status_code == 404

    def test_update_item(self, client):
        client.post("/api/library/AMLY_TYP", json={"lib_id": "1", "lib_desc": "Critical"})
        response = client.put("/api/library/AMLY_TYP/1", json={"lib_desc": "Immediate", "lib_delete": 1})

        data = response.get_json()["data"]
        assert data["lib_desc"] == "Immediate"
        assert data["lib_delete"] == 1

    def test_stats(self, client):
        client.post("/api/library/AMLY_TYP", json={"lib_id": "1", "lib_desc": "Critical"})
        client.post("/api/library/AMLY_TYP", json={"lib_id": "2", "lib_desc": "Low"})
        client.post("/api/library/AMLY_TYP/2/toggle")

        stats = client.get("/api/library/AMLY_TYP/stats").get_json()
        assert (stats["total"], stats["active"], stats["deleted"]) == (2, 1, 1)

    def test_multiple_codes_and_hidden_rows(self, client):
        client.post("/api/library/AMLY_TYP", json={"lib_id": "1", "lib_desc": "Critical"})
        client.post("/api/library/COLOR", json={"lib_id": "255,0,0"})
        client.post("/api/library/COLOR", json={"lib_id": "0,0,0", "hidden_item": "Y"})

        rows = client.get("/api/library/AMLY_TYP,COLOR").get_json()["data"]
        assert sorted(r["lib_code"] for r in rows) == ["AMLY_TYP", "COLOR"]

    def test_masters(self, client):
        assert client.post("/api/library/master", json={"lib_code": "COLOR", "lib_name": "Colors"}).status_code == 201
        client.post("/api/library/master", json={"lib_code": "SECRET", "lib_name": "Hidden", "hidden_item": "Y"})

        masters = client.get("/api/library/master").get_json()["data"]
        assert [m["lib_code"] for m in masters] == ["COLOR"]
        assert client.post("/api/library/master", json={"lib_code": "COLOR", "lib_name": "x"}).status_code == 409

    def test_color_suggestion(self, client):
        data = client.get("/api/library/color/suggest?rgb=254,1,1").get_json()
        assert data == {"rgb": "254,1,1", "hex": "#fe0101", "name": "Red"}


# ===========================================================================
# Combinations
# ===========================================================================

class TestCombos:

    def test_not_a_combo_library(self, client):
        response = client.post("/api/library/combo/COLOR", json={"code_1": "1", "code_2": "2"})
        assert response.status_code == 400
        assert response.get_json()["error"] == "Not a combo library"

    def test_both_codes_required(self, client):
        response = client.post("/api/library/combo/ANMLYCLR", json={"code_1": "1"})
        assert response.status_code == 400

    def test_create_and_duplicate(self, client):
        created = client.post("/api/library/combo/ANMLYCLR", json={"code_1": "1", "code_2": "255,0,0"})
        assert created.status_code == 201

        duplicate = client.post("/api/library/combo/ANMLYCLR", json={"code_1": "1", "code_2": "255,0,0"})
        assert duplicate.status_code == 409
        assert duplicate.get_json()["error"] == "This combination already exists"

    def test_combo_soft_delete(self, client):
        combo = client.post("/api/library/combo/ANMLYCLR",
                            json={"code_1": "1", "code_2": "255,0,0"}).get_json()["data"]
        response = client.put(f"/api/library/combo/ANMLYCLR/{combo['id']}", json={"lib_delete": 1})

        assert response.get_json()["data"]["lib_delete"] == 1
        assert db.get_combos("ANMLYCLR", include_deleted=False) == []

    def test_options(self, client):
        db.create_library_master("AMLY_TYP", "Anomaly Priority")
        client.post("/api/library/AMLY_TYP", json={"lib_id": "1", "lib_desc": "Critical"})
        client.post("/api/library/COLOR", json={"lib_id": "255,0,0"})

        options = client.get("/api/library/combo/ANMLYCLR/options").get_json()

        assert options["code1_lib"] == "AMLY_TYP"
        assert options["code2_lib"] == "COLOR"
        assert options["labels"] == {"code_1": "Anomaly Priority", "code_2": "COLOR"}
        assert [o["lib_desc"] for o in options["code1_options"]] == ["Critical"]
        assert [o["lib_id"] for o in options["code2_options"]] == ["255,0,0"]

    def test_priority_colors_from_library(self, client):
        client.post("/api/library/AMLY_TYP", json={"lib_id": "1", "lib_desc": "Critical"})
        client.post("/api/library/AMLY_TYP", json={"lib_id": "2", "lib_desc": "Low"})
        client.post("/api/library/combo/ANMLYCLR", json={"code_1": "1", "code_2": "255,0,0"})

        assert db.get_priority_colors() == {"critical": "255,0,0", "low": ""}

"""
API tests for the pharmacy substitution backend.
"""
import pytest
from fastapi.testclient import TestClient

from main import app
from substitution_module import interface
from substitution_module.config import DEFAULT_CATALOG_PATH, DEFAULT_RULES_PATH


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("SUBSTITUTION_CATALOG_PATH", str(DEFAULT_CATALOG_PATH))
    monkeypatch.setenv("SUBSTITUTION_RULES_PATH", str(DEFAULT_RULES_PATH))
    monkeypatch.setattr(interface, "_engine", None)
    return TestClient(app)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_list_and_search_drugs(client):
    data = client.get("/drugs").json()
    assert data["count"] == 17
    assert data["drugs"][0]["activeMolecule"] == "Paracetamol"

    found = client.get("/drugs/search", params={"q": "omeprazole"}).json()
    assert [d["id"] for d in found["drugs"]] == ["d-015", "d-016"]


def test_search_drugs_with_filters(client):
    out_of_stock = client.get("/drugs/search", params={"stock_status": "out-of-stock"}).json()
    assert [d["id"] for d in out_of_stock["drugs"]] == ["d-003", "d-014"]

    controlled = client.get("/drugs/search", params={"q": "analgesic", "is_controlled": "true"}).json()
    assert [d["id"] for d in controlled["drugs"]] == ["d-006"]

    pfizer = client.get("/drugs/search", params={"manufacturer": "Pfizer", "requires_prescription": "true"}).json()
    assert [d["id"] for d in pfizer["drugs"]] == ["d-009", "d-014"]


def test_get_drug(client):
    assert client.get("/drugs/d-007").json()["brandName"] == "Amoxil"
    assert client.get("/drugs/d-404").status_code == 404


def test_drug_substitutes(client):
    response = client.get("/drugs/d-007/substitutes")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "success"
    assert [s["drug"]["id"] for s in data["suggestions"]] == ["d-008", "d-017", "d-009"]
    assert data["suggestions"][1]["reason"].startswith("Custom substitution rule:")


def test_drug_substitutes_available_only_flag(client):
    available = client.get("/drugs/d-001/substitutes").json()
    everything = client.get("/drugs/d-001/substitutes", params={"available_only": "false"}).json()
    assert everything["count"] == available["count"] + 1


def test_drug_substitutes_unknown(client):
    assert client.get("/drugs/d-404/substitutes").status_code == 404


def test_post_substitutes(client):
    response = client.post("/substitutes", json={
        "target": {
            "id": "walk-in",
            "name": "Omeprazole 40mg",
            "activeMolecule": "Omeprazole",
            "dosage": "40mg",
            "dosageForm": "Capsule",
            "category": "Proton pump inhibitor",
        },
        "available_only": True,
    })
    assert response.status_code == 200

    suggestions = response.json()["suggestions"]
    assert suggestions[0]["drug"]["id"] == "d-015"
    assert suggestions[0]["dosage_adjustment"] == "Take 2.0x the usual dose (20mg → equivalent to 40mg)"


def test_post_substitutes_invalid_target(client):
    response = client.post("/substitutes", json={
        "target": {"id": " ", "name": "X", "activeMolecule": "X", "dosage": "5mg", "dosageForm": "Tablet"},
    })
    assert response.status_code == 400

    assert client.post("/substitutes", json={"target": {"id": "x"}}).status_code == 422


def test_rules_and_reload(client):
    assert client.get("/rules").json()["count"] == 2
    assert client.get("/rules", params={"active_only": "true"}).json()["rules"][0]["id"] == "r-001"

    assert client.post("/reload").json() == {"status": "reloaded", "drugs": 17, "rules": 2}

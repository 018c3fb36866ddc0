"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from crowsfoot import __version__
from crowsfoot.api import app

STAR = "H ||--o{ A : a\nH ||--o{ B : b\nH ||--o{ C : c\nH ||--o{ D : d"


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}


def test_generate(client):
    response = client.post("/api/generate", json={"text": STAR})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["strategy"] == "custom-radial"
    hub = next(e for e in data["diagram"]["entities"] if e["name"] == "H")
    assert (hub["x"], hub["y"]) == (500, 350)


def test_generate_with_strategy(client):
    response = client.post("/api/generate", json={"text": STAR, "strategy": "elk-layered"})
    assert response.status_code == 200
    assert response.json()["strategy"] == "elk-layered"


def test_generate_rejects_unknown_strategy(client):
    response = client.post("/api/generate", json={"text": STAR, "strategy": "spiral"})
    assert response.status_code == 422


def test_generate_syntax_error(client):
    response = client.post("/api/generate", json={"text": 'title: "T"\nA XX--XX B : owns'})

    assert response.status_code == 400
    assert response.json()["detail"]["line"] == 2


def test_generate_empty(client):
    response = client.post("/api/generate", json={"text": "   "})
    assert response.status_code == 400


def test_parse_and_analyze(client):
    response = client.post("/api/parse", json={"text": STAR})
    assert response.status_code == 200
    assert len(response.json()["diagram"]["relationships"]) == 4

    response = client.post("/api/analyze", json={"text": STAR})
    assert response.json()["analysis"]["pattern"] == "centralized"


def test_validate(client):
    response = client.post("/api/validate", json={"text": "A ||--o{ A : parent"})
    assert response.status_code == 200
    assert response.json()["summary"]["info"] == 1


def test_serialize(client):
    graph = {
        "title": "Pair",
        "elements": [
            {"id": "a", "erType": "Entity", "name": "A"},
            {"id": "b", "erType": "Entity", "name": "B"},
        ],
        "connections": [{"source": "a", "target": "b", "cardinality_source": "0..1", "cardinality_target": "1..*"}],
    }
    response = client.post("/api/serialize", json=graph)

    assert response.status_code == 200
    assert "A |o--|{ B" in response.json()["text"]


def test_serialize_without_entities(client):
    response = client.post("/api/serialize", json={"elements": []})
    assert response.status_code == 422

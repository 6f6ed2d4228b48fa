import pytest
from fastapi.testclient import TestClient

import database
from main import app


@pytest.fixture
def client():
    return TestClient(app)


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Natours Schema API is running"}


def test_schema_uses_stored_field_names(client):
    body = client.get("/schema").json()
    tour = body["tour"]["properties"]
    assert {"name", "maxCapacity", "ratingsAverage", "secretTour", "_id"} <= set(tour)
    assert tour["organiser"]["anyOf"][0]["type"] == "string"
    assert set(body["event"]["required"]) >= {"name", "organiser", "startTime", "endTime", "location"}


def test_database_check_without_database(client, monkeypatch):
    monkeypatch.setattr(database, "db", None)
    body = client.get("/test").json()
    assert body["database"] == "⚠️ Available but not initialized"
    assert body["models"] == {}


def test_database_check_reports_indexes(client, mongo_db, tour_data):
    mongo_db["tours"].insert_many([
        dict(tour_data),
        {**tour_data, "name": "The Secret Island", "secretTour": True},
    ])
    body = client.get("/test").json()
    assert body["database"] == "✅ Connected & Working"
    assert body["database_name"] == "natours_test"

    tour = body["models"]["Tour"]
    assert tour["collection"] == "tours"
    assert tour["unique"] == ["name_1"]
    assert "location_2dsphere" in tour["indexes"]
    assert tour["visible_documents"] == 1
    assert body["models"]["Event"]["unique"] == []


def test_startup_builds_indexes(mongo_db):
    with TestClient(app):
        pass
    assert mongo_db["tours"].index_information()["name_1"].get("unique") is True
    assert "location_2dsphere" in mongo_db["events"].index_information()

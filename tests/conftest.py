from datetime import datetime

import mongomock
import pytest

import database


@pytest.fixture
def mongo_db(monkeypatch):
    """Swaps the module-level database for a fresh in-memory mongomock one."""
    db = mongomock.MongoClient()["natours_test"]
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture
def tour_data():
    return {
        "name": "Sahara Desert Trek",
        "maxCapacity": 12,
        "price": 500,
        "summary": "s",
        "imageCover": "x.jpg",
        "startDate": datetime(2024, 1, 1),
    }


@pytest.fixture
def event_data():
    return {
        "name": "Jazz Night",
        "organiser": "Blue Note Club",
        "description": "An evening of live jazz",
        "startDate": datetime(2024, 6, 1),
        "startTime": datetime(2024, 6, 1, 19, 0),
        "endTime": datetime(2024, 6, 1, 23, 0),
        "location": {
            "type": "Point",
            "coordinates": [-0.1276, 51.5072],
            "address": "1 Jazz Street, London",
        },
    }

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

import database
from models import events, tours
from schemas import Event, Tour

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

MODELS = (tours, events)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        for model in MODELS:
            try:
                model.ensure_indexes()
            except PyMongoError:
                # models retry on first use
                logger.exception("Could not build indexes for %s at startup", model.name)
    yield


app = FastAPI(title="Natours Schema API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------- Root & Health --------------------
@app.get("/")
def read_root():
    return {"message": "Natours Schema API is running"}


@app.get("/test")
def test_database():
    """Index and document report for every model."""
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "models": {},
    }
    db = database.db
    if db is None:
        response["database"] = "⚠️ Available but not initialized"
        return response
    response["database_name"] = getattr(db, "name", "unknown")
    try:
        for model in MODELS:
            indexes = model.collection.index_information()
            response["models"][model.name] = {
                "collection": model.collection_name,
                "indexes": sorted(indexes),
                "unique": sorted(name for name, info in indexes.items() if info.get("unique")),
                "visible_documents": model.count_documents(),
            }
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        logger.warning("Model check failed: %s", e)
        response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    return response


# -------------------- Schema Endpoint --------------------
@app.get("/schema")
def get_schema_definitions():
    return {
        "tour": Tour.model_json_schema(),
        "event": Event.model_json_schema(),
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)

# citywatch/scripts/seed_incidents.py
"""
Upsert the bundled incident dataset into MongoDB.

    python -m citywatch.scripts.seed_incidents [path/to/incidents.json]

Legacy types (crime, disaster, infrastructure) and statuses (RESOLVED) are
mapped to stored values and validated like API submissions; record ids and
timestamps are kept so re-running the script updates rather than duplicates.
"""
import logging
import sys

from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from pymongo import MongoClient

from ..config import load_config
from ..errors import ValidationError
from ..models.incident import (
    MOCK_DATA_PATH, build_incident, canonicalize_incident, load_mock_incidents,
    parse_datetime, utcnow,
)

log = logging.getLogger(__name__)


def _object_id(value):
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def build_seed_docs(records, now=None):
    """Raw records -> [(query, doc)] for upserting. Invalid records are skipped and logged."""
    now = now or utcnow()
    out = []
    for raw in records:
        try:
            doc = build_incident(canonicalize_incident(raw), now)
        except ValidationError as e:
            log.warning("Skipping %s: %s", raw.get("_id") or raw.get("title"), e.message)
            continue
        doc["createdAt"] = parse_datetime(raw.get("createdAt")) or now
        doc["updatedAt"] = parse_datetime(raw.get("updatedAt")) or doc["createdAt"]

        oid = _object_id(raw.get("_id"))
        query = {"_id": oid} if oid else {"title": doc["title"], "createdAt": doc["createdAt"]}
        out.append((query, doc))
    return out


def seed(db, records):
    """Upsert records; returns (inserted, updated) counts."""
    inserted = updated = 0
    for query, doc in build_seed_docs(records):
        result = db["incidents"].update_one(query, {"$set": doc}, upsert=True)
        if result.upserted_id is not None:
            inserted += 1
        else:
            updated += 1
    log.info("Seeded incidents: %d inserted, %d updated", inserted, updated)
    return inserted, updated


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    load_dotenv()
    config = load_config()
    logging.basicConfig(level=config["LOG_LEVEL"], format="%(asctime)s  %(levelname)s  %(message)s")

    path = argv[0] if argv else MOCK_DATA_PATH
    client = MongoClient(config["MONGO_URI"])
    try:
        seed(client[config["MONGO_DB"]], load_mock_incidents(path))
    finally:
        client.close()


if __name__ == "__main__":
    main()

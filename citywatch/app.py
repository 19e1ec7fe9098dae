# citywatch/app.py
import logging

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_cors import CORS
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from .config import load_config
from .errors import register_error_handlers

log = logging.getLogger(__name__)


def ensure_indexes(db):
    db["users"].create_index([("email", ASCENDING)], unique=True)
    db["incidents"].create_index([("createdAt", DESCENDING)])


def create_app(overrides=None, db=None):
    """
    Build the Flask app. `overrides` is merged over the environment config;
    `db` replaces the MongoDB database handle (tests pass a mongomock one).
    """
    # --- Load env
    load_dotenv()
    config = load_config()
    if overrides:
        config.update(overrides)

    logging.basicConfig(
        level=config["LOG_LEVEL"],
        format="%(asctime)s  %(levelname)s  %(name)s  %(message)s",
    )

    app = Flask(__name__)
    app.config.update(config)

    # --- Mongo (single client, one database)
    if db is None:
        client = MongoClient(config["MONGO_URI"])
        db = client[config["MONGO_DB"]]
    # expose DB to blueprints via app config
    app.config["DB"] = db

    try:
        ensure_indexes(db)
    except PyMongoError as e:
        # requests will surface storage faults as 500s until Mongo is reachable
        log.error("MongoDB connection error: %s", e)

    CORS(app, origins=config["CORS_ORIGINS"])

    # --- Blueprints
    from .routes.incidents import incident_bp
    from .routes.auth import auth_bp
    from .routes.admin import admin_bp

    prefix = config["API_PREFIX"]
    app.register_blueprint(incident_bp, url_prefix=f"{prefix}/incidents")
    app.register_blueprint(auth_bp, url_prefix=f"{prefix}/auth")
    app.register_blueprint(admin_bp, url_prefix=f"{prefix}/admin")

    @app.route(f"{prefix}/health")
    def health():
        return jsonify(status="ok", enforceRoles=app.config["ENFORCE_ROLES"])

    register_error_handlers(app)
    if not config["ENFORCE_ROLES"]:
        log.warning("ENFORCE_ROLES is off: incident updates and admin routes accept unauthenticated requests")
    return app


if __name__ == "__main__":
    # IMPORTANT: run this app as a module in dev:
    # python -m citywatch.app
    app = create_app()
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=app.config["DEBUG"])

import logging

from flask import Flask

from bloodbank.config import Config, engine_options
from bloodbank.extensions import cors, db
from bloodbank.locking import KeyedLock

__version__ = "0.4.0"


def create_app(overrides=None):
    """Flask application factory"""
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        engine_options(app.config["SQLALCHEMY_DATABASE_URI"], app.config["DB_TIMEOUT"]),
    )

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db.init_app(app)
    cors.init_app(app, origins=app.config["CORS_ORIGINS"])
    app.extensions["bloodbank.locks"] = KeyedLock(timeout=app.config["DB_TIMEOUT"])

    from bloodbank import models  # noqa: F401  registers tables on db.metadata
    from bloodbank.api import api
    from bloodbank.cli import register_commands

    app.register_blueprint(api)
    register_commands(app)
    return app

"""Flask extensions and their binding to the application."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
cors = CORS()


def init_extensions(app: Flask) -> None:
    """Bind the extensions to ``app`` and create missing tables."""
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}})
    db.init_app(app)
    with app.app_context():
        db.create_all()


__all__ = ["cors", "db", "init_extensions"]

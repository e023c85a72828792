"""Database setup and initialization helpers."""

from __future__ import annotations

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def init_db():
    """Create the operator alert tables if they do not exist."""
    from backend import models  # noqa: F401  (registers tables)

    db.create_all()

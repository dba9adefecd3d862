"""
Database setup for the SQL-backed document store.
"""
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def init_db(app):
    """Initialize the database with the Flask app."""
    db.init_app(app)
    with app.app_context():
        # Import models to register them with SQLAlchemy
        from models import StoredDocument  # noqa: F401
        db.create_all()

"""Stored document model backing the SQL document store."""
from datetime import datetime
from database import db


class StoredDocument(db.Model):
    """One persisted JSON document, replaced whole on every save."""

    __tablename__ = 'stored_documents'

    name = db.Column(db.String(64), primary_key=True)
    body = db.Column(db.Text, nullable=False)
    size_bytes = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<StoredDocument {self.name} ({self.size_bytes} bytes)>'

"""
Durable document store.

Each named document is a JSON-serializable value saved and loaded whole.
A save that reports success leaves a complete, parseable document behind;
a save that fails leaves the previous document (or its absence) intact.

Two backends:
  1. File  - one ``<name>.json`` per document in a data directory, written to
     a temporary sibling, size-checked, fsynced and renamed over the target.
  2. SQL   - one ``stored_documents`` row per document, replaced inside a
     single transaction (Flask-SQLAlchemy; needs an application context).

Neither backend raises on I/O trouble: ``save`` returns False, ``load``
returns None, and the failure is logged.
"""
from __future__ import annotations

import json
import logging
import os
import re

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r'^[a-z0-9_]{1,64}$')


def _encode(document) -> bytes:
    return json.dumps(document, ensure_ascii=False, separators=(',', ':')).encode('utf-8')


def _check_name(name: str) -> None:
    if not _NAME_RE.match(name or ''):
        raise ValueError(f'invalid document name {name!r}')


class DocumentStore:
    """Interface shared by the store backends."""

    def save(self, name: str, document) -> bool:
        raise NotImplementedError

    def load(self, name: str):
        raise NotImplementedError

    def remove(self, name: str) -> bool:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# File backend
# ---------------------------------------------------------------------------

class FileDocumentStore(DocumentStore):

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        os.makedirs(data_dir, exist_ok=True)

    def _path(self, name: str) -> str:
        _check_name(name)
        return os.path.join(self.data_dir, f'{name}.json')

    def save(self, name: str, document) -> bool:
        path = self._path(name)
        tmp_path = path + '.tmp'
        try:
            payload = _encode(document)
        except (TypeError, ValueError) as exc:
            logger.error('Document %s is not serializable: %s', name, exc)
            return False

        try:
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
            try:
                written = os.write(fd, payload)
                os.fsync(fd)
            finally:
                os.close(fd)
            if written != len(payload):
                logger.error('Short write for %s: %d of %d bytes', name, written, len(payload))
                self._discard(tmp_path)
                return False
            os.replace(tmp_path, path)
        except OSError as exc:
            logger.error('Saving document %s failed: %s', name, exc)
            self._discard(tmp_path)
            return False
        return True

    def load(self, name: str):
        path = self._path(name)
        try:
            with open(path, 'rb') as fh:
                raw = fh.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.error('Reading document %s failed: %s', name, exc)
            return None
        try:
            return json.loads(raw.decode('utf-8'))
        except (UnicodeDecodeError, ValueError) as exc:
            logger.warning('Document %s is unreadable, treating as absent: %s', name, exc)
            return None

    def remove(self, name: str) -> bool:
        path = self._path(name)
        try:
            os.remove(path)
        except FileNotFoundError:
            return True
        except OSError as exc:
            logger.error('Removing document %s failed: %s', name, exc)
            return False
        return True

    @staticmethod
    def _discard(path: str) -> None:
        try:
            os.remove(path)
        except OSError:
            pass


# ---------------------------------------------------------------------------
# SQL backend
# ---------------------------------------------------------------------------

class SqlDocumentStore(DocumentStore):

    def __init__(self, db):
        self.db = db

    def save(self, name: str, document) -> bool:
        from models import StoredDocument

        _check_name(name)
        try:
            payload = _encode(document)
        except (TypeError, ValueError) as exc:
            logger.error('Document %s is not serializable: %s', name, exc)
            return False

        body = payload.decode('utf-8')
        try:
            row = self.db.session.get(StoredDocument, name)
            if row is None:
                row = StoredDocument(name=name, body=body, size_bytes=len(payload))
                self.db.session.add(row)
            else:
                row.body = body
                row.size_bytes = len(payload)
            self.db.session.commit()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            logger.error('Saving document %s failed: %s', name, exc)
            return False
        return True

    def load(self, name: str):
        from models import StoredDocument

        _check_name(name)
        try:
            row = self.db.session.get(StoredDocument, name)
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            logger.error('Reading document %s failed: %s', name, exc)
            return None
        if row is None:
            return None
        if len(row.body.encode('utf-8')) != row.size_bytes:
            logger.warning('Document %s size mismatch, treating as absent', name)
            return None
        try:
            return json.loads(row.body)
        except ValueError as exc:
            logger.warning('Document %s is unreadable, treating as absent: %s', name, exc)
            return None

    def remove(self, name: str) -> bool:
        from models import StoredDocument

        _check_name(name)
        try:
            row = self.db.session.get(StoredDocument, name)
            if row is not None:
                self.db.session.delete(row)
                self.db.session.commit()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            logger.error('Removing document %s failed: %s', name, exc)
            return False
        return True


def build_store(app_config) -> DocumentStore:
    """Pick the backend named by ``STORAGE_BACKEND``."""
    if app_config.get('STORAGE_BACKEND', 'file') == 'sql':
        from database import db
        return SqlDocumentStore(db)
    return FileDocumentStore(app_config['DATA_DIR'])

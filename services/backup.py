"""
Local snapshot of all kiosk documents, written before destructive resets.

Usage:
    from services.backup import backup_to_local
"""
from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S_%f')


def backup_to_local(snapshot: dict, dest_dir: str, label: str = 'reset') -> dict:
    """
    Write *snapshot* (document name -> document) to *dest_dir*.

    Returns a dict with keys: ok, dest, size_bytes, error.
    """
    try:
        os.makedirs(dest_dir, exist_ok=True)
        dest = os.path.join(dest_dir, f'kiosk_{label}_{_timestamp()}.json')
        with open(dest, 'w', encoding='utf-8') as fh:
            json.dump(snapshot, fh, ensure_ascii=False, indent=2)
        size = os.path.getsize(dest)
        logger.info('Local snapshot saved to %s (%d bytes)', dest, size)
        return {'ok': True, 'dest': dest, 'size_bytes': size, 'error': None}
    except (OSError, TypeError, ValueError) as exc:
        logger.error('Local snapshot failed: %s', exc)
        return {'ok': False, 'dest': None, 'size_bytes': 0, 'error': str(exc)}

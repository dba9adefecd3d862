"""
Input validation for the kiosk.

Provides:
- Team / checkpoint name sanitizing
- Checkpoint code charset policy
- Normalizing an admin bulk-replace payload into checkpoint records
"""
from __future__ import annotations

import re
import secrets
from typing import Callable, Iterable, List, Tuple

import config
from models import Checkpoint

_CODE_RE = re.compile(r'^[A-Za-z0-9_/ -]+$')
_NAME_STRIP = set('<>"\'&')


def sanitize_name(value, max_length: int = config.NAME_MAXLEN) -> str:
    """Drop markup and control characters, cap the length, trim."""
    if not isinstance(value, str):
        return ''
    kept = []
    for ch in value:
        if len(kept) >= max_length:
            break
        if ch in _NAME_STRIP or ord(ch) < 32:
            continue
        kept.append(ch)
    return ''.join(kept).strip()


def is_sane_code(value) -> bool:
    """Letters, digits, dash, underscore, slash and space; 1..64 characters."""
    if not isinstance(value, str):
        return False
    if not 1 <= len(value) <= config.CODE_MAXLEN:
        return False
    return bool(_CODE_RE.match(value))


def new_id(prefix: str, taken: Callable[[str], bool]) -> str:
    while True:
        candidate = f'{prefix}{secrets.token_hex(4)}'
        if not taken(candidate):
            return candidate


def _coerce_points(value):
    if value is None or value == '':
        return config.DEFAULT_CHECKPOINT_POINTS
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    if not isinstance(value, int):
        return None
    if not 1 <= value <= config.MAX_CHECKPOINT_POINTS:
        return None
    return value


def normalize_checkpoints(entries: Iterable) -> Tuple[List[Checkpoint], int]:
    """Turn a bulk-replace payload into checkpoint records.

    Entries with a code outside the charset policy, bad points, or a code that
    matches an earlier entry case-insensitively are dropped whole. A supplied
    id is kept unless an earlier entry already used it.

    Returns ``(checkpoints, dropped_count)``.
    """
    checkpoints: List[Checkpoint] = []
    used_ids = set()
    used_codes = set()
    dropped = 0

    for entry in entries:
        if not isinstance(entry, dict):
            dropped += 1
            continue
        code = entry.get('token_text')
        code = code.strip() if isinstance(code, str) else ''
        points = _coerce_points(entry.get('points'))
        if not is_sane_code(code) or points is None or code.lower() in used_codes:
            dropped += 1
            continue

        checkpoint_id = entry.get('id')
        if not isinstance(checkpoint_id, str) or not checkpoint_id.strip() or checkpoint_id.strip() in used_ids:
            checkpoint_id = new_id('C', lambda c: c in used_ids)
        checkpoint_id = checkpoint_id.strip()

        used_ids.add(checkpoint_id)
        used_codes.add(code.lower())
        checkpoints.append(Checkpoint(
            id=checkpoint_id,
            display_name=sanitize_name(entry.get('name', '')),
            secret_code=code,
            point_value=points,
        ))
    return checkpoints, dropped

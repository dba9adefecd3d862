"""
Checkpoint record: a hunt station redeemable once per team for points.
"""
from __future__ import annotations

from dataclasses import dataclass

import config


@dataclass
class Checkpoint:
    """A scavenger-hunt station identified by its secret code."""

    id: str
    display_name: str
    secret_code: str
    point_value: int = config.DEFAULT_CHECKPOINT_POINTS

    @classmethod
    def from_document(cls, doc) -> 'Checkpoint':
        """Build a checkpoint from its stored shape, rejecting malformed records."""
        if not isinstance(doc, dict):
            raise ValueError('checkpoint record must be an object')
        checkpoint_id = doc.get('id')
        if not isinstance(checkpoint_id, str) or not checkpoint_id:
            raise ValueError('checkpoint record has no id')
        name = doc.get('name', '')
        code = doc.get('token_text', '')
        if not isinstance(name, str) or not isinstance(code, str):
            raise ValueError(f'checkpoint {checkpoint_id} has non-text fields')
        points = doc.get('points', config.DEFAULT_CHECKPOINT_POINTS)
        if isinstance(points, bool) or not isinstance(points, int) or points < 1:
            raise ValueError(f'checkpoint {checkpoint_id} has invalid points {points!r}')
        return cls(id=checkpoint_id, display_name=name, secret_code=code, point_value=points)

    def to_document(self) -> dict:
        return {
            'id': self.id,
            'name': self.display_name,
            'token_text': self.secret_code,
            'points': self.point_value,
        }

    def to_public_dict(self) -> dict:
        """Player-facing view; never includes the code."""
        return {'id': self.id, 'name': self.display_name, 'points': self.point_value}

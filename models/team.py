"""
Team record for hunt participants.
"""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Team:
    """A participant group identified by name + PIN."""

    id: str
    display_name: str
    credential_hash: str
    found_checkpoints: list[str] = field(default_factory=list)
    score: int = 0  # derived; recomputed by the repository, never trusted from disk
    created_at: float = 0.0

    @classmethod
    def from_document(cls, doc) -> 'Team':
        if not isinstance(doc, dict):
            raise ValueError('team record must be an object')
        team_id = doc.get('id')
        name = doc.get('name')
        if not isinstance(team_id, str) or not team_id:
            raise ValueError('team record has no id')
        if not isinstance(name, str) or not name:
            raise ValueError(f'team {team_id} has no name')
        pin_hash = doc.get('pin_hash', '')
        if not isinstance(pin_hash, str):
            raise ValueError(f'team {team_id} has a non-text pin hash')
        created_at = doc.get('created_at', 0)
        if isinstance(created_at, bool) or not isinstance(created_at, (int, float)):
            created_at = 0

        found = []
        for checkpoint_id in doc.get('found') or []:
            if isinstance(checkpoint_id, str) and checkpoint_id and checkpoint_id not in found:
                found.append(checkpoint_id)

        return cls(
            id=team_id,
            display_name=name,
            credential_hash=pin_hash,
            found_checkpoints=found,
            created_at=float(created_at),
        )

    def to_document(self) -> dict:
        return {
            'id': self.id,
            'name': self.display_name,
            'pin_hash': self.credential_hash,
            'points': self.score,
            'created_at': self.created_at,
            'found': list(self.found_checkpoints),
        }

    def has_found(self, checkpoint_id: str) -> bool:
        return checkpoint_id in self.found_checkpoints

    def __repr__(self):
        return f'<Team {self.display_name} ({self.score} pts)>'

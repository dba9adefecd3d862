"""
Team registration, login, code redemption and the leaderboard.

Redemption is exactly-once per (team, checkpoint): the duplicate check, the
append, the score recomputation and the save all happen inside one
repository critical section.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import config
from models import Checkpoint, Team
from services.errors import AuthError, ConflictError, NotFoundError, ValidationError
from services.security import constant_time_equals
from services.validation import new_id, sanitize_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedemptionResult:
    checkpoint_id: str
    awarded: int
    total: int
    duplicate: bool = False
    persisted: bool = True

    def to_dict(self) -> dict:
        if self.duplicate:
            return {'ok': True, 'duplicate': True, 'points': self.total, 'total': self.total,
                    'checkpoint_id': self.checkpoint_id}
        return {'ok': True, 'awarded': self.awarded, 'total': self.total,
                'checkpoint_id': self.checkpoint_id, 'persisted': self.persisted}


class RedemptionEngine:

    def __init__(self, repository, hasher, clock: Callable[[], float] = time.time,
                 leaderboard_size: int = config.LEADERBOARD_SIZE):
        self.repository = repository
        self.hasher = hasher
        self.clock = clock
        self.leaderboard_size = leaderboard_size

    # -- team auth -----------------------------------------------------------

    def register(self, team_name, pin) -> tuple[str, bool]:
        """Create a team; returns ``(team_id, persisted)``."""
        name = sanitize_name(team_name)
        if not isinstance(pin, str):
            pin = ''
        if not name or not config.PIN_MINLEN <= len(pin) <= config.PIN_MAXLEN:
            raise ValidationError('bad_fields')

        pin_hash = self.hasher.hash(pin)
        repo = self.repository
        with repo.lock:
            if repo.find_team_by_name(name) is not None:
                raise ConflictError('exists')
            team = Team(
                id=new_id('T', lambda c: repo.find_team(c) is not None),
                display_name=name,
                credential_hash=pin_hash,
                created_at=self.clock(),
            )
            persisted = repo.add_team(team)
        logger.info('Team registered: %s (%s)', team.display_name, team.id)
        return team.id, persisted

    def login(self, team_name, pin) -> str:
        name = sanitize_name(team_name)
        team = self.repository.find_team_by_name(name) if name else None
        presented = pin if isinstance(pin, str) else ''
        if team is None:
            # Same hashing work as a real check so unknown names don't answer faster
            self.hasher.verify(self._dummy_hash(), presented)
            raise AuthError('auth')
        if not self.hasher.verify(team.credential_hash, presented):
            raise AuthError('auth')
        return team.id

    _dummy = None

    def _dummy_hash(self) -> str:
        if self._dummy is None:
            self._dummy = self.hasher.hash('not-a-real-pin')
        return self._dummy

    # -- redemption ----------------------------------------------------------

    def match_code(self, code: str) -> Optional[Checkpoint]:
        """Exact match first, then case-insensitive; first defined wins."""
        with self.repository.lock:
            checkpoints = list(self.repository.checkpoints)
        for checkpoint in checkpoints:
            if constant_time_equals(checkpoint.secret_code, code):
                return checkpoint
        lowered = code.lower()
        for checkpoint in checkpoints:
            if checkpoint.secret_code.lower() == lowered:
                return checkpoint
        return None

    def redeem(self, team_id, code) -> RedemptionResult:
        code = code.strip() if isinstance(code, str) else ''
        repo = self.repository
        with repo.lock:
            team = repo.find_team(team_id) if isinstance(team_id, str) else None
            if team is None:
                raise NotFoundError('team_not_found')
            if not code:
                raise ValidationError('empty_token')
            checkpoint = self.match_code(code)
            if checkpoint is None:
                raise NotFoundError('no_match')

            if team.has_found(checkpoint.id):
                total = repo.recompute_score(team)
                return RedemptionResult(checkpoint.id, awarded=0, total=total, duplicate=True)

            team.found_checkpoints.append(checkpoint.id)
            total = repo.recompute_score(team)
            persisted = repo.save_teams()

        logger.info('Team %s redeemed %s for %d points', team.id, checkpoint.id, checkpoint.point_value)
        return RedemptionResult(checkpoint.id, awarded=checkpoint.point_value, total=total, persisted=persisted)

    # -- views ---------------------------------------------------------------

    def team_items(self, team_id) -> dict:
        repo = self.repository
        with repo.lock:
            team = repo.find_team(team_id) if isinstance(team_id, str) else None
            if team is None:
                raise NotFoundError('team_not_found')
            items = []
            for checkpoint in repo.checkpoints:
                item = checkpoint.to_public_dict()
                item['found'] = team.has_found(checkpoint.id)
                items.append(item)
            return {'items': items, 'total': repo.recompute_score(team)}

    def leaderboard(self) -> List[dict]:
        """Score descending, earlier registration first on ties."""
        repo = self.repository
        with repo.lock:
            repo.recompute_all_scores()
            ranked = sorted(repo.teams, key=lambda t: (-t.score, t.created_at))
            return [
                {'name': t.display_name, 'points': t.score, 'found': len(t.found_checkpoints)}
                for t in ranked[:self.leaderboard_size]
            ]

"""
In-memory repository for the kiosk's three collections.

The repository exclusively owns the Config singleton, the ordered checkpoint
list and the ordered team list. Every read-modify-write runs under
``repository.lock`` (re-entrant); persistence is delegated to the document
store and reported back as a boolean rather than raised.
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from models import Checkpoint, KioskConfig, Team

logger = logging.getLogger(__name__)

CONFIG_DOC = 'config'
CHECKPOINTS_DOC = 'checkpoints'
TEAMS_DOC = 'teams'


class Repository:

    def __init__(self, store, defaults: KioskConfig):
        self.store = store
        self.defaults = defaults
        self.lock = threading.RLock()
        self.config = self.default_config()
        self.checkpoints: List[Checkpoint] = []
        self.teams: List[Team] = []
        self._teams_by_name: Dict[str, Team] = {}

    def default_config(self) -> KioskConfig:
        d = self.defaults
        return KioskConfig(
            setup_ssid=d.setup_ssid,
            setup_pass=d.setup_pass,
            game_ssid=d.game_ssid,
            persisted_schema_version=d.persisted_schema_version,
        )

    # -- loading -------------------------------------------------------------

    def load_config(self) -> bool:
        """Load Config; returns False (keeping defaults) when no usable document exists."""
        doc = self.store.load(CONFIG_DOC)
        with self.lock:
            if doc is None:
                self.config = self.default_config()
                return False
            try:
                self.config = KioskConfig.from_document(doc, self.defaults)
            except ValueError as exc:
                logger.warning('Discarding stored config: %s', exc)
                self.config = self.default_config()
                return False
            return True

    def load_checkpoints(self) -> None:
        doc = self.store.load(CHECKPOINTS_DOC)
        loaded: List[Checkpoint] = []
        seen = set()
        for raw in doc if isinstance(doc, list) else []:
            try:
                checkpoint = Checkpoint.from_document(raw)
            except ValueError as exc:
                logger.warning('Skipping stored checkpoint: %s', exc)
                continue
            if checkpoint.id in seen:
                logger.warning('Skipping stored checkpoint with duplicate id %s', checkpoint.id)
                continue
            seen.add(checkpoint.id)
            loaded.append(checkpoint)
        with self.lock:
            self.checkpoints = loaded
            self.recompute_all_scores()

    def load_teams(self) -> None:
        doc = self.store.load(TEAMS_DOC)
        loaded: List[Team] = []
        seen_ids = set()
        seen_names = set()
        for raw in doc if isinstance(doc, list) else []:
            try:
                team = Team.from_document(raw)
            except ValueError as exc:
                logger.warning('Skipping stored team: %s', exc)
                continue
            if team.id in seen_ids or team.display_name in seen_names:
                logger.warning('Skipping stored team %s: id or name already loaded', team.id)
                continue
            seen_ids.add(team.id)
            seen_names.add(team.display_name)
            loaded.append(team)
        with self.lock:
            self.teams = loaded
            self._teams_by_name = {t.display_name: t for t in loaded}
            self.recompute_all_scores()

    # -- persistence ---------------------------------------------------------

    def save_config(self) -> bool:
        with self.lock:
            ok = self.store.save(CONFIG_DOC, self.config.to_document())
        if not ok:
            logger.error('Config not persisted; continuing with in-memory state')
        return ok

    def save_checkpoints(self) -> bool:
        with self.lock:
            ok = self.store.save(CHECKPOINTS_DOC, [c.to_document() for c in self.checkpoints])
        if not ok:
            logger.error('Checkpoints not persisted; continuing with in-memory state')
        return ok

    def save_teams(self) -> bool:
        with self.lock:
            ok = self.store.save(TEAMS_DOC, [t.to_document() for t in self.teams])
        if not ok:
            logger.error('Teams not persisted; continuing with in-memory state')
        return ok

    # -- lookups -------------------------------------------------------------

    def find_checkpoint(self, checkpoint_id: str) -> Optional[Checkpoint]:
        with self.lock:
            for checkpoint in self.checkpoints:
                if checkpoint.id == checkpoint_id:
                    return checkpoint
        return None

    def find_team(self, team_id: str) -> Optional[Team]:
        with self.lock:
            for team in self.teams:
                if team.id == team_id:
                    return team
        return None

    def find_team_by_name(self, name: str) -> Optional[Team]:
        with self.lock:
            return self._teams_by_name.get(name)

    # -- derived values ------------------------------------------------------

    def recompute_score(self, team: Team) -> int:
        """Sum the points of found checkpoints; ids that no longer resolve count zero."""
        with self.lock:
            points = {c.id: c.point_value for c in self.checkpoints}
            team.score = sum(points.get(cid, 0) for cid in team.found_checkpoints)
            return team.score

    def recompute_all_scores(self) -> None:
        with self.lock:
            for team in self.teams:
                self.recompute_score(team)

    # -- mutations -----------------------------------------------------------

    def replace_checkpoints(self, checkpoints: List[Checkpoint]) -> bool:
        """Swap in a whole new checkpoint collection and persist it."""
        with self.lock:
            self.checkpoints = list(checkpoints)
            self.recompute_all_scores()
            return self.save_checkpoints()

    def add_team(self, team: Team) -> bool:
        with self.lock:
            self.teams.append(team)
            self._teams_by_name[team.display_name] = team
            self.recompute_score(team)
            return self.save_teams()

    def wipe_checkpoints(self) -> bool:
        with self.lock:
            self.checkpoints = []
            self.recompute_all_scores()
            return self.store.remove(CHECKPOINTS_DOC)

    def wipe_teams(self) -> bool:
        with self.lock:
            self.teams = []
            self._teams_by_name = {}
            return self.store.remove(TEAMS_DOC)

    def snapshot(self) -> dict:
        """Serialized copy of all three documents."""
        with self.lock:
            return {
                CONFIG_DOC: self.config.to_document(),
                CHECKPOINTS_DOC: [c.to_document() for c in self.checkpoints],
                TEAMS_DOC: [t.to_document() for t in self.teams],
            }

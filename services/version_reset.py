"""Startup reset applied when the running build's version differs from the stored one."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from models import Mode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResetPolicy:
    """Independent toggles; wiping teams does not imply wiping checkpoints."""

    reset_admin: bool = True
    force_setup: bool = True
    wipe_checkpoints: bool = False
    wipe_teams: bool = False

    @classmethod
    def from_config(cls, app_config) -> 'ResetPolicy':
        return cls(
            reset_admin=bool(app_config.get('RESET_ADMIN_ON_VERSION', True)),
            force_setup=bool(app_config.get('FORCE_SETUP_MODE_ON_VERSION', True)),
            wipe_checkpoints=bool(app_config.get('WIPE_CHECKPOINTS_ON_VERSION', False)),
            wipe_teams=bool(app_config.get('WIPE_TEAMS_ON_VERSION', False)),
        )


def apply_version_reset(repository, current_version: str, policy: ResetPolicy) -> bool:
    """Reset selected state if the stored version differs from *current_version*.

    Returns True when a reset ran. Running it again with the same version is
    a no-op because the new version is persisted at the end.
    """
    with repository.lock:
        stored_version = repository.config.persisted_schema_version
        if stored_version == current_version:
            return False

        logger.info('Version change detected: %r -> %r', stored_version, current_version)
        if policy.reset_admin:
            repository.config.admin_credential_hash = ''
            logger.info('Admin credential cleared')
        if policy.force_setup:
            repository.config.current_mode = Mode.SETUP
            logger.info('Forced SETUP mode')
        if policy.wipe_checkpoints:
            repository.wipe_checkpoints()
            logger.info('Checkpoints wiped')
        if policy.wipe_teams:
            repository.wipe_teams()
            logger.info('Teams wiped')

        repository.config.persisted_schema_version = current_version
        repository.save_config()
        return True

"""
Kiosk composition root: wires the store, repository, mode machine, admin
gate and redemption engine together and runs the boot sequence.

One ``Kiosk`` lives on ``app.extensions['kiosk']``; handlers reach it through
``current_kiosk()`` rather than module globals.
"""
from __future__ import annotations

import logging
import os
import sys
import threading
from typing import Callable, Optional

from flask import current_app

import config
from models import KioskConfig, Mode
from services.backup import backup_to_local
from services.errors import StorageError, ValidationError
from services.mode_machine import ModeMachine
from services.redemption import RedemptionEngine
from services.repository import Repository
from services.security import CredentialHasher, GateDecision, admin_guard
from services.validation import normalize_checkpoints
from services.version_reset import ResetPolicy, apply_version_reset

logger = logging.getLogger(__name__)


def restart_process() -> None:
    """Re-exec the current interpreter with the same arguments."""
    logger.warning('Restarting kiosk process')
    os.execv(sys.executable, [sys.executable] + sys.argv)


class Kiosk:

    def __init__(self, store, access_point, dns, app_config,
                 restart: Optional[Callable[[], None]] = None):
        self.app_config = app_config
        self.current_version = str(app_config.get('KIOSK_VERSION', ''))
        defaults = KioskConfig(
            setup_ssid=app_config.get('DEFAULT_SETUP_SSID', 'SCAVENGER-SETUP'),
            setup_pass=app_config.get('DEFAULT_SETUP_PASS', 'organizer123'),
            game_ssid=app_config.get('DEFAULT_GAME_SSID', 'SCAVENGER'),
            persisted_schema_version=self.current_version,
        )
        self.store = store
        self.repository = Repository(store, defaults)
        self.hasher = CredentialHasher(app_config.get('PASSWORD_HASH_METHOD', 'scrypt'))
        self.modes = ModeMachine(self.repository, access_point, dns)
        self.engine = RedemptionEngine(self.repository, self.hasher)
        self.reset_policy = ResetPolicy.from_config(app_config)
        self.restart = restart or restart_process
        self.restart_timer: Optional[threading.Timer] = None

    # -- boot ----------------------------------------------------------------

    def boot(self) -> Mode:
        """Load documents, apply the version policy, bring up the radio."""
        repo = self.repository
        if not repo.load_config():
            logger.info('No stored config; writing defaults for version %s', self.current_version)
            repo.config = repo.default_config()
            repo.save_config()
        repo.load_checkpoints()
        repo.load_teams()
        apply_version_reset(repo, self.current_version, self.reset_policy)
        return self.modes.activate()

    # -- admin gate ----------------------------------------------------------

    def check_admin(self, authorization) -> GateDecision:
        with self.repository.lock:
            snapshot = KioskConfig(
                admin_credential_hash=self.repository.config.admin_credential_hash,
            )
        return admin_guard(snapshot, authorization, self.hasher)

    def bootstrap_admin(self, password) -> bool:
        """Set the first admin credential. Closed for good once set."""
        repo = self.repository
        if repo.config.is_configured:
            raise ValidationError('already_configured')
        if not isinstance(password, str) or len(password) < config.ADMIN_PASS_MINLEN:
            raise ValidationError('weak_pass')
        password_hash = self.hasher.hash(password)
        with repo.lock:
            # Re-check: another request may have won while we were hashing
            if repo.config.is_configured:
                raise ValidationError('already_configured')
            repo.config.admin_credential_hash = password_hash
            persisted = repo.save_config()
        logger.info('Admin credential configured')
        return persisted

    # -- admin mutations -----------------------------------------------------

    def set_game_ssid(self, ssid) -> tuple[str, bool]:
        ssid = ssid.strip()[:config.SSID_MAXLEN] if isinstance(ssid, str) else ''
        if not ssid:
            raise ValidationError('empty_ssid')
        with self.repository.lock:
            self.repository.config.game_ssid = ssid
            persisted = self.repository.save_config()
        return ssid, persisted

    def replace_checkpoints(self, entries) -> dict:
        checkpoints, dropped = normalize_checkpoints(entries)
        persisted = self.repository.replace_checkpoints(checkpoints)
        return {'ok': True, 'count': len(checkpoints), 'dropped': dropped, 'persisted': persisted}

    def status(self) -> dict:
        mode = self.modes.mode
        with self.repository.lock:
            cfg = self.repository.config
            return {
                'mode': mode.value,
                'fw_version': self.current_version,
                'stored_version': cfg.persisted_schema_version,
                'game_ssid': cfg.game_ssid,
                'setup_ssid': cfg.setup_ssid,
            }

    def factory_reset(self, wipe_all: bool) -> dict:
        """Return to an unconfigured SETUP kiosk, optionally wiping all data.

        The process restart is scheduled separately via ``schedule_restart``.
        """
        backup = None
        if self.app_config.get('BACKUP_BEFORE_RESET'):
            backup = backup_to_local(self.repository.snapshot(), self.app_config['BACKUP_DIR'])
            if not backup['ok']:
                # Nothing is wiped without its snapshot
                raise StorageError('backup_failed')

        with self.modes.lock:
            self.modes.transition(Mode.SETUP)
            repo = self.repository
            with repo.lock:
                if wipe_all:
                    repo.wipe_checkpoints()
                    repo.wipe_teams()
                    repo.config = repo.default_config()
                else:
                    repo.config.admin_credential_hash = ''
                    repo.config.current_mode = Mode.SETUP
                persisted = repo.save_config()
        logger.warning('Factory reset (wipe_all=%s)', wipe_all)
        return {'ok': True, 'wipe_all': wipe_all, 'persisted': persisted,
                'backup': backup['dest'] if backup else None}

    def schedule_restart(self) -> bool:
        if not self.app_config.get('RESTART_ON_FACTORY_RESET'):
            return False
        delay = float(self.app_config.get('RESTART_DELAY_SECONDS', 0.25))
        self.restart_timer = threading.Timer(delay, self.restart)
        self.restart_timer.daemon = True
        self.restart_timer.start()
        return True


def current_kiosk() -> Kiosk:
    return current_app.extensions['kiosk']

"""
SETUP / GAME mode state machine.

Owns which access-point profile is live and which landing route the root
path and captive probes send clients to. Transitions are serialized by the
machine's own lock, which is always taken before the repository lock.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from models import Mode
from services.errors import WirelessError
from services.wireless import NetworkProfile

logger = logging.getLogger(__name__)

ADMIN_LANDING = '/admin'
PLAYER_LANDING = '/app'


def landing_route(mode: Mode) -> str:
    return ADMIN_LANDING if mode is Mode.SETUP else PLAYER_LANDING


@dataclass(frozen=True)
class TransitionResult:
    mode: Mode
    changed: bool
    persisted: bool = True


class ModeMachine:

    def __init__(self, repository, access_point, dns):
        self.repository = repository
        self.access_point = access_point
        self.dns = dns
        self.lock = threading.RLock()
        self.active_profile: NetworkProfile | None = None

    @property
    def mode(self) -> Mode:
        with self.lock:
            return self.repository.config.current_mode

    @property
    def landing(self) -> str:
        return landing_route(self.mode)

    def profile_for(self, mode: Mode) -> NetworkProfile:
        config = self.repository.config
        if mode is Mode.SETUP:
            return NetworkProfile(config.setup_ssid, config.setup_pass)
        # Game network is always open, whatever secret may be stored.
        return NetworkProfile(config.game_ssid)

    def resolve_initial(self) -> Mode:
        """Persisted mode, except an unconfigured admin always forces SETUP."""
        with self.lock, self.repository.lock:
            config = self.repository.config
            if not config.is_configured and config.current_mode is not Mode.SETUP:
                logger.info('No admin credential set; forcing SETUP mode')
                config.current_mode = Mode.SETUP
                self.repository.save_config()
            return config.current_mode

    def activate(self) -> Mode:
        """Bring up the radio for the resolved initial mode (boot only)."""
        with self.lock:
            mode = self.resolve_initial()
            self._bring_up(self.profile_for(mode))
            logger.info('Kiosk started in %s mode', mode.value.upper())
            return mode

    def transition(self, target: Mode) -> TransitionResult:
        """Switch the radio and landing route to *target*.

        Requesting the current mode changes nothing. On a radio failure the
        previous profile is restored, the mode stays as it was and
        ``WirelessError`` propagates.
        """
        with self.lock:
            current = self.repository.config.current_mode
            if target is current:
                return TransitionResult(mode=current, changed=False)

            previous_profile = self.active_profile
            self._bring_down()
            try:
                self._bring_up(self.profile_for(target))
            except WirelessError:
                logger.exception('Switching to %s failed; restoring %s', target.value, current.value)
                self._bring_down()
                if previous_profile is not None:
                    self._bring_up(previous_profile)
                raise

            with self.repository.lock:
                self.repository.config.current_mode = target
                persisted = self.repository.save_config()
            logger.info('Mode switched %s -> %s', current.value, target.value)
            return TransitionResult(mode=target, changed=True, persisted=persisted)

    def _bring_down(self) -> None:
        self.dns.stop()
        self.access_point.stop()
        self.active_profile = None

    def _bring_up(self, profile: NetworkProfile) -> None:
        self.access_point.start(profile)
        self.active_profile = profile
        self.dns.start()

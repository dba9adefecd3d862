"""
Kiosk configuration singleton and the operating mode.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Mode(Enum):
    """Operating mode of the kiosk."""

    SETUP = 'setup'
    GAME = 'game'

    @classmethod
    def parse(cls, value, default: 'Mode | None' = None) -> 'Mode | None':
        """Map the stored text form to a mode; unknown values give *default*."""
        if isinstance(value, str):
            for mode in cls:
                if mode.value == value.strip().lower():
                    return mode
        return default


@dataclass
class KioskConfig:
    """Event configuration; one instance per device."""

    admin_credential_hash: str = ''
    setup_ssid: str = 'SCAVENGER-SETUP'
    setup_pass: str = 'organizer123'
    game_ssid: str = 'SCAVENGER'
    persisted_schema_version: str = ''
    current_mode: Mode = Mode.SETUP

    @property
    def is_configured(self) -> bool:
        return bool(self.admin_credential_hash)

    @classmethod
    def from_document(cls, doc, defaults: 'KioskConfig') -> 'KioskConfig':
        """Read a stored config; missing or mistyped fields fall back to *defaults*.

        Any stored ``game_pass`` is ignored: the game network is always open.
        """
        if not isinstance(doc, dict):
            raise ValueError('config document must be an object')

        def text(key: str, fallback: str) -> str:
            value = doc.get(key)
            return value if isinstance(value, str) else fallback

        return cls(
            admin_credential_hash=text('admin_hash', ''),
            setup_ssid=text('setup_ssid', defaults.setup_ssid) or defaults.setup_ssid,
            setup_pass=text('setup_pass', defaults.setup_pass),
            game_ssid=text('game_ssid', defaults.game_ssid) or defaults.game_ssid,
            persisted_schema_version=text('fw_version', ''),
            current_mode=Mode.parse(doc.get('mode'), Mode.SETUP),
        )

    def to_document(self) -> dict:
        return {
            'admin_hash': self.admin_credential_hash,
            'setup_ssid': self.setup_ssid,
            'setup_pass': self.setup_pass,
            'game_ssid': self.game_ssid,
            'game_pass': '',
            'mode': self.current_mode.value,
            'fw_version': self.persisted_schema_version,
        }

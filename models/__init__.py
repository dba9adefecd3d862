"""
Data records for the scavenger-hunt kiosk.
"""
from .kiosk_config import KioskConfig, Mode
from .checkpoint import Checkpoint
from .team import Team
from .document import StoredDocument

__all__ = [
    'KioskConfig',
    'Mode',
    'Checkpoint',
    'Team',
    'StoredDocument',
]

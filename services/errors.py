"""Error taxonomy shared by the kiosk services and HTTP handlers."""
from __future__ import annotations


class KioskError(Exception):
    """Base error carrying a machine-readable code and an HTTP status."""

    status = 500

    def __init__(self, code: str, status: int | None = None):
        super().__init__(code)
        self.code = code
        if status is not None:
            self.status = status

    def to_dict(self) -> dict:
        return {'error': self.code}


class ValidationError(KioskError):
    status = 400


class AuthError(KioskError):
    """Bad credential. The code never says which field was wrong."""

    status = 403


class AuthRequired(KioskError):
    """No acceptable credential presented to a gated route."""

    status = 401
    realm = 'Scavenger Admin'

    def __init__(self, code: str = 'auth_required'):
        super().__init__(code)


class NotFoundError(KioskError):
    status = 404


class ConflictError(KioskError):
    status = 409


class StorageError(KioskError):
    status = 500


class WirelessError(KioskError):
    status = 500

    def __init__(self, detail: str):
        super().__init__('radio')
        self.detail = detail

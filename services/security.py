"""
Credential hashing, constant-time comparison and the admin gate.
"""
from __future__ import annotations

import hashlib
import hmac
import re
import secrets
from enum import Enum

from werkzeug.security import check_password_hash, generate_password_hash

from models import KioskConfig

_LEGACY_SHA256_RE = re.compile(r'^[0-9a-f]{64}$')

# Per-process key: both sides are reduced to fixed-length digests before
# comparison, so neither content nor length differences change the work done.
_COMPARE_KEY = secrets.token_bytes(32)


def constant_time_equals(a: str, b: str) -> bool:
    digest_a = hmac.new(_COMPARE_KEY, a.encode('utf-8'), hashlib.sha256).digest()
    digest_b = hmac.new(_COMPARE_KEY, b.encode('utf-8'), hashlib.sha256).digest()
    return hmac.compare_digest(digest_a, digest_b)


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode('utf-8')).hexdigest()


class CredentialHasher:
    """One-way hashing for the admin password and team PINs."""

    def __init__(self, method: str = 'scrypt'):
        self.method = method

    def hash(self, secret: str) -> str:
        return generate_password_hash(secret, method=self.method)

    def verify(self, stored_hash: str, presented: str) -> bool:
        if not stored_hash:
            return False
        if _LEGACY_SHA256_RE.match(stored_hash):
            # Bare SHA-256 digests written by older builds
            return constant_time_equals(sha256_hex(presented), stored_hash)
        try:
            return check_password_hash(stored_hash, presented)
        except ValueError:
            return False


class GateDecision(Enum):
    ALLOWED = 'allowed'
    CHALLENGE = 'challenge'


def admin_guard(config: KioskConfig, authorization, hasher: CredentialHasher) -> GateDecision:
    """Decide whether a request may reach an admin route.

    *authorization* is the parsed ``Authorization`` header (werkzeug's
    ``request.authorization``) or None. Until an admin credential exists
    every request is allowed; afterwards only a Basic credential whose
    password verifies against the stored hash is. The username is ignored.
    """
    if not config.is_configured:
        return GateDecision.ALLOWED
    if authorization is None or (authorization.type or '').lower() != 'basic':
        return GateDecision.CHALLENGE
    password = authorization.password or ''
    if hasher.verify(config.admin_credential_hash, password):
        return GateDecision.ALLOWED
    return GateDecision.CHALLENGE

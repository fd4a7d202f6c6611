"""Salted PBKDF2 password hashing.

Encoded hashes are self-describing so the iteration count can be raised later
without invalidating stored credentials:

    pbkdf2$<iterations>$<salt_hex>$<derived_key_hex>
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

ALGORITHM = "pbkdf2"
DIGEST = "sha256"
DEFAULT_ITERATIONS = 120_000
SALT_BYTES = 16
KEY_LENGTH = 32


class PasswordHasher:
    """Derive and verify salted password hashes.

    CPU-bound: async callers should run ``hash``/``verify`` in an executor.
    """

    def __init__(self, iterations: int = DEFAULT_ITERATIONS) -> None:
        if iterations < 1:
            raise ValueError("iterations must be >= 1")
        self._iterations = iterations

    @property
    def iterations(self) -> int:
        return self._iterations

    def hash(self, password: str) -> str:
        salt = secrets.token_hex(SALT_BYTES)
        derived = _derive(password, salt, self._iterations)
        return f"{ALGORITHM}${self._iterations}${salt}${derived.hex()}"

    def verify(self, password: str, encoded: str) -> bool:
        """Check ``password`` against an encoded hash.

        Returns False (never raises) for malformed input, an unknown algorithm
        tag or a non-positive iteration count. The key comparison is
        constant-time.
        """
        if not isinstance(encoded, str):
            return False

        parts = encoded.split("$")
        if len(parts) != 4:
            return False
        algorithm, iterations_raw, salt, stored_hex = parts
        if algorithm != ALGORITHM or not iterations_raw or not salt or not stored_hex:
            return False

        try:
            iterations = int(iterations_raw)
            stored = bytes.fromhex(stored_hex)
        except ValueError:
            return False
        if iterations <= 0:
            return False

        computed = _derive(password, salt, iterations)
        # Key length is fixed by the algorithm, not secret.
        if len(computed) != len(stored):
            return False
        return hmac.compare_digest(computed, stored)


def _derive(password: str, salt: str, iterations: int) -> bytes:
    # The hex salt text itself is the PBKDF2 salt input.
    return hashlib.pbkdf2_hmac(
        DIGEST,
        password.encode("utf-8"),
        salt.encode("utf-8"),
        iterations,
        dklen=KEY_LENGTH,
    )

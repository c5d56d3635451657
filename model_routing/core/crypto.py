"""Encryption at rest for provider credentials.

Credentials (provider API keys) are stored Fernet-encrypted. The Fernet key
is derived from SECRET_KEY: SHA-256 gives exactly the 32 bytes Fernet needs,
url-safe base64 gives the encoding it expects. Rotating SECRET_KEY therefore
makes existing credentials undecryptable; callers treat that as "no
credential", never as an error.
"""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

KEY_PREFIX_LENGTH = 8


class CredentialDecryptionError(Exception):
    """Stored credential could not be decrypted with the current key."""


def derive_fernet_key(secret: str) -> bytes:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class CredentialCipher:
    """Symmetric encrypt/decrypt for credential strings."""

    def __init__(self, secret: str) -> None:
        self._fernet = Fernet(derive_fernet_key(secret))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as exc:
            raise CredentialDecryptionError("credential cannot be decrypted") from exc


def key_prefix(credential: str, length: int = KEY_PREFIX_LENGTH) -> str:
    """Leading characters of a credential, safe to show in listings."""
    return credential[:length]

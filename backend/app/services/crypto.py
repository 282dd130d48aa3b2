"""
Decryption of stored Google refresh tokens.

Tokens are stored by the onboarding frontend as a single hex string:

    iv (16 bytes) || auth tag (16 bytes) || ciphertext

encrypted with AES-256-GCM under SHA-256(ENCRYPTION_SECRET_KEY).
"""

import hashlib
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

IV_LENGTH = 16
TAG_LENGTH = 16


class CredentialError(Exception):
    """Raised when a stored credential cannot be decrypted or refreshed."""


def _get_key() -> bytes:
    secret = os.getenv("ENCRYPTION_SECRET_KEY")
    if not secret:
        raise CredentialError("ENCRYPTION_SECRET_KEY environment variable is not set")
    return hashlib.sha256(secret.encode("utf-8")).digest()


def decrypt_token(encrypted_text: str) -> str:
    """
    Decrypt a stored token.

    Raises:
        CredentialError: the key is missing, the envelope is malformed, or the
            authentication tag does not verify.
    """
    key = _get_key()
    try:
        raw = bytes.fromhex(encrypted_text)
        iv = raw[:IV_LENGTH]
        tag = raw[IV_LENGTH:IV_LENGTH + TAG_LENGTH]
        ciphertext = raw[IV_LENGTH + TAG_LENGTH:]
        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
            raise ValueError("envelope too short")
        plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
        return plaintext.decode("utf-8")
    except Exception as exc:
        raise CredentialError("Failed to decrypt token") from exc

# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Job body encryption for the pystalk client.

beanstalkd treats job bodies as opaque bytes, so a client may encrypt them
end to end: producers and workers sharing a key can exchange jobs through a
server that never sees the plaintext. Bodies are sealed with AES-256-GCM.
"""

from __future__ import annotations

import os
import secrets
from typing import ClassVar

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import CryptoError


class Encryptor:
    """
    AES-256-GCM sealing of job bodies.

    Sealed format:
        nonce (12 bytes) || ciphertext || auth tag (16 bytes)

    Example:
        >>> encryptor = Encryptor.from_hex_key(generate_key())
        >>> sealed = encryptor.encrypt(b"resize image 42")
        >>> encryptor.decrypt(sealed)
        b'resize image 42'
    """

    KEY_SIZE: ClassVar[int] = 32
    NONCE_SIZE: ClassVar[int] = 12
    TAG_SIZE: ClassVar[int] = 16

    def __init__(self, key: bytes) -> None:
        if len(key) != self.KEY_SIZE:
            raise CryptoError(f"Key must be {self.KEY_SIZE} bytes (256 bits), got {len(key)}")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_hex_key(cls, hex_key: str) -> Encryptor:
        """
        Create an encryptor from a hex-encoded key.

        Raises:
            CryptoError: If hex_key is not valid hexadecimal.
        """
        try:
            key = bytes.fromhex(hex_key)
        except ValueError as e:
            raise CryptoError(f"Invalid hex key: {e}") from e
        return cls(key)

    def encrypt(self, body: bytes) -> bytes:
        """Seal a job body; a fresh nonce is drawn for every call."""
        nonce = os.urandom(self.NONCE_SIZE)
        return nonce + self._aesgcm.encrypt(nonce, body, None)

    def decrypt(self, sealed: bytes) -> bytes:
        """
        Open a body sealed by encrypt().

        Raises:
            CryptoError: If the body is too short, was sealed with another
                key, or was modified.
        """
        min_length = self.NONCE_SIZE + self.TAG_SIZE
        if len(sealed) < min_length:
            raise CryptoError(f"Encrypted body too short (min {min_length} bytes)")

        nonce, ciphertext = sealed[: self.NONCE_SIZE], sealed[self.NONCE_SIZE :]
        try:
            return self._aesgcm.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise CryptoError("Decryption failed - wrong key or tampered job body") from e


def generate_key() -> str:
    """Generate a random 256-bit key as 64 hex characters."""
    return secrets.token_hex(Encryptor.KEY_SIZE)


def validate_key(hex_key: str) -> bool:
    """Return True if ``hex_key`` decodes to a 256-bit key."""
    try:
        return len(bytes.fromhex(hex_key)) == Encryptor.KEY_SIZE
    except ValueError:
        return False

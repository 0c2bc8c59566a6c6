from __future__ import annotations

import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import ConfigurationError, DecryptionError

logger = logging.getLogger(__name__)

AES_KEY_SIZE = 32  # AES-256
NONCE_SIZE = 12  # 96-bit nonce for GCM
TAG_SIZE = 16
SEPARATOR = ":"


def looks_like_envelope(value: str) -> bool:
    """Cheap structural check: non-empty and containing the separator."""
    return bool(value) and SEPARATOR in value


# PUBLIC_INTERFACE
class FieldCipher:
    """
    AES-256-GCM encryption of a single text field.

    Envelope format: ``nonce:tag:ciphertext``, each part lower-case hex.
    """

    def __init__(self, hex_key: str) -> None:
        try:
            key = bytes.fromhex(hex_key)
        except (TypeError, ValueError) as e:
            raise ConfigurationError("AES_SECRET_KEY must be a 64-character hex string (32 bytes)") from e
        if len(key) != AES_KEY_SIZE:
            raise ConfigurationError("AES_SECRET_KEY must be a 64-character hex string (32 bytes)")
        self._aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        # cryptography appends the tag to the ciphertext
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return SEPARATOR.join([nonce.hex(), tag.hex(), ciphertext.hex()])

    def decrypt(self, envelope: str) -> str:
        """
        Decrypt an envelope produced by :meth:`encrypt`.

        Raises:
            DecryptionError: the envelope is malformed or the tag does not verify.
        """
        parts = envelope.split(SEPARATOR)
        if len(parts) != 3:
            raise DecryptionError("Envelope must have exactly three parts")
        try:
            nonce, tag, ciphertext = (binascii.unhexlify(p) for p in parts)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("Envelope is not valid hex") from e
        if len(nonce) != NONCE_SIZE or len(tag) != TAG_SIZE:
            raise DecryptionError("Envelope has wrong nonce or tag length")
        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise DecryptionError("Authentication tag does not verify") from e
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted value is not valid UTF-8") from e

    def safe_decrypt(self, value: str) -> str:
        """
        Tolerant read path for stored descriptions.

        Values that do not look like an envelope (legacy plaintext, empty
        string) come back unchanged. A value that looks like an envelope but
        fails to decrypt also comes back unchanged, with a warning logged so a
        key mismatch or corrupted row does not pass silently.
        """
        if not looks_like_envelope(value):
            return value
        try:
            return self.decrypt(value)
        except DecryptionError as e:
            logger.warning("Returning stored value as-is, decryption failed: %s", e.message)
            return value

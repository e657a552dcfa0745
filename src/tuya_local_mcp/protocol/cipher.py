"""Payload encryption and signing for control frames.

Protocol 3.1 devices expect the control payload as base64 text of the
AES-ECB encrypted JSON (PKCS#7 padded, keyed with the 16-byte local key),
prefixed by the protocol version and a 16-character MD5 signature.
"""

from __future__ import annotations

import base64
import binascii
import logging
from hashlib import md5

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ..errors import CipherError

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "3.1"
BLOCK_SIZE_BITS = 128
SIGNATURE_LENGTH = 16
KEY_SIZES = (16, 24, 32)


def sign(ciphertext: bytes, version: str, key: str) -> str:
    """Compute the signature sent in front of an encrypted payload.

    The signature is the middle 16 hex characters of the MD5 digest of
    ``data=<ciphertext>||lpv=<version>||<key>``.
    """
    pre_md5 = b"data=" + ciphertext + b"||lpv=" + version.encode() + b"||" + key.encode("latin1")
    return md5(pre_md5).hexdigest()[8 : 8 + SIGNATURE_LENGTH]


class TuyaCipher:
    """AES-ECB cipher bound to a device's local key.

    Instances only hold the immutable key, so one cipher may be shared
    between concurrent requests.
    """

    def __init__(self, key: str, version: str = DEFAULT_VERSION) -> None:
        key_bytes = key.encode("latin1")
        if len(key_bytes) not in KEY_SIZES:
            raise ValueError(
                f"Local key must be 16, 24 or 32 bytes, got {len(key_bytes)}"
            )
        self.key = key
        self.version = version
        self._key_bytes = key_bytes

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key_bytes), modes.ECB())

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt and base64-encode ``plaintext``."""
        padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = self._cipher().encryptor()
        raw = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(raw)

    def decrypt(self, data: bytes) -> bytes:
        """Decrypt a payload produced by :meth:`encrypt` or sent by a device.

        A leading ``<version><signature>`` header is stripped first.

        Raises:
            CipherError: If the data is not valid base64, not block aligned,
                or the padding is invalid (usually a wrong key).
        """
        version = self.version.encode()
        if data.startswith(version):
            data = data[len(version) + SIGNATURE_LENGTH :]

        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CipherError(f"Payload is not valid base64: {e}") from e

        if not raw or len(raw) % (BLOCK_SIZE_BITS // 8):
            raise CipherError(
                f"Ciphertext length {len(raw)} is not a multiple of the block size"
            )

        decryptor = self._cipher().decryptor()
        padded = decryptor.update(raw) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise CipherError("Invalid padding, check the local key") from e

    def sign(self, ciphertext: bytes) -> str:
        """Signature of ``ciphertext`` under this cipher's key and version."""
        return sign(ciphertext, self.version, self.key)

    def envelope(self, plaintext: bytes) -> bytes:
        """Build the control payload ``version || signature || ciphertext``."""
        ciphertext = self.encrypt(plaintext)
        signature = self.sign(ciphertext)
        logger.debug("Signed %d-byte ciphertext: %s", len(ciphertext), signature)
        return self.version.encode() + signature.encode() + ciphertext

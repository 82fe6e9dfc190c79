"""Symmetric encryption utilities for protecting stored tokens."""

from __future__ import annotations

import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

_KDF_SALT = b"salt"
_IV_BYTES = 16
_DELIMITER = ":"


class TokenCipherService:
    """Encrypt and decrypt sensitive strings with AES-256-CBC.

    The key is derived from ``secret`` with scrypt (N=16384, r=8, p=1) over a
    fixed salt, and each envelope is ``hex(iv):hex(ciphertext)``. Those
    parameters match the envelopes already stored by earlier deployments.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        kdf = Scrypt(salt=_KDF_SALT, length=32, n=2**14, r=8, p=1)
        self._key = kdf.derive(secret.encode("utf-8"))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string and return the envelope."""
        iv = os.urandom(_IV_BYTES)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return f"{iv.hex()}{_DELIMITER}{ciphertext.hex()}"

    def decrypt(self, envelope: str) -> str:
        """Decrypt an envelope and return the plaintext."""
        iv_hex, sep, ciphertext_hex = envelope.partition(_DELIMITER)
        if not sep or not ciphertext_hex:
            raise ValueError("Failed to decrypt token; envelope is malformed.")
        try:
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(ciphertext_hex)
        except ValueError as exc:
            raise ValueError("Failed to decrypt token; envelope is not hex encoded.") from exc
        if len(iv) != _IV_BYTES or len(ciphertext) % _IV_BYTES:
            raise ValueError("Failed to decrypt token; envelope has invalid lengths.")

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        try:
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except ValueError as exc:
            raise ValueError(
                "Failed to decrypt token; wrong key or corrupted ciphertext."
            ) from exc


__all__ = ["TokenCipherService"]

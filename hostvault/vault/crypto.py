"""
AES-256-GCM primitives and key buffers for the vault.

encrypt() draws a fresh 96-bit nonce from the OS CSPRNG on every call and
splits the 128-bit GCM tag off the ciphertext. decrypt() either returns fully
authenticated plaintext or raises AuthenticationFailure.

Key material lives in KeyBuffer (a wipeable bytearray). Python cannot
guarantee that intermediate ``bytes`` objects created by the cryptography
library are overwritten, so wiping is best-effort beyond the buffer itself.
"""

from __future__ import annotations

import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from hostvault.vault.errors import AuthenticationFailure
from hostvault.vault.models import NONCE_SIZE, TAG_SIZE, EncryptedPayload

KEY_SIZE = 32  # AES-256


class KeyBuffer:
    """Mutable holder for raw key bytes that zeroes itself on exit.

    Usage:
        with KeyBuffer.generate() as dek:
            payload = encrypt(dek, b"...")
        # dek is all zeros here, even if encrypt() raised
    """

    __slots__ = ("_buf",)

    def __init__(self, data: bytes | bytearray) -> None:
        self._buf = bytearray(data)

    @classmethod
    def generate(cls) -> KeyBuffer:
        return cls(secrets.token_bytes(KEY_SIZE))

    def __enter__(self) -> bytearray:
        return self._buf

    def __exit__(self, *exc: object) -> None:
        self.wipe()

    def __len__(self) -> int:
        return len(self._buf)

    def __repr__(self) -> str:
        return f"KeyBuffer(<{len(self._buf)} bytes>)"

    @property
    def raw(self) -> bytearray:
        return self._buf

    @property
    def wiped(self) -> bool:
        return not any(self._buf)

    def wipe(self) -> None:
        """Overwrite the key bytes in place."""
        self._buf[:] = bytes(len(self._buf))


def _check_key(key: bytes | bytearray) -> None:
    if len(key) != KEY_SIZE:
        raise ValueError(f"AES-256 key must be {KEY_SIZE} bytes, got {len(key)}")


def encrypt(key: bytes | bytearray, plaintext: bytes | bytearray) -> EncryptedPayload:
    """Encrypt plaintext under key with a fresh random nonce."""
    _check_key(key)
    nonce = secrets.token_bytes(NONCE_SIZE)
    sealed = AESGCM(key).encrypt(nonce, bytes(plaintext), None)
    return EncryptedPayload(
        ciphertext=sealed[:-TAG_SIZE],
        nonce=nonce,
        tag=sealed[-TAG_SIZE:],
    )


def decrypt(key: bytes | bytearray, payload: EncryptedPayload) -> bytes:
    """Verify and decrypt a payload.

    Raises:
        AuthenticationFailure: wrong key, or tampered ciphertext, nonce or tag.
    """
    _check_key(key)
    try:
        return AESGCM(key).decrypt(payload.nonce, payload.ciphertext + payload.tag, None)
    except InvalidTag as e:
        raise AuthenticationFailure("authentication tag mismatch") from e

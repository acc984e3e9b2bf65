"""
Encryption of activation and password-reset payloads.

A link carries ``token`` (hex IV) and ``data`` (hex AES-256-CBC ciphertext
of ``{"code": ..., "redirectURL": ...}``) so the raw activation code never
appears in a URL.
"""

import json
import os
import secrets
from dataclasses import dataclass
from typing import Any

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from mra_auth.core.config import settings

IV_BYTES = 16
EMPTY_PAYLOAD = {"code": "", "redirectURL": ""}


@dataclass(frozen=True)
class EncryptedPayload:
    token: str
    data: str


def generate_code() -> str:
    """Random 32 hex character activation code or reset token."""
    return secrets.token_hex(16)


def _key(key_hex: str | None) -> bytes:
    return bytes.fromhex(key_hex or settings.auth.crypto_key)


def encrypt_payload(code: str, redirect_url: str = "", key_hex: str | None = None) -> EncryptedPayload:
    iv = os.urandom(IV_BYTES)
    plaintext = json.dumps({"code": code, "redirectURL": redirect_url}).encode("utf-8")

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(_key(key_hex)), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return EncryptedPayload(token=iv.hex(), data=ciphertext.hex())


def decrypt_payload(token: str, data: str, key_hex: str | None = None) -> dict[str, Any]:
    """
    Reverse of ``encrypt_payload``.

    Any tampering or malformed input yields empty ``code``/``redirectURL``
    instead of an error.
    """
    try:
        iv = bytes.fromhex(token)
        ciphertext = bytes.fromhex(data)
        decryptor = Cipher(algorithms.AES(_key(key_hex)), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        payload = json.loads(plaintext.decode("utf-8"))
    except (ValueError, TypeError, UnicodeDecodeError):
        return dict(EMPTY_PAYLOAD)

    if not isinstance(payload, dict):
        return dict(EMPTY_PAYLOAD)
    return {
        "code": str(payload.get("code") or ""),
        "redirectURL": str(payload.get("redirectURL") or ""),
    }

from __future__ import annotations

import os
from hashlib import sha256

from Crypto.Cipher import AES

from .config import get_settings


NONCE_SIZE = 12
TAG_SIZE = 16


def _key(master_key: str | None = None) -> bytes:
    src = (master_key or get_settings().enc_master_key).encode("utf-8")
    if len(src) == 32:
        return src
    return sha256(src).digest()


def encrypt_secret(plaintext: str, master_key: str | None = None) -> str:
    """AES-256-GCM encrypt a provider token for storage; hex of nonce|tag|ciphertext."""
    nonce = os.urandom(NONCE_SIZE)
    cipher = AES.new(_key(master_key), AES.MODE_GCM, nonce=nonce)
    ciphertext, tag = cipher.encrypt_and_digest(plaintext.encode("utf-8"))
    return (nonce + tag + ciphertext).hex()


def decrypt_secret(token_hex: str, master_key: str | None = None) -> str:
    raw = bytes.fromhex(token_hex)
    nonce, tag, ciphertext = raw[:NONCE_SIZE], raw[NONCE_SIZE:NONCE_SIZE + TAG_SIZE], raw[NONCE_SIZE + TAG_SIZE:]
    cipher = AES.new(_key(master_key), AES.MODE_GCM, nonce=nonce)
    return cipher.decrypt_and_verify(ciphertext, tag).decode("utf-8")

"""
CryptoJS-compatible AES decryption for encrypted `getSources` payloads.

CryptoJS.AES.encrypt(text, passphrase) emits base64("Salted__" + salt + ciphertext)
with key and IV derived from the passphrase. Some endpoints derive with PBKDF2
instead of the OpenSSL MD5 scheme, so the derivation is selectable per caller.
"""

import base64
import binascii
import hashlib
from enum import Enum
from typing import Tuple

from Crypto.Cipher import AES
from Crypto.Protocol.KDF import PBKDF2

from errors import DecryptFailed

SALT_MARKER = b"Salted__"
KEY_SIZE = 32
IV_SIZE = AES.block_size
PBKDF2_ITERATIONS = 1000


class KeyDerivation(Enum):
    EVP_MD5 = "evp_md5"   # OpenSSL EVP_BytesToKey, CryptoJS default
    PBKDF2 = "pbkdf2"     # PBKDF2-HMAC-SHA1, 1000 rounds


def evp_bytes_to_key(passphrase: bytes, salt: bytes, key_len: int = KEY_SIZE,
                     iv_len: int = IV_SIZE) -> Tuple[bytes, bytes]:
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:key_len], derived[key_len:key_len + iv_len]


def pbkdf2_key_iv(passphrase: bytes, salt: bytes, key_len: int = KEY_SIZE,
                  iv_len: int = IV_SIZE) -> Tuple[bytes, bytes]:
    derived = PBKDF2(passphrase, salt, dkLen=key_len + iv_len, count=PBKDF2_ITERATIONS)
    return derived[:key_len], derived[key_len:key_len + iv_len]


def derive_key_iv(passphrase: bytes, salt: bytes, derivation: KeyDerivation) -> Tuple[bytes, bytes]:
    if derivation is KeyDerivation.PBKDF2:
        return pbkdf2_key_iv(passphrase, salt)
    return evp_bytes_to_key(passphrase, salt)


def strip_pkcs7(data: bytes, block_size: int = AES.block_size) -> bytes:
    """Remove PKCS#7 padding, validating every pad byte."""
    if not data:
        raise DecryptFailed("decrypted data is empty")
    padding = data[-1]
    if padding == 0 or padding > block_size or padding > len(data):
        raise DecryptFailed("invalid padding")
    if data[-padding:] != bytes([padding]) * padding:
        raise DecryptFailed("invalid padding")
    plaintext = data[:-padding]
    if not plaintext:
        raise DecryptFailed("decrypted data is empty")
    return plaintext


def _aes_cbc_decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    if not ciphertext or len(ciphertext) % AES.block_size != 0:
        raise DecryptFailed("ciphertext is not a multiple of the block size")
    cipher = AES.new(key, AES.MODE_CBC, iv)
    return strip_pkcs7(cipher.decrypt(ciphertext))


def _raw_key(passphrase: bytes) -> bytes:
    return passphrase[:KEY_SIZE].ljust(KEY_SIZE, b"\x00")


def decrypt(ciphertext_b64: str, passphrase: str,
            derivation: KeyDerivation = KeyDerivation.EVP_MD5) -> str:
    """
    Decrypt a base64 CryptoJS/OpenSSL payload.

    Args:
        ciphertext_b64 (str): base64 text, usually starting with "U2FsdGVkX1" ("Salted__")
        passphrase (str): Key material; surrounding whitespace is ignored
        derivation (KeyDerivation): Key/IV derivation used for salted payloads

    Returns:
        str: The depadded UTF-8 plaintext

    Raises:
        DecryptFailed: on bad base64, short input, wrong block size or bad padding
    """
    try:
        data = base64.b64decode((ciphertext_b64 or "").strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptFailed(f"failed to decode base64: {str(e)}") from e

    if len(data) < 16:
        raise DecryptFailed("ciphertext too short")

    secret = (passphrase or "").strip().encode("utf-8")

    if data[:8] == SALT_MARKER:
        salt, body = data[8:16], data[16:]
        key, iv = derive_key_iv(secret, salt, derivation)
    else:
        # Legacy layout: iv || ciphertext, passphrase used as the raw key
        key = _raw_key(secret)
        iv, body = data[:IV_SIZE], data[IV_SIZE:]

    plaintext = _aes_cbc_decrypt(body, key, iv)
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptFailed("decrypted data is not valid UTF-8") from e

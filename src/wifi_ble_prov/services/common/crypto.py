"""
wifi-ble-prov - Payload Encryption

Sensitive command fields (SSID, PSK, disconnect challenge) travel over BLE
encrypted with AES-256-CBC under the pre-shared local key. Each command
carries its own base64 IV; ciphertexts are base64 strings of PKCS7-padded
blocks.
"""

import base64
import binascii
import os
from typing import Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from wifi_ble_prov.exceptions.crypto_exception import CryptoException

KEY_SIZE = 32  # AES-256
IV_SIZE = 16
BLOCK_SIZE_BITS = 128


def _check_key(key: bytes) -> None:
    if len(key) != KEY_SIZE:
        raise CryptoException(f"Local key must be {KEY_SIZE} bytes, got {len(key)}")


def _check_iv(iv: bytes) -> None:
    if len(iv) != IV_SIZE:
        raise CryptoException(f"IV must be {IV_SIZE} bytes, got {len(iv)}")


def generate_key() -> bytes:
    return os.urandom(KEY_SIZE)


def generate_iv() -> bytes:
    return os.urandom(IV_SIZE)


def b64decode(value: str) -> bytes:
    """Strict base64 decoding; anything else is a CryptoException."""
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise CryptoException(f"Invalid base64: {e}") from e


def encrypt(plaintext: Union[str, bytes], key: bytes, iv: bytes) -> str:
    """
    Encrypt plaintext the way a provisioning client does.

    Returns:
        base64 ciphertext suitable for the command characteristic
    """
    _check_key(key)
    _check_iv(iv)
    if isinstance(plaintext, str):
        plaintext = plaintext.encode('utf-8')

    padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(ciphertext).decode('ascii')


def decrypt(ciphertext: str, key: bytes, iv: bytes) -> str:
    """
    Decrypt a base64 ciphertext received over BLE.

    Args:
        ciphertext: base64 of the AES-256-CBC ciphertext
        key: 32-byte local key
        iv: 16-byte IV supplied with the command

    Returns:
        The UTF-8 plaintext

    Raises:
        CryptoException: bad key/IV size, bad base64, bad block length,
                         bad padding or non UTF-8 plaintext
    """
    _check_key(key)
    _check_iv(iv)
    data = b64decode(ciphertext)
    if not data or len(data) % (BLOCK_SIZE_BITS // 8):
        raise CryptoException(f"Ciphertext length {len(data)} is not a positive multiple of the block size")

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(data) + decryptor.finalize()
    try:
        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode('utf-8')
    except ValueError as e:
        # UnicodeDecodeError is a ValueError too
        raise CryptoException(f"Decryption failed: {e}") from e

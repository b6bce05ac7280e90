# /sympto/utils/encryption_util.py
import hashlib
import logging
import os
import re
import secrets
from collections import namedtuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

IV_LENGTH = 12
TAG_LENGTH = 16
KEY_HEX_LENGTH = 64

# Lab values stored as ciphertext on assessments
HEALTH_DATA_FIELDS = ('hemoglobin', 'ferritin', 'vitamin_b12', 'vitamin_d', 'calcium')

_HEX_RE = re.compile(r'^[0-9a-fA-F]+$')

DecryptResult = namedtuple('DecryptResult', ['ok', 'value', 'error'])

_decrypt_warning_logged = False


def reset_decrypt_warning():
    """Re-arm the one-time decryption failure warning."""
    global _decrypt_warning_logged
    _decrypt_warning_logged = False


def _warn_decrypt_failure(error):
    global _decrypt_warning_logged
    if _decrypt_warning_logged:
        return
    _decrypt_warning_logged = True
    logger.warning(
        "Failed to decrypt a stored value (%s). The key may have changed or the data "
        "is corrupted; returning the stored value unchanged. Further failures will not be logged.",
        error,
    )


def is_encrypted_value(value) -> bool:
    """True when ``value`` looks like an ``iv:tag:ciphertext`` hex envelope."""
    if not isinstance(value, str):
        return False
    parts = value.split(':')
    if len(parts) != 3:
        return False
    iv_hex, tag_hex, data_hex = parts
    if len(iv_hex) != IV_LENGTH * 2 or len(tag_hex) != TAG_LENGTH * 2 or not data_hex:
        return False
    return all(_HEX_RE.match(part) for part in parts)


def parse_key(key_hex: str) -> bytes:
    """Validates a hex encoded 256-bit key and returns the raw bytes."""
    if not isinstance(key_hex, str) or len(key_hex) != KEY_HEX_LENGTH or not _HEX_RE.match(key_hex):
        raise ValueError("ENCRYPTION_KEY must be 64 hexadecimal characters (32 bytes)")
    return bytes.fromhex(key_hex)


def generate_key() -> str:
    return secrets.token_hex(32)


class Encryptor:
    """
    AES-256-GCM field encryption for values stored at rest.

    Ciphertext is written as ``IV:AUTH_TAG:CIPHERTEXT`` in hex so stored
    values can be told apart from legacy plaintext. It must be initialized
    with the Flask app (or an explicit key) before use.
    """
    def __init__(self, app=None, key=None):
        self._aesgcm = None
        if key is not None:
            self.set_key(key)
        if app:
            self.init_app(app)

    def init_app(self, app):
        """Loads the key from the app's config, generating one when permitted."""
        key = app.config.get('ENCRYPTION_KEY')
        strict = app.config.get('STRICT_SECRETS', False)

        if not key:
            if strict:
                raise ValueError("ENCRYPTION_KEY not set in the Flask application config.")
            app.logger.warning(
                "ENCRYPTION_KEY is not set. A random key was generated for this process; "
                "data encrypted now cannot be decrypted after a restart."
            )
            key = generate_key()

        try:
            self.set_key(key)
        except ValueError:
            if strict:
                raise
            app.logger.warning("ENCRYPTION_KEY is malformed. Falling back to a random key for this process.")
            self.set_key(generate_key())

        app.extensions['encryptor'] = self

    def set_key(self, key_hex: str):
        self._aesgcm = AESGCM(parse_key(key_hex))

    def _cipher(self):
        if self._aesgcm is None:
            raise RuntimeError("Encryptor has not been initialized with an app context.")
        return self._aesgcm

    def encrypt(self, text):
        """Encrypts a string. Non-strings and empty strings are returned as-is."""
        if not isinstance(text, str) or not text:
            return text

        iv = os.urandom(IV_LENGTH)
        sealed = self._cipher().encrypt(iv, text.encode('utf-8'), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def try_decrypt(self, value) -> DecryptResult:
        """Decrypts an envelope and reports whether it actually succeeded."""
        if not is_encrypted_value(value):
            return DecryptResult(True, value, None)

        iv_hex, tag_hex, data_hex = value.split(':')
        try:
            plaintext = self._cipher().decrypt(
                bytes.fromhex(iv_hex),
                bytes.fromhex(data_hex) + bytes.fromhex(tag_hex),
                None,
            )
            return DecryptResult(True, plaintext.decode('utf-8'), None)
        except InvalidTag:
            return DecryptResult(False, value, 'authentication tag mismatch')
        except (ValueError, UnicodeDecodeError) as e:
            return DecryptResult(False, value, str(e))

    def decrypt(self, value):
        """
        Decrypts an envelope. Values that are not envelopes are returned
        unchanged, and so is the envelope itself when decryption fails.
        """
        result = self.try_decrypt(value)
        if not result.ok:
            _warn_decrypt_failure(result.error)
        return result.value

    def encrypt_health_data(self, data: dict) -> dict:
        encrypted = dict(data)
        for field in HEALTH_DATA_FIELDS:
            value = encrypted.get(field)
            if value is None or is_encrypted_value(value):
                continue
            encrypted[field] = self.encrypt(str(value))
        return encrypted

    def decrypt_health_data(self, data: dict) -> dict:
        decrypted = dict(data)
        for field in HEALTH_DATA_FIELDS:
            value = decrypted.get(field)
            if value is None:
                continue
            decrypted[field] = to_number(self.decrypt(value))
        return decrypted


def to_number(value):
    """Coerces a decrypted lab value to float, keeping the string if it does not parse."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


def hash_data(text):
    """One-way SHA-256 hex digest."""
    if not isinstance(text, str) or not text:
        return text
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def generate_secure_random(length: int = 32) -> str:
    return secrets.token_hex(length)


# Create a single, uninitialized instance to be imported by other modules.
encryptor = Encryptor()

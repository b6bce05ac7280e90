"""
sympto.repositories.field_codec - encryption boundary for ORM rows.

Rows are encrypted explicitly before they are written and decrypted
explicitly after they are read. Decrypted values are installed as the
committed state so the session never treats plaintext as a pending write.
"""

from datetime import date

from sqlalchemy import inspect
from sqlalchemy.orm.attributes import set_committed_value

from sympto.utils.encryption_util import encryptor, is_encrypted_value


def _as_text(value):
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def to_date(value):
    """Parses an ISO date, keeping the original value when it does not parse."""
    if isinstance(value, date) or not isinstance(value, str):
        return value
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return value


def pending_plaintext(obj, fields):
    """
    Values of ``fields`` that still need encrypting: set, not already an
    envelope, and either new or changed since the row was loaded.
    """
    state = inspect(obj)
    pending = {}
    for field in fields:
        value = getattr(obj, field)
        if value is None or value == '' or is_encrypted_value(value):
            continue
        if state.persistent and not state.attrs[field].history.has_changes():
            continue
        pending[field] = value
    return pending


def encrypt_fields(obj, fields):
    """Replaces changed plaintext fields on ``obj`` with ciphertext envelopes."""
    for field, value in pending_plaintext(obj, fields).items():
        setattr(obj, field, encryptor.encrypt(_as_text(value)))
    return obj


def install_committed(obj, values):
    for field, value in values.items():
        set_committed_value(obj, field, value)
    return obj


def decrypt_fields(obj, fields, coerce=None):
    """Decrypts ``fields`` in place. Failures leave the stored value as-is."""
    plain = {}
    for field in fields:
        value = getattr(obj, field)
        if value is None:
            continue
        value = encryptor.decrypt(value)
        plain[field] = coerce(value) if coerce is not None else value
    return install_committed(obj, plain)

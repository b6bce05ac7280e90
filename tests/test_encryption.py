import logging

import pytest

from sympto.utils.encryption_util import (
    Encryptor, generate_key, generate_secure_random, hash_data, is_encrypted_value, parse_key,
)

KEY = '0123456789abcdef' * 4
OTHER_KEY = 'fedcba9876543210' * 4


@pytest.fixture
def codec():
    return Encryptor(key=KEY)


@pytest.mark.parametrize('plaintext', ['Jane', 'Ünïcødé name', '12.5', 'a:b:c', 'x' * 500])
def test_round_trip(codec, plaintext):
    assert codec.decrypt(codec.encrypt(plaintext)) == plaintext


def test_envelope_format(codec):
    envelope = codec.encrypt('hello')
    iv, tag, data = envelope.split(':')
    assert len(iv) == 24
    assert len(tag) == 32
    assert data and all(c in '0123456789abcdef' for c in data)
    assert is_encrypted_value(envelope)


def test_fresh_iv_per_call(codec):
    assert codec.encrypt('same') != codec.encrypt('same')


@pytest.mark.parametrize('value', [None, '', 42, 3.5])
def test_encrypt_passthrough(codec, value):
    assert codec.encrypt(value) == value


@pytest.mark.parametrize('value', [
    'plain text',
    'a:b:c',
    'zz' * 12 + ':' + 'ab' * 16 + ':abcd',
    'ab' * 12 + ':' + 'ab' * 16 + ':',
    'ab' * 12 + ':' + 'ab' * 15 + ':abcd',
    'ab' * 12 + ':' + 'ab' * 16 + ':abcd:ef',
    None,
    123,
])
def test_is_encrypted_value_rejects_non_envelopes(value):
    assert not is_encrypted_value(value)


def test_decrypt_plaintext_is_unchanged(codec):
    assert codec.decrypt('legacy plaintext') == 'legacy plaintext'


def test_decrypt_with_other_key_fails_open(codec, caplog):
    envelope = codec.encrypt('secret')
    other = Encryptor(key=OTHER_KEY)

    with caplog.at_level(logging.WARNING, logger='sympto.utils.encryption_util'):
        assert other.decrypt(envelope) == envelope
        assert other.decrypt(envelope) == envelope

    warnings = [r for r in caplog.records if r.name == 'sympto.utils.encryption_util']
    assert len(warnings) == 1


def test_decrypt_with_tampered_tag_fails_open(codec):
    iv, tag, data = codec.encrypt('secret').split(':')
    tampered = f"{iv}:{'0' * 32}:{data}"
    assert codec.decrypt(tampered) == tampered


def test_try_decrypt_reports_failure(codec):
    envelope = codec.encrypt('secret')
    assert codec.try_decrypt(envelope) == (True, 'secret', None)

    result = Encryptor(key=OTHER_KEY).try_decrypt(envelope)
    assert result.ok is False
    assert result.value == envelope
    assert result.error


def test_health_data_helpers(codec):
    data = {'ferritin': 20, 'calcium': 9.25, 'hemoglobin': None, 'fatigue': 2}
    encrypted = codec.encrypt_health_data(data)

    assert is_encrypted_value(encrypted['ferritin'])
    assert is_encrypted_value(encrypted['calcium'])
    assert encrypted['hemoglobin'] is None
    assert encrypted['fatigue'] == 2

    decrypted = codec.decrypt_health_data(encrypted)
    assert decrypted['ferritin'] == 20.0
    assert decrypted['calcium'] == 9.25


def test_decrypt_health_data_keeps_unparseable_string(codec):
    encrypted = {'ferritin': codec.encrypt('not-a-number')}
    assert codec.decrypt_health_data(encrypted)['ferritin'] == 'not-a-number'


def test_hash_and_random_helpers():
    assert hash_data('abc') == 'ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad'
    assert hash_data('') == ''
    assert len(generate_secure_random()) == 64
    assert len(generate_secure_random(8)) == 16


def test_parse_key_validation():
    assert len(parse_key(generate_key())) == 32
    with pytest.raises(ValueError):
        parse_key('too-short')
    with pytest.raises(ValueError):
        parse_key('g' * 64)


def test_uninitialized_encryptor_raises():
    with pytest.raises(RuntimeError):
        Encryptor().encrypt('value')

"""
Unit tests for the encryption primitive.

Tests:
- Round trip for ASCII, unicode and empty plaintexts
- Wrong key and tampering raise IntegrityFailure
- Fresh salt and nonce per envelope
"""

import pytest

from securemeet.constants import SALT_BYTES, NONCE_BYTES, TAG_BYTES
from securemeet.errors import IntegrityFailure
from securemeet.helpers.crypto_helpers import decrypt_data, encrypt_data, generate_secure_key


class TestRoundTrip:

    @pytest.mark.parametrize('plaintext', [
        'JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP',
        'zażółć gęślą jaźń 🔐',
        '',
    ])
    def test_decrypt_returns_plaintext(self, plaintext):
        key = generate_secure_key()
        assert decrypt_data(encrypt_data(plaintext, key), key) == plaintext

    def test_passphrase_key_material(self):
        envelope = encrypt_data('secret', 'correct horse battery staple')
        assert decrypt_data(envelope, 'correct horse battery staple') == 'secret'


class TestEnvelope:

    def test_envelope_layout(self):
        salt, nonce, ciphertext, tag = encrypt_data('abc', 'k').split(':')
        assert len(bytes.fromhex(salt)) == SALT_BYTES
        assert len(bytes.fromhex(nonce)) == NONCE_BYTES
        assert len(bytes.fromhex(tag)) == TAG_BYTES
        assert len(bytes.fromhex(ciphertext)) == 3

    def test_same_input_gives_different_envelopes(self):
        first = encrypt_data('same', 'key').split(':')
        second = encrypt_data('same', 'key').split(':')
        assert first[0] != second[0]  # salt
        assert first[1] != second[1]  # nonce
        assert first[2] != second[2]


class TestIntegrity:

    def test_wrong_key_fails(self):
        envelope = encrypt_data('top secret', generate_secure_key())
        with pytest.raises(IntegrityFailure):
            decrypt_data(envelope, generate_secure_key())

    def test_tampered_ciphertext_fails(self):
        key = generate_secure_key()
        salt, nonce, ciphertext, tag = encrypt_data('top secret', key).split(':')
        flipped = format(int(ciphertext[:2], 16) ^ 0x01, '02x') + ciphertext[2:]
        with pytest.raises(IntegrityFailure):
            decrypt_data(':'.join((salt, nonce, flipped, tag)), key)

    def test_tampered_tag_fails(self):
        key = generate_secure_key()
        salt, nonce, ciphertext, tag = encrypt_data('top secret', key).split(':')
        bad_tag = ('00' if tag[:2] != '00' else 'ff') + tag[2:]
        with pytest.raises(IntegrityFailure):
            decrypt_data(':'.join((salt, nonce, ciphertext, bad_tag)), key)

    @pytest.mark.parametrize('envelope', [
        '',
        'not-an-envelope',
        'aa:bb:cc',
        'zz:zz:zz:zz',
        None,
    ])
    def test_malformed_envelope_fails(self, envelope):
        with pytest.raises(IntegrityFailure):
            decrypt_data(envelope, 'key')


class TestKeyGeneration:

    def test_key_is_256_bit_hex(self):
        key = generate_secure_key()
        assert len(key) == 64
        assert len(bytes.fromhex(key)) == 32

    def test_keys_are_unique(self):
        assert generate_secure_key() != generate_secure_key()

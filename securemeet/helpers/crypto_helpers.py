"""Authenticated encryption for secrets at rest.

Envelope format (all fields hex, colon separated)::

    salt:nonce:ciphertext:tag

The AES-256-GCM key is derived from the caller's key material with
Argon2id and a random salt generated for every ciphertext, so the envelope
plus the key material is all ``decrypt_data`` needs.
"""
import secrets

from argon2.low_level import hash_secret_raw, Type
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from securemeet.constants import (
    KDF_TIME_COST, KDF_MEMORY_COST, KDF_PARALLELISM,
    KEY_BYTES, SALT_BYTES, NONCE_BYTES, TAG_BYTES,
)
from securemeet.errors import IntegrityFailure


def derive_key(key_material, salt):
    """Derive a 256-bit AES key from key material using Argon2id"""
    if isinstance(key_material, str):
        key_material = key_material.encode('utf-8')
    return hash_secret_raw(
        key_material,
        salt,
        time_cost=KDF_TIME_COST,
        memory_cost=KDF_MEMORY_COST,
        parallelism=KDF_PARALLELISM,
        hash_len=KEY_BYTES,
        type=Type.ID
    )


def encrypt_data(plaintext, key):
    """Encrypt a string with AES-256-GCM, return the hex envelope"""
    salt = secrets.token_bytes(SALT_BYTES)
    nonce = secrets.token_bytes(NONCE_BYTES)
    sealed = AESGCM(derive_key(key, salt)).encrypt(nonce, plaintext.encode('utf-8'), None)

    # AESGCM appends the tag to the ciphertext
    ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
    return ':'.join(part.hex() for part in (salt, nonce, ciphertext, tag))


def decrypt_data(envelope, key):
    """Decrypt an envelope produced by encrypt_data.

    Raises IntegrityFailure if the envelope is malformed, was tampered
    with, or the key is wrong.
    """
    try:
        salt_hex, nonce_hex, ciphertext_hex, tag_hex = envelope.split(':')
        salt = bytes.fromhex(salt_hex)
        nonce = bytes.fromhex(nonce_hex)
        ciphertext = bytes.fromhex(ciphertext_hex)
        tag = bytes.fromhex(tag_hex)
    except (AttributeError, ValueError) as e:
        raise IntegrityFailure('Malformed envelope') from e

    if len(salt) != SALT_BYTES or len(nonce) != NONCE_BYTES or len(tag) != TAG_BYTES:
        raise IntegrityFailure('Malformed envelope')

    try:
        plaintext = AESGCM(derive_key(key, salt)).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag as e:
        raise IntegrityFailure('Authentication tag mismatch') from e
    return plaintext.decode('utf-8')


def generate_secure_key():
    """Generate a random 256-bit key as a hex string"""
    return secrets.token_hex(KEY_BYTES)

# src/crypto/envelope.py — v1
"""ECIES key envelope codec (secp256k1, AES-256-CBC, HMAC-SHA256).

Fixed layout of an envelope of ``n`` bytes::

    [0, 16)        initialization vector
    [16, 81)       ephemeral public key, uncompressed SEC1 point
    [81, n - 32)   AES-256-CBC ciphertext (PKCS#7 padded)
    [n - 32, n)    HMAC-SHA256 over iv || ephemeral key || ciphertext

Key schedule: SHA-512 of the ECDH shared X coordinate; the first 32 bytes are
the AES key and the last 32 bytes the MAC key.
"""

from __future__ import annotations

import hashlib
import hmac
import os
from dataclasses import dataclass

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

IV_SIZE = 16
PUBLIC_KEY_SIZE = 65
MAC_SIZE = 32
HEADER_SIZE = IV_SIZE + PUBLIC_KEY_SIZE
MIN_ENVELOPE_SIZE = HEADER_SIZE + MAC_SIZE

_CURVE = ec.SECP256K1()


class EnvelopeError(Exception):
    """Base class for envelope decoding failures."""


class EnvelopeTooShortError(EnvelopeError):
    """Envelope is shorter than header plus MAC."""


class KeyMismatchError(EnvelopeError):
    """Key material is invalid or does not fit the ciphertext."""


class MacMismatchError(EnvelopeError):
    """Authentication code does not match the envelope contents."""


@dataclass(frozen=True)
class Envelope:
    """Named regions of a parsed envelope."""

    iv: bytes
    ephemeral_public_key: bytes
    ciphertext: bytes
    mac: bytes

    @property
    def authenticated_data(self) -> bytes:
        return self.iv + self.ephemeral_public_key + self.ciphertext

    def to_bytes(self) -> bytes:
        return self.authenticated_data + self.mac


def parse_envelope(data: bytes) -> Envelope:
    """Split raw envelope bytes into their fixed regions.

    Raises:
        EnvelopeTooShortError: If ``len(data) < 113``.
    """
    if len(data) < MIN_ENVELOPE_SIZE:
        raise EnvelopeTooShortError(
            f"Envelope is {len(data)} bytes, need at least {MIN_ENVELOPE_SIZE}"
        )
    return Envelope(
        iv=data[:IV_SIZE],
        ephemeral_public_key=data[IV_SIZE:HEADER_SIZE],
        ciphertext=data[HEADER_SIZE:len(data) - MAC_SIZE],
        mac=data[len(data) - MAC_SIZE:],
    )


def _load_private_key(private_key: bytes) -> ec.EllipticCurvePrivateKey:
    try:
        return ec.derive_private_key(int.from_bytes(private_key, "big"), _CURVE)
    except ValueError as e:
        raise KeyMismatchError(f"Invalid private key: {e}") from e


def _load_public_key(public_key: bytes) -> ec.EllipticCurvePublicKey:
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, public_key)
    except ValueError as e:
        raise KeyMismatchError(f"Invalid ephemeral public key: {e}") from e


def _derive_keys(
    private_key: ec.EllipticCurvePrivateKey, public_key: ec.EllipticCurvePublicKey,
) -> tuple[bytes, bytes]:
    shared_x = private_key.exchange(ec.ECDH(), public_key)
    digest = hashlib.sha512(shared_x).digest()
    return digest[:32], digest[32:]


def public_key_from_private(private_key: bytes) -> bytes:
    """Uncompressed SEC1 public key for a raw 32-byte private key."""
    return _load_private_key(private_key).public_key().public_bytes(
        Encoding.X962, PublicFormat.UncompressedPoint,
    )


def decrypt_envelope(private_key: bytes, data: bytes) -> bytes:
    """Recover the plaintext sealed in *data* for *private_key*.

    Raises:
        EnvelopeTooShortError: Envelope shorter than 113 bytes.
        KeyMismatchError: Invalid key material, or the MAC passed but the
            plaintext padding is corrupt.
        MacMismatchError: Authentication code mismatch (wrong recipient key
            or tampered envelope).
    """
    envelope = parse_envelope(data)
    ephemeral = _load_public_key(envelope.ephemeral_public_key)
    enc_key, mac_key = _derive_keys(_load_private_key(private_key), ephemeral)

    expected = hmac.new(mac_key, envelope.authenticated_data, hashlib.sha256).digest()
    if not hmac.compare_digest(expected, envelope.mac):
        raise MacMismatchError("Bad MAC")

    if not envelope.ciphertext or len(envelope.ciphertext) % IV_SIZE:
        raise KeyMismatchError("Ciphertext length is not a multiple of the block size")
    decryptor = Cipher(algorithms.AES(enc_key), modes.CBC(envelope.iv)).decryptor()
    padded = decryptor.update(envelope.ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(128).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise KeyMismatchError(f"Bad padding: {e}") from e


def encrypt_envelope(
    public_key: bytes,
    plaintext: bytes,
    *,
    ephemeral_private_key: bytes | None = None,
    iv: bytes | None = None,
) -> bytes:
    """Seal *plaintext* for the holder of *public_key* (uncompressed SEC1).

    ``ephemeral_private_key`` and ``iv`` are random unless given.
    """
    recipient = _load_public_key(public_key)
    if ephemeral_private_key is None:
        ephemeral = ec.generate_private_key(_CURVE)
    else:
        ephemeral = _load_private_key(ephemeral_private_key)
    iv = iv if iv is not None else os.urandom(IV_SIZE)
    enc_key, mac_key = _derive_keys(ephemeral, recipient)

    padder = padding.PKCS7(128).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(enc_key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    ephemeral_public = ephemeral.public_key().public_bytes(
        Encoding.X962, PublicFormat.UncompressedPoint,
    )
    authenticated = iv + ephemeral_public + ciphertext
    mac = hmac.new(mac_key, authenticated, hashlib.sha256).digest()
    return authenticated + mac

"""
Key generation for newly created addresses.
"""

from __future__ import annotations

import secrets

import libnacl
from coincurve import PrivateKey

from constructor.models import CurveType, KeyPair, PublicKey


class KeyGenerationError(Exception):
    pass


def generate_keypair(curve_type: CurveType) -> KeyPair:
    """
    Generate a fresh keypair on the requested curve.

    secp256k1 public keys are returned in compressed (33 byte) form.
    edwards25519 private keys are the 32 byte seed.
    """
    if curve_type == CurveType.SECP256K1:
        private_key = PrivateKey(secrets.token_bytes(32))
        pubkey_bytes = private_key.public_key.format(compressed=True)
        return KeyPair(
            public_key=PublicKey(hex_bytes=pubkey_bytes.hex(), curve_type=curve_type),
            private_key=private_key.secret.hex(),
        )

    if curve_type == CurveType.EDWARDS25519:
        pubkey_bytes, secret_bytes = libnacl.crypto_sign_keypair()
        return KeyPair(
            public_key=PublicKey(hex_bytes=pubkey_bytes.hex(), curve_type=curve_type),
            private_key=secret_bytes[: libnacl.crypto_sign_SEEDBYTES].hex(),
        )

    raise KeyGenerationError(f"unsupported curve type: {curve_type.value}")

"""BLS12-381 transaction signing.

Secrets and signatures use Base58, the same encoding as Amadeus addresses.
The secret is read as a little-endian integer and reduced modulo the scalar
field order before use. The signature is the compressed G2 point
``hash_to_G2(payload, DST) * sk``.
"""

from __future__ import annotations

import hashlib

import base58
from py_ecc.bls.g2_primitives import G1_to_pubkey, G2_to_signature
from py_ecc.bls.hash_to_curve import hash_to_G2
from py_ecc.optimized_bls12_381 import G1, curve_order, multiply

from ama_agent.errors import DecodeError

TX_DST = b"AMADEUS_SIG_BLS12381G2_XMD:SHA-256_SSWU_RO_TX_"
PRIVATE_KEY_SIZE = 32


def reduce_scalar(value: int) -> int:
    """Reduce an integer into the BLS12-381 scalar field."""

    return value % curve_order


def derive_private_key(raw_secret: bytes) -> bytes:
    """Canonical 32-byte big-endian private key for a raw secret."""

    scalar = reduce_scalar(int.from_bytes(raw_secret, "little"))
    if scalar == 0:
        raise DecodeError("Secret key reduces to zero")
    return scalar.to_bytes(PRIVATE_KEY_SIZE, "big")


def decode_secret_key(secret_key_encoded: str) -> bytes:
    if not secret_key_encoded:
        raise DecodeError("Secret key is empty")
    try:
        raw = base58.b58decode(secret_key_encoded.strip())
    except ValueError as exc:
        raise DecodeError(f"Secret key is not valid Base58: {exc}") from exc
    if not raw:
        raise DecodeError("Secret key is empty")
    return raw


def decode_payload(signing_payload_hex: str) -> bytes:
    text = signing_payload_hex.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if not text:
        raise DecodeError("Signing payload is empty")
    try:
        return bytes.fromhex(text)
    except ValueError as exc:
        raise DecodeError(f"Signing payload is not valid hex: {exc}") from exc


def sign(signing_payload_hex: str, secret_key_encoded: str) -> str:
    """Sign a hex signing payload with a Base58 secret; returns a Base58 signature."""

    private_key = derive_private_key(decode_secret_key(secret_key_encoded))
    message = decode_payload(signing_payload_hex)
    point = hash_to_G2(message, TX_DST, hashlib.sha256)
    signature = multiply(point, int.from_bytes(private_key, "big"))
    return base58.b58encode(G2_to_signature(signature)).decode("ascii")


def derive_public_key(secret_key_encoded: str) -> str:
    """Base58 compressed G1 public key for a Base58 secret."""

    private_key = derive_private_key(decode_secret_key(secret_key_encoded))
    point = multiply(G1, int.from_bytes(private_key, "big"))
    return base58.b58encode(G1_to_pubkey(point)).decode("ascii")

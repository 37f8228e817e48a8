"""Key decoding and signature utilities built on Ed25519 primitives."""

from __future__ import annotations

import base64
import binascii
import re

from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

ED25519_PUBKEY_BYTES = 32
ED25519_SIGNATURE_BYTES = 64

_HEX_RE = re.compile(r"^(?:[0-9a-fA-F]{2})+$")


def _decode_base64(data: str) -> bytes:
    """Decode standard or URL-safe base64, accepting omitted padding."""
    padded = data + "=" * (-len(data) % 4)
    altchars = b"-_" if ("-" in data or "_" in data) else None
    try:
        return base64.b64decode(padded, altchars=altchars, validate=True)
    except (binascii.Error, ValueError) as err:
        raise ValueError(f"Invalid base64 encoding: {err}") from err


def decode_key_material(encoded: str, *, expected_length: int | None = None) -> bytes:
    """Decode a client-supplied key or signature.

    Hex is tried first when the string is made only of hex digits and has the
    expected length; base64 otherwise.

    Args:
        encoded: Hex or base64 (standard or URL-safe) text.
        expected_length: Required decoded length in bytes, if any.

    Returns:
        The decoded bytes.

    Raises:
        ValueError: If the value cannot be decoded or has the wrong length.
    """
    cleaned = encoded.strip()
    if not cleaned:
        raise ValueError("Key material must not be empty")

    candidates: list[bytes] = []
    if _HEX_RE.match(cleaned):
        candidates.append(bytes.fromhex(cleaned))
    try:
        candidates.append(_decode_base64(cleaned))
    except ValueError:
        pass

    for candidate in candidates:
        if expected_length is None or len(candidate) == expected_length:
            return candidate

    if expected_length is not None and candidates:
        raise ValueError(f"Expected {expected_length} bytes of key material")
    raise ValueError("Key material must be hex or base64 encoded")


def verify_signature(pubkey: bytes, message: bytes, signature: bytes) -> bool:
    """Verify an Ed25519 signature.

    Args:
        pubkey: Raw 32-byte public key.
        message: Exact bytes that were signed on the client.
        signature: Raw 64-byte signature.

    Returns:
        True if the signature is valid for ``message`` under ``pubkey``; False otherwise.
    """
    try:
        VerifyKey(pubkey).verify(message, signature)
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False

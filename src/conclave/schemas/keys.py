"""Key directory Pydantic schemas."""
from __future__ import annotations

from pydantic import Field

from .common import CamelModel, UtcDatetime


class KeyBundleUpload(CamelModel):
    """Schema for publishing the caller's key bundle."""

    identity_key: str = Field(..., description="Ed25519 identity public key, hex or base64")
    signed_pre_key: str = Field(..., description="Pre-key signed by the identity key")
    signature: str = Field(..., description="Ed25519 signature over the signed pre-key bytes")
    one_time_pre_keys: list[str] = Field(default_factory=list)


class KeyUploadResponse(CamelModel):
    success: bool = True
    pre_keys_added: int


class OwnKeysResponse(CamelModel):
    did: str
    identity_key: str
    signed_pre_key: str
    signature: str
    updated_at: UtcDatetime
    unused_pre_key_count: int


class PublicKeyBundleResponse(CamelModel):
    """Another identity's keys for establishing an encrypted session."""

    did: str
    identity_key: str
    signed_pre_key: str
    signature: str
    one_time_pre_key: str | None = None

"""Key directory endpoints for the Conclave API."""

from __future__ import annotations

from fastapi import APIRouter

from conclave.schemas.keys import (
    KeyBundleUpload,
    KeyUploadResponse,
    OwnKeysResponse,
    PublicKeyBundleResponse,
)

from ..dependencies import CurrentIdentityDep, KeyDirectoryDep

router = APIRouter(prefix="/keys", tags=["keys"])


@router.post("", response_model=KeyUploadResponse)
async def upload_keys(
    payload: KeyBundleUpload,
    identity: CurrentIdentityDep,
    directory: KeyDirectoryDep,
) -> KeyUploadResponse:
    """Publish or replace the caller's key bundle and add one-time pre-keys."""
    added = directory.upsert(
        identity.did,
        payload.identity_key,
        payload.signed_pre_key,
        payload.signature,
        payload.one_time_pre_keys,
    )
    return KeyUploadResponse(success=True, pre_keys_added=added)


@router.get("", response_model=OwnKeysResponse)
async def get_own_keys(identity: CurrentIdentityDep, directory: KeyDirectoryDep) -> OwnKeysResponse:
    """Return the caller's bundle with the count of unused pre-keys."""
    own = directory.own_keys(identity.did)
    return OwnKeysResponse(
        did=own.bundle.did,
        identity_key=own.bundle.identity_key,
        signed_pre_key=own.bundle.signed_pre_key,
        signature=own.bundle.signature,
        updated_at=own.bundle.updated_at,
        unused_pre_key_count=own.unused_pre_key_count,
    )


@router.get("/{did}", response_model=PublicKeyBundleResponse)
async def fetch_keys(did: str, directory: KeyDirectoryDep) -> PublicKeyBundleResponse:
    """Fetch an identity's public keys, consuming one of their one-time pre-keys.

    Public; no bearer credential is required.
    """
    fetched = directory.fetch(did)
    return PublicKeyBundleResponse(
        did=fetched.bundle.did,
        identity_key=fetched.bundle.identity_key,
        signed_pre_key=fetched.bundle.signed_pre_key,
        signature=fetched.bundle.signature,
        one_time_pre_key=fetched.one_time_pre_key,
    )

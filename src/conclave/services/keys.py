"""Key directory for client-side end-to-end encryption."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, aliased

from conclave.core.errors import NotFoundError, ValidationError
from conclave.core.security import (
    ED25519_PUBKEY_BYTES,
    ED25519_SIGNATURE_BYTES,
    decode_key_material,
    verify_signature,
)
from conclave.db.time import utcnow
from conclave.models import PreKey, PublicKeyBundle
from conclave.utils.did import is_valid_did
from conclave.utils.ids import generate_id

logger = logging.getLogger(__name__)


@dataclass
class FetchedBundle:
    """Another identity's public keys plus at most one one-time pre-key."""

    bundle: PublicKeyBundle
    one_time_pre_key: str | None


@dataclass
class OwnKeys:
    bundle: PublicKeyBundle
    unused_pre_key_count: int


def _decode(field: str, value: str, expected_length: int | None = None) -> bytes:
    try:
        return decode_key_material(value, expected_length=expected_length)
    except ValueError as err:
        raise ValidationError(f"Invalid {field}: {err}") from err


class KeyDirectory:
    """Publishes key bundles and hands out one-time pre-keys exactly once."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def upsert(
        self,
        did: str,
        identity_key: str,
        signed_pre_key: str,
        signature: str,
        one_time_pre_keys: Sequence[str] = (),
    ) -> int:
        """Replace ``did``'s bundle and append any new one-time pre-keys.

        The signature must be a valid Ed25519 signature by ``identity_key``
        over the decoded ``signed_pre_key`` bytes. Previously uploaded pre-keys
        are kept.

        Returns:
            Number of one-time pre-keys added.
        """
        if not all(value and value.strip() for value in (identity_key, signed_pre_key, signature)):
            raise ValidationError("identityKey, signedPreKey, and signature are required")

        identity_bytes = _decode("identityKey", identity_key, ED25519_PUBKEY_BYTES)
        pre_key_bytes = _decode("signedPreKey", signed_pre_key)
        signature_bytes = _decode("signature", signature, ED25519_SIGNATURE_BYTES)
        if not verify_signature(identity_bytes, pre_key_bytes, signature_bytes):
            raise ValidationError("signature does not verify signedPreKey under identityKey")

        for key in one_time_pre_keys:
            if not isinstance(key, str) or not key.strip():
                raise ValidationError("oneTimePreKeys must be non-empty strings")

        bundle = self.db.get(PublicKeyBundle, did)
        if bundle is None:
            bundle = PublicKeyBundle(did=did)
            self.db.add(bundle)
        bundle.identity_key = identity_key
        bundle.signed_pre_key = signed_pre_key
        bundle.signature = signature
        bundle.updated_at = utcnow()
        self.db.flush()

        for key in one_time_pre_keys:
            self.db.add(PreKey(id=generate_id("pk"), did=did, key=key, used=False))
        self.db.commit()

        logger.info("Key bundle for %s updated with %d new pre-keys", did, len(one_time_pre_keys))
        return len(one_time_pre_keys)

    def _claim_pre_key(self, did: str) -> str | None:
        # Select and mark in one statement; rows locked by another claim are skipped.
        oldest = aliased(PreKey)
        candidate = (
            select(oldest.id)
            .where(oldest.did == did, oldest.used.is_(False))
            .order_by(oldest.created_at, oldest.id)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        claimed = self.db.execute(
            update(PreKey)
            .where(PreKey.id == candidate, PreKey.used.is_(False))
            .values(used=True)
            .returning(PreKey.key)
            .execution_options(synchronize_session=False)
        )
        return claimed.scalar_one_or_none()

    def fetch(self, did: str) -> FetchedBundle:
        """Return ``did``'s public bundle, consuming one pre-key if any remain."""
        if not is_valid_did(did):
            raise ValidationError("Invalid DID format")
        bundle = self.db.get(PublicKeyBundle, did)
        if bundle is None:
            raise NotFoundError("No keys found for this DID")

        key = self._claim_pre_key(did)
        self.db.commit()
        if key is None:
            logger.info("Pre-keys exhausted for %s", did)
        return FetchedBundle(bundle, key)

    def own_keys(self, did: str) -> OwnKeys:
        bundle = self.db.get(PublicKeyBundle, did)
        if bundle is None:
            raise NotFoundError("No keys uploaded")
        count = (
            self.db.query(func.count(PreKey.id))
            .filter(PreKey.did == did, PreKey.used.is_(False))
            .scalar()
        )
        return OwnKeys(bundle, count or 0)

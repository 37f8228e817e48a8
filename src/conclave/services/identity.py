"""Bearer credential verification.

Every authenticated request exchanges its bearer credential for an
:class:`Identity`. The exchange is pluggable:

- :class:`HttpIdentityVerifier` asks a remote identity service
  (``POST <IDENTITY_SERVICE_URL>/api/verify``) with an explicit timeout.
- :class:`JwtIdentityVerifier` validates HS256 tokens signed with the local
  ``SECRET_KEY``, for self-hosted deployments and development.

Both raise :class:`~conclave.core.errors.AuthenticationError` for a credential
that is missing, invalid or expired, and the remote verifier raises
:class:`~conclave.core.errors.UpstreamUnavailableError` when the service
cannot answer, so the two conditions never blur together.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
from jose import JWTError, jwt

from conclave.core.errors import AuthenticationError, UpstreamUnavailableError
from conclave.core.settings import Settings
from conclave.utils.did import is_valid_did

logger = logging.getLogger(__name__)

IDENTITY_KINDS = ("human", "agent", "presence")
VERIFY_PATH = "/api/verify"


@dataclass(frozen=True)
class Identity:
    """Verified identity attached to a request."""

    did: str
    public_key: str | None = None
    kind: str = "human"


class IdentityVerifier(ABC):
    """Exchanges a bearer credential for a verified identity."""

    @abstractmethod
    async def verify(self, credential: str) -> Identity:
        """Return the identity behind ``credential``.

        Raises:
            AuthenticationError: If the credential is not accepted.
            UpstreamUnavailableError: If verification could not be performed.
        """

    async def close(self) -> None:
        """Release network resources held by the verifier."""


def _identity_from_claims(did: Any, public_key: Any, kind: Any) -> Identity | None:
    if not is_valid_did(did):
        return None
    return Identity(
        did=did,
        public_key=public_key if isinstance(public_key, str) else None,
        kind=kind if kind in IDENTITY_KINDS else "human",
    )


class HttpIdentityVerifier(IdentityVerifier):
    """Verify credentials against the remote identity service."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=httpx.Timeout(self.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def verify(self, credential: str) -> Identity:
        client = await self._ensure_client()
        start_time = time.monotonic()
        try:
            response = await client.post(VERIFY_PATH, json={"token": credential})
        except httpx.HTTPError as exc:
            logger.warning(
                "Identity service request failed after %.2fs: %s",
                time.monotonic() - start_time,
                type(exc).__name__,
            )
            raise UpstreamUnavailableError("Identity service unavailable") from exc

        if response.status_code >= httpx.codes.INTERNAL_SERVER_ERROR:
            logger.warning("Identity service responded with %s", response.status_code)
            raise UpstreamUnavailableError("Identity service unavailable")
        if not response.is_success:
            raise AuthenticationError("Invalid or expired token")

        try:
            data = response.json()["identity"]
            identity = _identity_from_claims(data["id"], data.get("publicKey"), data.get("type"))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Identity service returned a malformed payload")
            raise UpstreamUnavailableError("Identity service returned an invalid response") from exc

        if identity is None:
            logger.warning("Identity service returned an invalid DID")
            raise UpstreamUnavailableError("Identity service returned an invalid response")
        return identity

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class JwtIdentityVerifier(IdentityVerifier):
    """Verify locally issued HS256 tokens whose subject is a DID."""

    def __init__(self, secret_key: str, *, algorithm: str = "HS256") -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm

    def issue_token(
        self,
        did: str,
        *,
        public_key: str | None = None,
        kind: str = "human",
        expires_in_seconds: int = 3600,
    ) -> str:
        """Create a token this verifier will accept."""
        now = int(time.time())
        claims: dict[str, Any] = {
            "sub": did,
            "kind": kind,
            "iat": now,
            "exp": now + expires_in_seconds,
        }
        if public_key is not None:
            claims["pk"] = public_key
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    async def verify(self, credential: str) -> Identity:
        try:
            payload = jwt.decode(credential, self.secret_key, algorithms=[self.algorithm])
        except JWTError as err:
            raise AuthenticationError("Could not validate credentials") from err

        identity = _identity_from_claims(payload.get("sub"), payload.get("pk"), payload.get("kind"))
        if identity is None:
            raise AuthenticationError("Could not validate credentials")
        return identity


def build_identity_verifier(settings: Settings) -> IdentityVerifier:
    """Return the verifier selected by ``IDENTITY_MODE``."""
    if settings.identity_mode == "jwt":
        return JwtIdentityVerifier(settings.secret_key, algorithm=settings.jwt_algorithm)
    return HttpIdentityVerifier(
        settings.identity_service_url,
        timeout_seconds=settings.identity_timeout_seconds,
    )

"""Tests for bearer credential verifiers."""

import json

import httpx
import pytest

from conclave.core.errors import AuthenticationError, UpstreamUnavailableError
from conclave.core.settings import Settings
from conclave.services.identity import (
    HttpIdentityVerifier,
    JwtIdentityVerifier,
    build_identity_verifier,
)

DID = "did:imajin:alice"


def _verifier(handler) -> HttpIdentityVerifier:
    return HttpIdentityVerifier("https://auth.test/", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_http_verifier_posts_token_and_parses_identity() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"identity": {"id": DID, "publicKey": "abcd", "type": "agent"}},
        )

    verifier = _verifier(handler)
    try:
        identity = await verifier.verify("token-123")
    finally:
        await verifier.close()

    assert seen == {"url": "https://auth.test/api/verify", "body": {"token": "token-123"}}
    assert identity.did == DID
    assert identity.public_key == "abcd"
    assert identity.kind == "agent"


@pytest.mark.asyncio
async def test_http_verifier_rejected_token() -> None:
    verifier = _verifier(lambda request: httpx.Response(401))
    with pytest.raises(AuthenticationError):
        await verifier.verify("bad")
    await verifier.close()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(502),
        httpx.Response(200, json={"unexpected": True}),
        httpx.Response(200, json={"identity": {"id": "not-a-did"}}),
        httpx.Response(200, text="<html>"),
    ],
)
async def test_http_verifier_upstream_failures(response: httpx.Response) -> None:
    verifier = _verifier(lambda request: response)
    with pytest.raises(UpstreamUnavailableError):
        await verifier.verify("token")
    await verifier.close()


@pytest.mark.asyncio
async def test_http_verifier_timeout_is_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    verifier = _verifier(handler)
    with pytest.raises(UpstreamUnavailableError):
        await verifier.verify("token")
    await verifier.close()


@pytest.mark.asyncio
async def test_jwt_verifier_round_trip() -> None:
    verifier = JwtIdentityVerifier("secret")
    token = verifier.issue_token(DID, public_key="pk", kind="presence")
    identity = await verifier.verify(token)
    assert identity.did == DID
    assert identity.public_key == "pk"
    assert identity.kind == "presence"


@pytest.mark.asyncio
async def test_jwt_verifier_rejects_other_secret() -> None:
    token = JwtIdentityVerifier("secret").issue_token(DID)
    with pytest.raises(AuthenticationError):
        await JwtIdentityVerifier("other").verify(token)


def test_build_identity_verifier_follows_mode() -> None:
    jwt_mode = build_identity_verifier(Settings(IDENTITY_MODE="jwt", SECRET_KEY="s"))
    remote = build_identity_verifier(
        Settings(IDENTITY_MODE="remote", IDENTITY_SERVICE_URL="https://id.test", IDENTITY_TIMEOUT_SECONDS=2)
    )
    assert isinstance(jwt_mode, JwtIdentityVerifier)
    assert isinstance(remote, HttpIdentityVerifier)
    assert remote.base_url == "https://id.test"
    assert remote.timeout_seconds == 2

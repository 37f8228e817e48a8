# tests/conftest.py
from __future__ import annotations

import base64
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from nacl.public import PrivateKey
from nacl.signing import SigningKey
from sqlalchemy.orm import Session

from conclave.core.settings import Settings
from conclave.db.session import Database
from conclave.main import create_app
from conclave.services.events import RecordingEventPublisher
from conclave.services.identity import JwtIdentityVerifier
from conclave.services.messages import MessageLedger

TEST_DB_URL = "sqlite://"
TEST_SECRET = "test-secret-key"
TEST_INVITE_BASE_URL = "https://chat.test"

ALICE = "did:imajin:alice"
BOB = "did:imajin:bob"
CAROL = "did:imajin:carol"
DAVE = "did:imajin:dave"

ENVELOPE = {"ciphertext": "Y2lwaGVydGV4dA==", "nonce": "bm9uY2U="}


@pytest.fixture()
def test_settings() -> Settings:
    """Settings for an isolated in-memory deployment with local tokens."""
    return Settings(
        DATABASE_URL=TEST_DB_URL,
        IDENTITY_MODE="jwt",
        SECRET_KEY=TEST_SECRET,
        INVITE_BASE_URL=TEST_INVITE_BASE_URL,
        LOG_LEVEL="WARNING",
        AUTO_CREATE_TABLES=True,
    )


@pytest.fixture()
def verifier() -> JwtIdentityVerifier:
    return JwtIdentityVerifier(TEST_SECRET)


@pytest.fixture()
def publisher() -> RecordingEventPublisher:
    return RecordingEventPublisher()


@pytest.fixture()
def app(
    test_settings: Settings,
    verifier: JwtIdentityVerifier,
    publisher: RecordingEventPublisher,
) -> FastAPI:
    return create_app(test_settings, identity_verifier=verifier, event_publisher=publisher)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def app_session(app: FastAPI, client: TestClient) -> Iterator[Session]:
    """Session on the app's own database, for arranging state directly."""
    session = app.state.database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def auth_headers(verifier: JwtIdentityVerifier) -> Callable[[str], dict[str, str]]:
    """Return a factory producing bearer headers for a DID."""

    def _headers(did: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {verifier.issue_token(did)}"}

    return _headers


@pytest.fixture()
def create_group(
    client: TestClient,
    auth_headers: Callable[[str], dict[str, str]],
) -> Callable[..., str]:
    """Return a factory that creates a group through the API and returns its id."""

    def _create(owner: str, members: list[str], name: str = "Team") -> str:
        response = client.post(
            "/api/v1/conversations",
            json={"type": "group", "participantDids": members, "name": name},
            headers=auth_headers(owner),
        )
        assert response.status_code == 201, response.text
        return response.json()["conversation"]["id"]

    return _create


@pytest.fixture()
def database() -> Iterator[Database]:
    """Standalone in-memory database for service-level tests."""
    database = Database(TEST_DB_URL)
    database.create_tables()
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture()
def db_session(database: Database) -> Iterator[Session]:
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def ledger(db_session: Session, publisher: RecordingEventPublisher) -> MessageLedger:
    return MessageLedger(db_session, publisher)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


def make_key_bundle(pre_keys: int = 0) -> dict[str, Any]:
    """Build a correctly signed key upload payload."""
    signing_key = SigningKey.generate()
    signed_pre_key = bytes(PrivateKey.generate().public_key)
    signature = signing_key.sign(signed_pre_key).signature
    return {
        "identityKey": _b64(bytes(signing_key.verify_key)),
        "signedPreKey": _b64(signed_pre_key),
        "signature": _b64(signature),
        "oneTimePreKeys": [_b64(bytes(PrivateKey.generate().public_key)) for _ in range(pre_keys)],
    }

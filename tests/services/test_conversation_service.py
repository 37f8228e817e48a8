"""Tests for conversation creation edge cases."""

import pytest

from conclave.core.errors import ValidationError
from conclave.models import Conversation, Participant
from conclave.models.conversation import direct_pair_key
from conclave.services.conversations import ConversationService
from tests.conftest import ALICE, BOB


def test_direct_pair_key_is_order_independent() -> None:
    assert direct_pair_key(ALICE, BOB) == direct_pair_key(BOB, ALICE)


def test_concurrent_direct_creation_returns_winner(db_session, ledger, monkeypatch) -> None:
    """Losing the unique pair-key race yields the winner's conversation."""
    service = ConversationService(db_session, ledger)
    winner = service.create(BOB, "direct", [ALICE]).conversation

    calls = []
    original = ConversationService._find_direct

    def stale_lookup(self, did_a, did_b):
        calls.append((did_a, did_b))
        if len(calls) == 1:
            return None
        return original(self, did_a, did_b)

    monkeypatch.setattr(ConversationService, "_find_direct", stale_lookup)
    result = service.create(ALICE, "direct", [BOB])

    assert result.existing is True
    assert result.conversation.id == winner.id
    assert len(calls) == 2
    assert db_session.query(Conversation).count() == 1
    assert db_session.query(Participant).count() == 2


def test_direct_conversation_cannot_be_named(db_session, ledger) -> None:
    with pytest.raises(ValidationError):
        ConversationService(db_session, ledger).create(ALICE, "direct", [BOB], name="Us")


def test_update_rejects_unknown_fields(db_session, ledger) -> None:
    service = ConversationService(db_session, ledger)
    conversation = service.create(ALICE, "group", [BOB], name="Team").conversation
    with pytest.raises(ValidationError):
        service.update(ALICE, conversation.id, {"type": "direct"})

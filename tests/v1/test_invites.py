# tests/v1/test_invites.py
"""Tests for invite endpoints."""

from fastapi import status

from tests.conftest import ALICE, BOB, CAROL, DAVE, TEST_INVITE_BASE_URL

ERIN = "did:imajin:erin"


def _create_invite(client, auth_headers, conversation_id, did=ALICE, **options):
    return client.post(
        "/api/v1/invites",
        json={"conversationId": conversation_id, **options},
        headers=auth_headers(did),
    )


def test_owner_creates_invite(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    response = _create_invite(client, auth_headers, conversation_id, maxUses=3, expiresInHours=24)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    invite = data["invite"]
    assert data["link"] == f"{TEST_INVITE_BASE_URL}/join/{invite['id']}"
    assert invite["conversationId"] == conversation_id
    assert invite["createdBy"] == ALICE
    assert invite["maxUses"] == 3
    assert invite["usedCount"] == 0
    assert invite["expiresAt"] is not None
    assert invite["state"] == "active"


def test_member_cannot_create_invite(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    response = _create_invite(client, auth_headers, conversation_id, did=BOB)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_direct_conversations_have_no_invites(client, auth_headers) -> None:
    conversation_id = client.post(
        "/api/v1/conversations",
        json={"type": "direct", "participantDids": [BOB]},
        headers=auth_headers(ALICE),
    ).json()["conversation"]["id"]
    response = _create_invite(client, auth_headers, conversation_id)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_invite_options_are_validated(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    assert _create_invite(client, auth_headers, conversation_id, maxUses=0).status_code == 422
    assert _create_invite(client, auth_headers, conversation_id, expiresInHours=-1).status_code == 422
    assert _create_invite(client, auth_headers, conversation_id, expiresInHours=1e12).status_code == 422
    bad_did = _create_invite(client, auth_headers, conversation_id, forDid="bob")
    assert bad_did.status_code == status.HTTP_400_BAD_REQUEST


def test_preview_needs_no_authentication(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB, CAROL], name="Book club")
    invite_id = _create_invite(client, auth_headers, conversation_id).json()["invite"]["id"]

    response = client.get(f"/api/v1/invites/{invite_id}")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["invite"]["id"] == invite_id
    assert data["conversation"]["name"] == "Book club"
    assert data["conversation"]["participantCount"] == 3


def test_preview_unknown_invite(client) -> None:
    response = client.get("/api/v1/invites/inv_missing")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Invite not found"


def test_redeem_joins_as_member(client, auth_headers, create_group, publisher) -> None:
    conversation_id = create_group(ALICE, [BOB])
    invite_id = _create_invite(client, auth_headers, conversation_id).json()["invite"]["id"]

    response = client.post(f"/api/v1/invites/{invite_id}", headers=auth_headers(DAVE))
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "conversationId": conversation_id,
        "joined": True,
        "alreadyMember": False,
    }

    detail = client.get(f"/api/v1/conversations/{conversation_id}", headers=auth_headers(DAVE)).json()
    assert detail["myRole"] == "member"
    dave = next(p for p in detail["participants"] if p["did"] == DAVE)
    assert dave["invitedBy"] == ALICE

    messages = client.get(
        f"/api/v1/conversations/{conversation_id}/messages",
        headers=auth_headers(DAVE),
    ).json()["messages"]
    assert messages[-1]["content"]["text"] == f"{DAVE} joined via invite"
    assert publisher.of_type("participant.added")[-1][2]["did"] == DAVE


def test_redeem_by_member_does_not_consume_use(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    invite_id = _create_invite(client, auth_headers, conversation_id, maxUses=1).json()["invite"]["id"]

    response = client.post(f"/api/v1/invites/{invite_id}", headers=auth_headers(BOB))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["alreadyMember"] is True
    assert response.json()["joined"] is False

    invites = client.get(
        "/api/v1/invites",
        params={"conversationId": conversation_id},
        headers=auth_headers(ALICE),
    ).json()["invites"]
    assert invites[0]["usedCount"] == 0


def test_exhausted_invite_is_gone(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    invite_id = _create_invite(client, auth_headers, conversation_id, maxUses=1).json()["invite"]["id"]

    first = client.post(f"/api/v1/invites/{invite_id}", headers=auth_headers(DAVE))
    second = client.post(f"/api/v1/invites/{invite_id}", headers=auth_headers(ERIN))
    assert first.status_code == status.HTTP_200_OK
    assert second.status_code == status.HTTP_410_GONE
    assert second.json()["reason"] == "exhausted"

    preview = client.get(f"/api/v1/invites/{invite_id}")
    assert preview.status_code == status.HTTP_410_GONE


def test_invite_for_specific_did(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    invite_id = _create_invite(client, auth_headers, conversation_id, forDid=DAVE).json()["invite"]["id"]

    wrong = client.post(f"/api/v1/invites/{invite_id}", headers=auth_headers(ERIN))
    right = client.post(f"/api/v1/invites/{invite_id}", headers=auth_headers(DAVE))
    assert wrong.status_code == status.HTTP_403_FORBIDDEN
    assert right.status_code == status.HTTP_200_OK


def test_zero_hour_invite_is_already_expired(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    created = _create_invite(client, auth_headers, conversation_id, expiresInHours=0).json()
    assert created["invite"]["state"] == "expired"
    invite_id = created["invite"]["id"]

    preview = client.get(f"/api/v1/invites/{invite_id}")
    assert preview.status_code == status.HTTP_410_GONE
    assert preview.json() == {"detail": "Invite has expired", "reason": "expired"}

    redeem = client.post(f"/api/v1/invites/{invite_id}", headers=auth_headers(DAVE))
    assert redeem.status_code == status.HTTP_410_GONE


def test_revoke_blocks_redemption(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    invite_id = _create_invite(client, auth_headers, conversation_id).json()["invite"]["id"]

    revoked = client.delete(f"/api/v1/invites/{invite_id}", headers=auth_headers(ALICE))
    assert revoked.status_code == status.HTTP_200_OK
    assert revoked.json() == {"revoked": True}

    again = client.delete(f"/api/v1/invites/{invite_id}", headers=auth_headers(ALICE))
    assert again.status_code == status.HTTP_200_OK

    redeem = client.post(f"/api/v1/invites/{invite_id}", headers=auth_headers(DAVE))
    assert redeem.status_code == status.HTTP_410_GONE
    assert redeem.json()["reason"] == "revoked"

    invites = client.get(
        "/api/v1/invites",
        params={"conversationId": conversation_id},
        headers=auth_headers(ALICE),
    ).json()["invites"]
    assert invites == []


def test_revoke_permissions(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    invite_id = _create_invite(client, auth_headers, conversation_id).json()["invite"]["id"]

    member = client.delete(f"/api/v1/invites/{invite_id}", headers=auth_headers(BOB))
    outsider = client.delete(f"/api/v1/invites/{invite_id}", headers=auth_headers(DAVE))
    assert member.status_code == status.HTTP_403_FORBIDDEN
    assert outsider.status_code == status.HTTP_404_NOT_FOUND


def test_admin_creator_can_revoke_after_demotion(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    client.patch(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": BOB, "role": "admin"},
        headers=auth_headers(ALICE),
    )
    invite_id = _create_invite(client, auth_headers, conversation_id, did=BOB).json()["invite"]["id"]
    client.patch(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": BOB, "role": "member"},
        headers=auth_headers(ALICE),
    )

    response = client.delete(f"/api/v1/invites/{invite_id}", headers=auth_headers(BOB))
    assert response.status_code == status.HTTP_200_OK


def test_list_invites_requires_admin(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    _create_invite(client, auth_headers, conversation_id)
    _create_invite(client, auth_headers, conversation_id, maxUses=5)

    listing = client.get(
        "/api/v1/invites",
        params={"conversationId": conversation_id},
        headers=auth_headers(ALICE),
    )
    assert listing.status_code == status.HTTP_200_OK
    assert len(listing.json()["invites"]) == 2

    denied = client.get(
        "/api/v1/invites",
        params={"conversationId": conversation_id},
        headers=auth_headers(BOB),
    )
    assert denied.status_code == status.HTTP_403_FORBIDDEN

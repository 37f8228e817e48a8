# tests/v1/test_participants.py
"""Tests for participant management endpoints."""

from fastapi import status

from tests.conftest import ALICE, BOB, CAROL, DAVE


def _system_texts(client, auth_headers, conversation_id, did=ALICE) -> list[str]:
    messages = client.get(
        f"/api/v1/conversations/{conversation_id}/messages",
        headers=auth_headers(did),
    ).json()["messages"]
    return [m["content"]["text"] for m in messages if m["contentType"] == "system"]


def _promote(client, auth_headers, conversation_id, did, role) -> None:
    response = client.patch(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": did, "role": role},
        headers=auth_headers(ALICE),
    )
    assert response.status_code == status.HTTP_200_OK, response.text


def test_list_participants(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB, CAROL])
    response = client.get(
        f"/api/v1/conversations/{conversation_id}/participants",
        headers=auth_headers(CAROL),
    )
    assert response.status_code == status.HTTP_200_OK
    participants = response.json()["participants"]
    assert {p["did"] for p in participants} == {ALICE, BOB, CAROL}
    bob = next(p for p in participants if p["did"] == BOB)
    assert bob["invitedBy"] == ALICE
    assert bob["muted"] is False
    assert bob["trustExtendedTo"] == []


def test_list_participants_hidden_from_outsiders(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    response = client.get(
        f"/api/v1/conversations/{conversation_id}/participants",
        headers=auth_headers(DAVE),
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_owner_adds_participant(client, auth_headers, create_group, publisher) -> None:
    conversation_id = create_group(ALICE, [BOB])
    response = client.post(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": DAVE},
        headers=auth_headers(ALICE),
    )
    assert response.status_code == status.HTTP_201_CREATED
    participant = response.json()["participant"]
    assert participant["did"] == DAVE
    assert participant["role"] == "member"
    assert f"{ALICE} added {DAVE}" in _system_texts(client, auth_headers, conversation_id)
    assert publisher.of_type("participant.added")[0][2]["did"] == DAVE


def test_add_existing_participant_conflicts(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    response = client.post(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": BOB},
        headers=auth_headers(ALICE),
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"] == "Already a participant"


def test_member_cannot_add(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    response = client.post(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": DAVE},
        headers=auth_headers(BOB),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_admin_can_only_add_lower_roles(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    _promote(client, auth_headers, conversation_id, BOB, "admin")

    peer = client.post(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": DAVE, "role": "admin"},
        headers=auth_headers(BOB),
    )
    assert peer.status_code == status.HTTP_403_FORBIDDEN

    member = client.post(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": DAVE, "role": "readonly"},
        headers=auth_headers(BOB),
    )
    assert member.status_code == status.HTTP_201_CREATED
    assert member.json()["participant"]["role"] == "readonly"


def test_add_rejects_owner_and_unknown_roles(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    for role in ("owner", "superuser"):
        response = client.post(
            f"/api/v1/conversations/{conversation_id}/participants",
            json={"did": DAVE, "role": role},
            headers=auth_headers(ALICE),
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_direct_membership_is_fixed(client, auth_headers) -> None:
    conversation_id = client.post(
        "/api/v1/conversations",
        json={"type": "direct", "participantDids": [BOB]},
        headers=auth_headers(ALICE),
    ).json()["conversation"]["id"]

    added = client.post(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": CAROL},
        headers=auth_headers(ALICE),
    )
    left = client.delete(
        f"/api/v1/conversations/{conversation_id}/participants",
        params={"did": BOB},
        headers=auth_headers(BOB),
    )
    assert added.status_code == status.HTTP_400_BAD_REQUEST
    assert left.status_code == status.HTTP_400_BAD_REQUEST


def test_owner_changes_role(client, auth_headers, create_group, publisher) -> None:
    conversation_id = create_group(ALICE, [BOB])
    _promote(client, auth_headers, conversation_id, BOB, "admin")

    detail = client.get(f"/api/v1/conversations/{conversation_id}", headers=auth_headers(BOB)).json()
    assert detail["myRole"] == "admin"
    assert (
        f"{ALICE} changed {BOB}'s role from member to admin"
        in _system_texts(client, auth_headers, conversation_id)
    )
    assert publisher.of_type("participant.role_changed")


def test_only_owner_changes_roles(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB, CAROL])
    _promote(client, auth_headers, conversation_id, BOB, "admin")

    response = client.patch(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": CAROL, "role": "readonly"},
        headers=auth_headers(BOB),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "Only the owner can change roles"


def test_role_change_cannot_grant_owner_or_target_self(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    grant = client.patch(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": BOB, "role": "owner"},
        headers=auth_headers(ALICE),
    )
    own = client.patch(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": ALICE, "role": "member"},
        headers=auth_headers(ALICE),
    )
    missing = client.patch(
        f"/api/v1/conversations/{conversation_id}/participants",
        json={"did": DAVE, "role": "member"},
        headers=auth_headers(ALICE),
    )
    assert grant.status_code == status.HTTP_400_BAD_REQUEST
    assert own.status_code == status.HTTP_403_FORBIDDEN
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_member_cannot_remove_member_but_owner_can(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB, CAROL])
    denied = client.delete(
        f"/api/v1/conversations/{conversation_id}/participants",
        params={"did": BOB},
        headers=auth_headers(CAROL),
    )
    assert denied.status_code == status.HTTP_403_FORBIDDEN

    members = client.get(
        f"/api/v1/conversations/{conversation_id}/participants",
        headers=auth_headers(ALICE),
    ).json()["participants"]
    assert BOB in {p["did"] for p in members}

    removed = client.delete(
        f"/api/v1/conversations/{conversation_id}/participants",
        params={"did": BOB},
        headers=auth_headers(ALICE),
    )
    assert removed.status_code == status.HTTP_200_OK
    texts = _system_texts(client, auth_headers, conversation_id, did=CAROL)
    assert f"{ALICE} removed {BOB}" in texts


def test_owner_removes_member(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB, CAROL])
    response = client.delete(
        f"/api/v1/conversations/{conversation_id}/participants",
        params={"did": BOB},
        headers=auth_headers(ALICE),
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"removed": True}
    assert f"{ALICE} removed {BOB}" in _system_texts(client, auth_headers, conversation_id)

    after = client.get(f"/api/v1/conversations/{conversation_id}", headers=auth_headers(BOB))
    assert after.status_code == status.HTTP_404_NOT_FOUND


def test_admin_cannot_remove_peer_admin(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB, CAROL])
    _promote(client, auth_headers, conversation_id, BOB, "admin")
    _promote(client, auth_headers, conversation_id, CAROL, "admin")

    response = client.delete(
        f"/api/v1/conversations/{conversation_id}/participants",
        params={"did": CAROL},
        headers=auth_headers(BOB),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_member_leaves(client, auth_headers, create_group, publisher) -> None:
    conversation_id = create_group(ALICE, [BOB])
    response = client.delete(
        f"/api/v1/conversations/{conversation_id}/participants",
        params={"did": BOB},
        headers=auth_headers(BOB),
    )
    assert response.status_code == status.HTTP_200_OK
    assert f"{BOB} left the group" in _system_texts(client, auth_headers, conversation_id)
    assert publisher.of_type("participant.removed")[0][2]["left"] is True


def test_owner_cannot_leave(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    response = client.delete(
        f"/api/v1/conversations/{conversation_id}/participants",
        params={"did": ALICE},
        headers=auth_headers(ALICE),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_remove_unknown_participant(client, auth_headers, create_group) -> None:
    conversation_id = create_group(ALICE, [BOB])
    response = client.delete(
        f"/api/v1/conversations/{conversation_id}/participants",
        params={"did": DAVE},
        headers=auth_headers(ALICE),
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Participant not found"

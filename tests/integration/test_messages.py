import datetime as dt

import pytest

from app.models import Match
from app.repositories.matching_repository import canonical_pair
from app.repositories.message_repository import on_message_created, send_message
from tests.fixtures.api import auth_headers


@pytest.fixture
async def test_match(test_session, test_user, test_user2):
    low, high = canonical_pair(test_user.id, test_user2.id)
    match = Match(user1_id=low, user2_id=high)
    test_session.add(match)
    await test_session.commit()
    return match


async def _send(client, match, user, content, **extra):
    return await client.post(
        f"/matches/{match.id}/messages",
        json={"content": content, **extra},
        headers=auth_headers(user),
    )


@pytest.mark.conversations
async def test_latest_message_becomes_match_summary(
    client, test_match, test_user, test_user2
):
    first = await _send(client, test_match, test_user, "hi")
    second = await _send(client, test_match, test_user2, "there")

    assert first.status_code == 201
    assert second.status_code == 201

    response = await client.get("/matches", headers=auth_headers(test_user))
    assert response.status_code == 200
    [item] = response.json()
    assert item["id"] == str(test_match.id)
    assert item["last_message"] == "there"
    assert item["counterpart"]["id"] == str(test_user2.id)


@pytest.mark.conversations
async def test_summary_matches_newest_message_timestamp(
    test_session, test_match, test_user, test_user2
):
    await send_message(test_session, match_id=test_match.id, sender_id=test_user.id, content="hi")
    m2 = await send_message(
        test_session, match_id=test_match.id, sender_id=test_user2.id, content="there"
    )
    await test_session.commit()

    await test_session.refresh(test_match)
    assert test_match.last_message == "there"
    assert test_match.last_message_at.replace(tzinfo=None) == m2.created_at.replace(tzinfo=None)


@pytest.mark.conversations
async def test_older_message_does_not_move_summary_back(test_session, test_match):
    now = dt.datetime.now(dt.timezone.utc)

    assert await on_message_created(
        test_session, match_id=test_match.id, content="newer", created_at=now
    )
    assert not await on_message_created(
        test_session,
        match_id=test_match.id,
        content="older",
        created_at=now - dt.timedelta(seconds=5),
    )
    await test_session.commit()

    await test_session.refresh(test_match)
    assert test_match.last_message == "newer"


@pytest.mark.conversations
async def test_non_member_cannot_post(client, test_match, test_user3):
    response = await _send(client, test_match, test_user3, "let me in")

    assert response.status_code == 403


@pytest.mark.conversations
async def test_sender_must_be_the_caller(client, test_match, test_user, test_user2):
    response = await _send(
        client, test_match, test_user, "spoofed", sender_id=str(test_user2.id)
    )

    assert response.status_code == 403


@pytest.mark.conversations
async def test_blank_message_is_invalid(client, test_match, test_user):
    response = await _send(client, test_match, test_user, "   ")

    assert response.status_code == 400


@pytest.mark.conversations
async def test_messages_are_listed_newest_first(client, test_match, test_user, test_user2):
    for i in range(3):
        await _send(client, test_match, test_user if i % 2 == 0 else test_user2, f"m{i}")

    for member in (test_user, test_user2):
        response = await client.get(
            f"/matches/{test_match.id}/messages", headers=auth_headers(member)
        )

        assert response.status_code == 200
        assert [m["content"] for m in response.json()] == ["m2", "m1", "m0"]


@pytest.mark.conversations
async def test_non_member_cannot_read_messages(client, test_match, test_user3):
    response = await client.get(
        f"/matches/{test_match.id}/messages", headers=auth_headers(test_user3)
    )

    assert response.status_code == 403


@pytest.mark.conversations
async def test_mark_read_only_touches_incoming_messages(
    client, publisher, test_match, test_user, test_user2
):
    one = await _send(client, test_match, test_user, "one")
    two = await _send(client, test_match, test_user, "two")
    await _send(client, test_match, test_user2, "three")

    response = await client.post(
        f"/matches/{test_match.id}/messages/read", headers=auth_headers(test_user2)
    )
    repeat = await client.post(
        f"/matches/{test_match.id}/messages/read", headers=auth_headers(test_user2)
    )

    assert response.status_code == 200
    assert response.json() == {"updated": 2}
    assert repeat.json() == {"updated": 0}

    read_events = publisher.of("messages", "update")
    assert {str(e.record_id) for e in read_events} == {one.json()["id"], two.json()["id"]}
    assert all(e.payload["match_id"] == str(test_match.id) for e in read_events)

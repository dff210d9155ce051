import asyncio

import pytest
from sqlalchemy import func, select

from app.models import Match, Swipe
from app.repositories import swipe_repository
from app.repositories.matching_repository import (
    canonical_pair,
    get_or_create_match,
    resolve_match,
)
from app.repositories.swipe_repository import record_swipe
from app.services.retry import run_in_transaction
from tests.fixtures.api import RecordingPublisher, auth_headers


async def _match_count(session):
    return (await session.execute(select(func.count()).select_from(Match))).scalar_one()


@pytest.mark.matching
async def test_mutual_like_creates_canonical_match(
    client, test_session, publisher, test_user, test_user2
):
    first = await client.post(
        "/swipes",
        json={"target_id": str(test_user2.id), "direction": "like"},
        headers=auth_headers(test_user),
    )
    second = await client.post(
        "/swipes",
        json={"target_id": str(test_user.id), "direction": "super_like"},
        headers=auth_headers(test_user2),
    )

    assert first.json()["match"] is None
    assert second.status_code == 201
    body = second.json()
    assert body["match_created"] is True

    low, high = canonical_pair(test_user.id, test_user2.id)
    assert body["match"]["user1_id"] == str(low)
    assert body["match"]["user2_id"] == str(high)
    assert body["match"]["last_message"] is None

    assert await _match_count(test_session) == 1
    assert len(publisher.of("matches", "insert")) == 1


@pytest.mark.matching
async def test_match_creation_is_idempotent(test_session, test_user, test_user2):
    match, created = await get_or_create_match(
        test_session, user_a_id=test_user.id, user_b_id=test_user2.id
    )
    await test_session.commit()

    again, created_again = await get_or_create_match(
        test_session, user_a_id=test_user2.id, user_b_id=test_user.id
    )
    await test_session.commit()

    assert created is True
    assert created_again is False
    assert again.id == match.id
    assert await _match_count(test_session) == 1


@pytest.mark.matching
async def test_retriggered_resolution_does_not_duplicate(test_session, test_user, test_user2):
    await record_swipe(
        test_session, swiper_id=test_user.id, target_id=test_user2.id, direction="like"
    )
    outcome = await record_swipe(
        test_session, swiper_id=test_user2.id, target_id=test_user.id, direction="like"
    )
    await test_session.commit()

    match, created = await resolve_match(
        test_session, swiper_id=test_user2.id, target_id=test_user.id, direction="like"
    )
    await test_session.commit()

    assert outcome.match_created is True
    assert created is False
    assert match.id == outcome.match.id
    assert await _match_count(test_session) == 1


@pytest.mark.matching
async def test_pass_never_resolves(test_session, test_user, test_user2):
    match, created = await resolve_match(
        test_session, swiper_id=test_user.id, target_id=test_user2.id, direction="pass"
    )

    assert match is None
    assert created is False


@pytest.mark.matching
async def test_concurrent_mutual_likes_create_exactly_one_match(
    test_session_maker, test_session, test_user, test_user2
):
    publisher = RecordingPublisher()

    async def swipe(swiper, target):
        async with test_session_maker() as session:
            return await run_in_transaction(
                session,
                record_swipe,
                publisher=publisher,
                swiper_id=swiper.id,
                target_id=target.id,
                direction="like",
            )

    outcomes = await asyncio.gather(
        swipe(test_user, test_user2),
        swipe(test_user2, test_user),
    )

    assert await _match_count(test_session) == 1
    assert sum(o.match_created for o in outcomes) == 1
    assert len(publisher.of("swipes", "insert")) == 2
    assert len(publisher.of("matches", "insert")) == 1


@pytest.mark.matching
async def test_match_is_visible_to_members_only(
    client, test_session, test_user, test_user2, test_user3
):
    low, high = canonical_pair(test_user.id, test_user2.id)
    match = Match(user1_id=low, user2_id=high)
    test_session.add(match)
    await test_session.commit()

    member = await client.get(f"/matches/{match.id}", headers=auth_headers(test_user2))
    outsider = await client.get(f"/matches/{match.id}", headers=auth_headers(test_user3))

    assert member.status_code == 200
    assert member.json()["counterpart"]["id"] == str(test_user.id)
    assert "email" not in member.json()["counterpart"]
    assert outsider.status_code == 403


@pytest.mark.matching
async def test_match_list_of_another_user_is_forbidden(client, test_user, test_user2):
    response = await client.get(
        f"/users/{test_user2.id}/matches", headers=auth_headers(test_user)
    )

    assert response.status_code == 403


@pytest.mark.matching
async def test_unknown_match_is_not_found(client, test_user):
    response = await client.get(
        "/matches/00000000-0000-0000-0000-000000000000",
        headers=auth_headers(test_user),
    )

    assert response.status_code == 404


@pytest.mark.matching
async def test_failed_resolution_leaves_no_orphan_swipe(
    test_session, test_user, test_user2, monkeypatch
):
    publisher = RecordingPublisher()
    test_session.add(Swipe(swiper_id=test_user2.id, target_id=test_user.id, direction="like"))
    await test_session.commit()

    async def broken_resolve_match(db, **kwargs):
        raise RuntimeError("match insert failed")

    monkeypatch.setattr(swipe_repository, "resolve_match", broken_resolve_match)

    with pytest.raises(RuntimeError):
        await run_in_transaction(
            test_session,
            swipe_repository.record_swipe,
            publisher=publisher,
            swiper_id=test_user.id,
            target_id=test_user2.id,
            direction="like",
        )

    stmt = select(func.count()).select_from(Swipe).where(Swipe.swiper_id == test_user.id)
    assert (await test_session.execute(stmt)).scalar_one() == 0
    assert await _match_count(test_session) == 0
    assert publisher.events == []

from tests.fixtures.api import auth_headers


async def test_swipe_match_message_and_like_flow(
    client, make_post, test_user, test_user2, test_user3
):
    alice, bob, carol = test_user, test_user2, test_user3

    first = await client.post(
        "/swipes",
        json={"target_id": str(bob.id), "direction": "like"},
        headers=auth_headers(alice),
    )
    assert first.status_code == 201
    assert first.json()["match"] is None

    second = await client.post(
        "/swipes",
        json={"target_id": str(alice.id), "direction": "like"},
        headers=auth_headers(bob),
    )
    assert second.status_code == 201
    match = second.json()["match"]
    assert second.json()["match_created"] is True
    assert {match["user1_id"], match["user2_id"]} == {str(alice.id), str(bob.id)}

    sent = await client.post(
        f"/matches/{match['id']}/messages",
        json={"content": "hey"},
        headers=auth_headers(alice),
    )
    assert sent.status_code == 201

    matches = await client.get(f"/users/{alice.id}/matches", headers=auth_headers(alice))
    assert [m["last_message"] for m in matches.json()] == ["hey"]

    post = await make_post(alice, "community post")
    liked = await client.post(f"/posts/{post.id}/likes", headers=auth_headers(carol))
    assert liked.status_code == 201
    after_like = await client.get(f"/posts/{post.id}", headers=auth_headers(carol))
    assert after_like.json()["likes_count"] == 1

    unliked = await client.delete(f"/posts/{post.id}/likes", headers=auth_headers(carol))
    assert unliked.status_code == 204
    after_unlike = await client.get(f"/posts/{post.id}", headers=auth_headers(carol))
    assert after_unlike.json()["likes_count"] == 0

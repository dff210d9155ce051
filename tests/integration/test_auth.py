import datetime as dt

import pytest

from app.errors import AlreadyExists, InvalidArgument
from app.repositories import user_repository
from app.repositories.user_repository import update_user
from app.services.retry import run_in_transaction
from tests.fixtures.api import auth_headers


REGISTRATION = {
    "email": "dana@example.com",
    "password": "correct horse battery",
    "display_name": "Dana",
    "birth_date": "1994-05-17",
    "gender": "non_binary",
    "gender_preference": ["woman", "non_binary"],
}


async def test_register_then_login(client, publisher):
    registered = await client.post("/auth/register", json=REGISTRATION)

    assert registered.status_code == 201
    token = registered.json()["access_token"]
    assert registered.json()["token_type"] == "bearer"
    assert len(publisher.of("users", "insert")) == 1

    me = await client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "dana@example.com"
    assert me.json()["gender_preference"] == ["woman", "non_binary"]

    login = await client.post(
        "/auth/login",
        json={"email": "dana@example.com", "password": "correct horse battery"},
    )
    assert login.status_code == 200
    assert login.json()["user_id"] == registered.json()["user_id"]


async def test_duplicate_email_is_rejected(client):
    await client.post("/auth/register", json=REGISTRATION)
    again = await client.post("/auth/register", json=REGISTRATION)

    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "already_exists"


async def test_wrong_password(client):
    await client.post("/auth/register", json=REGISTRATION)

    response = await client.post(
        "/auth/login",
        json={"email": "dana@example.com", "password": "wrong password"},
    )

    assert response.status_code == 401


async def test_invalid_token_is_rejected(client):
    response = await client.get("/users/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


async def test_public_profile_hides_private_fields(client, test_user, test_user2):
    response = await client.get(f"/users/{test_user2.id}", headers=auth_headers(test_user))

    assert response.status_code == 200
    assert response.json()["display_name"] == "Bob"
    assert "email" not in response.json()


async def test_profile_update_is_owner_only(client, test_user, test_user2):
    own = await client.patch(
        f"/users/{test_user.id}",
        json={"bio": "likes hiking", "city": "Lisbon"},
        headers=auth_headers(test_user),
    )
    foreign = await client.patch(
        f"/users/{test_user2.id}",
        json={"bio": "hacked"},
        headers=auth_headers(test_user),
    )

    assert own.status_code == 200
    assert own.json()["bio"] == "likes hiking"
    assert own.json()["city"] == "Lisbon"
    assert foreign.status_code == 403


async def test_required_profile_fields_cannot_be_nulled(client, test_user):
    headers = auth_headers(test_user)

    for field in ("display_name", "gender", "gender_preference", "interests"):
        response = await client.patch(
            f"/users/{test_user.id}", json={field: None}, headers=headers
        )
        assert response.status_code == 400, field
        assert response.json()["detail"]["code"] == "invalid_argument"

    me = await client.get("/users/me", headers=headers)
    assert me.json()["display_name"] == "Alice"


async def test_nullable_profile_field_can_be_cleared(client, test_user):
    headers = auth_headers(test_user)
    await client.patch(f"/users/{test_user.id}", json={"bio": "hello"}, headers=headers)

    response = await client.patch(f"/users/{test_user.id}", json={"bio": None}, headers=headers)

    assert response.status_code == 200
    assert response.json()["bio"] is None


async def test_profile_details_round_trip(client, test_user, test_user2):
    payload = {
        "phone": "+351 910 000 000",
        "height_cm": 172,
        "job_title": "Designer",
        "company": "Studio",
        "education": "BA Fine Arts",
        "lifestyle": {"drinking": "sometimes", "smoking": "never", "diet": "vegetarian"},
        "photo_urls": ["https://cdn.example.com/a.jpg", "https://cdn.example.com/b.jpg"],
        "interests": ["climbing", "jazz", "cooking"],
        "prompts": [
            {"prompt_id": "ideal_weekend", "prompt_text": "My ideal weekend", "answer": "Hiking"},
        ],
    }

    updated = await client.patch(
        f"/users/{test_user.id}", json=payload, headers=auth_headers(test_user)
    )
    assert updated.status_code == 200

    public = await client.get(f"/users/{test_user.id}", headers=auth_headers(test_user2))
    body = public.json()
    assert body["height_cm"] == 172
    assert body["lifestyle"]["drinking"] == "sometimes"
    assert body["lifestyle"]["children"] is None
    assert body["interests"] == ["climbing", "jazz", "cooking"]
    assert body["prompts"][0]["answer"] == "Hiking"
    assert body["is_verified"] is False
    assert body["is_premium"] is False
    # contact details stay private
    assert "phone" not in body
    assert updated.json()["phone"] == "+351 910 000 000"


async def test_profile_limits(client, test_user):
    headers = auth_headers(test_user)

    photos = await client.patch(
        f"/users/{test_user.id}",
        json={"photo_urls": [f"https://cdn.example.com/{i}.jpg" for i in range(7)]},
        headers=headers,
    )
    lifestyle = await client.patch(
        f"/users/{test_user.id}",
        json={"lifestyle": {"smoking": "always"}},
        headers=headers,
    )

    assert photos.status_code == 400
    assert lifestyle.status_code == 400


async def test_status_flags_are_not_self_editable(test_session, test_user):
    with pytest.raises(InvalidArgument):
        await update_user(test_session, user_id=test_user.id, is_premium=True)
    await test_session.rollback()


async def test_concurrent_registration_with_same_email(test_session, test_user, monkeypatch):
    # the other registration committed between the email check and the insert
    async def no_existing_user(db, email):
        return None

    monkeypatch.setattr(user_repository, "get_user_by_email", no_existing_user)

    with pytest.raises(AlreadyExists):
        await run_in_transaction(
            test_session,
            user_repository.create_user,
            email=test_user.email,
            password_hash=None,
            display_name="Copycat",
            birth_date=dt.date(1990, 1, 1),
            gender="man",
            gender_preference=["woman"],
        )

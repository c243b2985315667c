from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.core.errors import ConflictError, NotFoundError
from app.core.security import hash_token
from app.models.users import Invitation, User
from app.services import user_service
from app.tests.helpers import BASE_TIME, TEST_PASSWORD, TEST_PASSWORD_HASH


def _pending_user(username: str, email: str | None = None) -> User:
    return User(
        username=username,
        email=email or f"{username}@example.com",
        password_hash=TEST_PASSWORD_HASH,
    )


def _invitation_count(db_session) -> int:
    return db_session.execute(select(func.count()).select_from(Invitation)).scalar_one()


def test_create_and_invite_stores_pending_user_and_token_hash(db_session):
    expires_at = BASE_TIME + timedelta(hours=72)

    user = user_service.create_and_invite(
        db_session, _pending_user("alice"), "raw-token", expires_at
    )

    assert user.id is not None
    assert user.is_active is False
    assert user.created_at is not None

    invitation = db_session.execute(select(Invitation)).scalar_one()
    assert invitation.user_id == user.id
    assert invitation.token_hash == hash_token("raw-token")
    assert invitation.token_hash != "raw-token"
    assert invitation.expires_at == expires_at


def test_duplicate_username_conflicts_and_writes_nothing(db_session):
    expires_at = BASE_TIME + timedelta(hours=72)
    user_service.create_and_invite(db_session, _pending_user("alice"), "t1", expires_at)

    with pytest.raises(ConflictError):
        user_service.create_and_invite(
            db_session,
            _pending_user("alice", email="other@example.com"),
            "t2",
            expires_at,
        )

    users = db_session.execute(select(User)).scalars().all()
    assert [u.email for u in users] == ["alice@example.com"]
    assert _invitation_count(db_session) == 1


def test_duplicate_email_conflicts(db_session):
    expires_at = BASE_TIME + timedelta(hours=72)
    user_service.create_and_invite(db_session, _pending_user("alice"), "t1", expires_at)

    with pytest.raises(ConflictError):
        user_service.create_and_invite(
            db_session,
            _pending_user("alice2", email="alice@example.com"),
            "t2",
            expires_at,
        )

    assert _invitation_count(db_session) == 1


def test_activate_succeeds_once_per_token(db_session):
    user = user_service.create_and_invite(
        db_session, _pending_user("alice"), "raw-token", BASE_TIME + timedelta(hours=72)
    )

    activated = user_service.activate(db_session, "raw-token", now=BASE_TIME)

    assert activated.id == user.id
    assert activated.is_active is True
    assert _invitation_count(db_session) == 0

    with pytest.raises(NotFoundError):
        user_service.activate(db_session, "raw-token", now=BASE_TIME)


def test_activate_rejects_expired_token(db_session):
    user_service.create_and_invite(
        db_session, _pending_user("alice"), "raw-token", BASE_TIME
    )

    with pytest.raises(NotFoundError):
        user_service.activate(
            db_session, "raw-token", now=BASE_TIME + timedelta(seconds=1)
        )

    assert db_session.execute(select(User.is_active)).scalar_one() is False
    assert _invitation_count(db_session) == 1


def test_activate_rejects_unknown_token(db_session):
    with pytest.raises(NotFoundError):
        user_service.activate(db_session, "never-issued", now=BASE_TIME)


def test_activate_purges_every_invitation_of_the_user(db_session):
    user = user_service.create_and_invite(
        db_session, _pending_user("alice"), "first", BASE_TIME + timedelta(hours=1)
    )
    db_session.add(
        Invitation(
            token_hash=hash_token("second"),
            user_id=user.id,
            expires_at=BASE_TIME + timedelta(hours=2),
        )
    )
    db_session.commit()

    user_service.activate(db_session, "second", now=BASE_TIME)

    assert _invitation_count(db_session) == 0
    with pytest.raises(NotFoundError):
        user_service.activate(db_session, "first", now=BASE_TIME)


def test_get_by_email_only_returns_active_users(db_session, make_user):
    make_user("pending", is_active=False)
    active = make_user("active")

    with pytest.raises(NotFoundError):
        user_service.get_by_email(db_session, "pending@example.com")

    assert user_service.get_by_email(db_session, "active@example.com").id == active.id


def test_get_by_id_returns_pending_users_too(db_session, make_user):
    pending = make_user("pending", is_active=False)

    assert user_service.get_by_id(db_session, pending.id).username == "pending"

    with pytest.raises(NotFoundError):
        user_service.get_by_id(db_session, pending.id + 100)


def test_authenticate_checks_password(db_session, make_user):
    user = make_user("alice")

    assert user_service.authenticate(db_session, user.email, TEST_PASSWORD).id == user.id

    with pytest.raises(NotFoundError):
        user_service.authenticate(db_session, user.email, "wrong-password")


def test_get_user_profile(auth_client, make_user):
    client, _ = auth_client
    other = make_user("bob")

    response = client.get(f"/v1/users/{other.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == other.id
    assert body["username"] == "bob"
    assert "password_hash" not in body


def test_get_unknown_user_returns_404(auth_client):
    client, _ = auth_client

    response = client.get("/v1/users/9999")

    assert response.status_code == 404
    assert response.json() == {"detail": "record not found"}


def test_users_routes_require_authentication(client, test_user):
    response = client.get(f"/v1/users/{test_user.id}")

    assert response.status_code == 401

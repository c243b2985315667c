import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

from collections.abc import Callable, Generator  # noqa: E402
from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import StaticPool  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.core.database import Base, build_engine, get_db  # noqa: E402
from app.core.security import create_access  # noqa: E402
from app.main import app  # noqa: E402
from app.models.posts import Post  # noqa: E402
from app.models.users import Follower, User  # noqa: E402
from app.services import post_service  # noqa: E402
from app.tests.helpers import BASE_TIME, TEST_PASSWORD_HASH, FakeMailer  # noqa: E402
from app.workers.mailer import get_mailer  # noqa: E402


@pytest.fixture
def engine():
    engine = build_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session]:
    TestingSessionLocal = sessionmaker(
        bind=engine, autoflush=False, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def client(db_session, mailer) -> Generator[TestClient]:
    # Override FastAPI's get_db to use our testing session
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session) -> Callable[..., User]:
    def _make_user(username: str, *, is_active: bool = True) -> User:
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=TEST_PASSWORD_HASH,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_post(db_session) -> Callable[..., Post]:
    def _make_post(
        user: User,
        title: str,
        *,
        content: str = "Some content",
        tags: list[str] | None = None,
        minutes: int = 0,
    ) -> Post:
        post = Post(user_id=user.id, title=title, content=content, tags=tags or [])
        return post_service.create_post(
            db_session, post, now=BASE_TIME + timedelta(minutes=minutes)
        )

    return _make_post


@pytest.fixture
def add_follow(db_session) -> Callable[[User, User], None]:
    def _add_follow(follower: User, followed: User) -> None:
        db_session.add(Follower(follower_id=follower.id, user_id=followed.id))
        db_session.commit()

    return _add_follow


@pytest.fixture
def test_user(make_user) -> User:
    return make_user("tester")


@pytest.fixture
def auth_client(client, test_user) -> tuple[TestClient, User]:
    token = create_access(str(test_user.id))
    client.cookies.set("access_token", token, path="/")
    return client, test_user

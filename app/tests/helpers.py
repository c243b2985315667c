from collections.abc import Callable
from datetime import UTC, datetime

from app.core.security import create_access, hash_password
from app.models.users import User

TEST_PASSWORD = "password123"
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)
BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


class FakeMailer:
    def __init__(self) -> None:
        self.sent: list[tuple[str, Callable[..., None], tuple]] = []

    def submit(self, label: str, send: Callable[..., None], *args, **kwargs) -> None:
        self.sent.append((label, send, args))


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access(str(user.id))}"}

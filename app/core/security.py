import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from app.core.config import get_settings

ph = PasswordHasher(time_cost=3, memory_cost=64 * 1024, parallelism=2)
settings = get_settings()
JWT_SECRET = settings.jwt_secret
JWT_ALGO = settings.jwt_algo
JWT_ISSUER = settings.jwt_issuer
ACCESS_MIN = settings.access_min


def generate_raw_token(nbytes: int = 32) -> str:
    return secrets.token_urlsafe(nbytes)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def hash_password(plain: str) -> str:
    return ph.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return ph.verify(hashed, plain)
    except (VerificationError, InvalidHashError):
        return False


def create_token(sub: str, ttl: timedelta) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": JWT_ISSUER,
        "aud": JWT_ISSUER,
        "iat": int(now.timestamp()),
        "nbf": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def create_access(sub: str) -> str:
    return create_token(sub, timedelta(minutes=ACCESS_MIN))


def decode_access(raw_token: str) -> dict[str, Any]:
    return jwt.decode(
        raw_token,
        JWT_SECRET,
        algorithms=[JWT_ALGO],
        audience=JWT_ISSUER,
        issuer=JWT_ISSUER,
    )

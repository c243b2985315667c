import jwt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import NotFoundError
from app.core.security import decode_access
from app.models.posts import Post
from app.models.users import User
from app.services import post_service, user_service


def _extract_bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    scheme, _, param = auth_header.strip().partition(" ")
    if scheme.lower() != "bearer" or not param:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )
    return param.strip()


def _authenticate_token(raw_token: str, db: Session) -> User:
    try:
        payload = decode_access(raw_token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    try:
        user = user_service.get_by_id(db, user_id)
    except NotFoundError:
        user = None
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    raw_token = _extract_bearer_token(request) or request.cookies.get("access_token")
    if not raw_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return _authenticate_token(raw_token, db)


def get_post_or_404(post_id: int, db: Session = Depends(get_db)) -> Post:
    return post_service.get_post(db, post_id)


def get_owned_post(
    post: Post = Depends(get_post_or_404),
    user: User = Depends(get_current_user),
) -> Post:
    if post.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to modify this post",
        )
    return post


def get_target_user(user_id: int, db: Session = Depends(get_db)) -> User:
    return user_service.get_by_id(db, user_id)

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_target_user
from app.core.database import get_db
from app.models.users import User
from app.schemas.feed import FeedQuery, SortDirection
from app.schemas.posts import FeedPostOut, PostOut
from app.schemas.users import UserOut
from app.services import feed_service, follower_service

router = APIRouter(
    prefix="/v1/users",
    tags=["users"],
    dependencies=[Depends(get_current_user)],
)


def get_feed_query(
    limit: int = Query(default=20, description="Page size, 1-20"),
    offset: int = Query(default=0),
    sort: SortDirection = Query(default=SortDirection.desc),
    search: str | None = Query(default=None, description="Matches title or content"),
    tags: list[str] | None = Query(default=None, description="Posts must carry every tag"),
    since: datetime | None = Query(default=None),
    until: datetime | None = Query(default=None),
) -> FeedQuery:
    try:
        return FeedQuery(
            limit=limit,
            offset=offset,
            sort=sort,
            search=search,
            tags=tags,
            since=since,
            until=until,
        )
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False))


# declared before /{user_id} so "feed" is not parsed as an id
@router.get("/feed", response_model=list[FeedPostOut])
def get_user_feed(
    fq: FeedQuery = Depends(get_feed_query),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    feed = feed_service.get_user_feed(db, user.id, fq)
    return [
        FeedPostOut(
            **PostOut.model_validate(item.post).model_dump(),
            comments_count=item.comments_count,
        )
        for item in feed
    ]


@router.get("/{user_id}", response_model=UserOut)
def get_user(target: User = Depends(get_target_user)):
    return target


@router.put("/{user_id}/follow", status_code=status.HTTP_204_NO_CONTENT)
def follow_user(
    target: User = Depends(get_target_user),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    if target.id == user.id:
        raise HTTPException(status_code=400, detail="You cannot follow yourself")
    follower_service.follow(db, user.id, target.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{user_id}/unfollow", status_code=status.HTTP_204_NO_CONTENT)
def unfollow_user(
    target: User = Depends(get_target_user),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Response:
    follower_service.unfollow(db, user.id, target.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

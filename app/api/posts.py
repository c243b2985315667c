from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_owned_post, get_post_or_404
from app.core.database import get_db
from app.models.posts import Comment, Post
from app.models.users import User
from app.schemas.posts import (
    CommentCreate,
    CommentOut,
    PostCreate,
    PostDetailOut,
    PostOut,
    PostUpdate,
)
from app.services import comment_service, post_service

router = APIRouter(
    prefix="/v1/posts",
    tags=["posts"],
    dependencies=[Depends(get_current_user)],
)


@router.post("/", response_model=PostOut, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: PostCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    post = Post(
        user_id=user.id,
        title=payload.title,
        content=payload.content,
        tags=payload.tags,
    )
    return post_service.create_post(db, post)


@router.get("/{post_id}", response_model=PostDetailOut)
def get_post(
    post: Post = Depends(get_post_or_404),
    db: Session = Depends(get_db),
):
    comments = comment_service.list_post_comments(db, post.id)
    return PostDetailOut(
        **PostOut.model_validate(post).model_dump(),
        comments=[CommentOut.model_validate(c) for c in comments],
    )


@router.patch("/{post_id}", response_model=PostOut)
def update_post(
    payload: PostUpdate,
    post: Post = Depends(get_owned_post),
    db: Session = Depends(get_db),
):
    if payload.title is not None:
        post.title = payload.title
    if payload.content is not None:
        post.content = payload.content
    if payload.tags is not None:
        post.tags = payload.tags
    if payload.version is not None:
        post.version = payload.version
    return post_service.update_post(db, post)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post: Post = Depends(get_owned_post),
    db: Session = Depends(get_db),
) -> Response:
    post_service.delete_post(db, post.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{post_id}/comments",
    response_model=CommentOut,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    payload: CommentCreate,
    post: Post = Depends(get_post_or_404),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    comment = Comment(post_id=post.id, user_id=user.id, content=payload.content)
    comment = comment_service.create_comment(db, comment)
    return CommentOut.model_validate(comment)

from app.core.database import Base
from app.models.posts import Comment, Post
from app.models.users import Follower, Invitation, User

__all__ = [
    "Base",
    "Comment",
    "Follower",
    "Invitation",
    "Post",
    "User",
]

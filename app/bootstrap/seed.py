import logging
import random
import sys
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import SessionLocal, engine
from app.core.security import generate_raw_token, hash_password
from app.models import Base
from app.models.posts import Comment, Post
from app.models.users import User
from app.services import comment_service, follower_service, post_service, user_service

logger = logging.getLogger(__name__)

SEED_PASSWORD = "password"
FOLLOWS_PER_USER = 3

USERNAMES = [
    "alice", "bob", "charlie", "dave", "eve", "frank", "grace", "heidi",
    "ivan", "judy", "karl", "laura", "mallory", "nina", "oscar", "peggy",
    "quinn", "rachel", "steve", "trent", "ursula", "victor", "wendy", "xander",
    "yvonne", "zack", "amber", "brian", "carol", "doug", "eric", "fiona",
    "george", "hannah", "ian", "jessica", "kevin", "lisa", "mike", "natalie",
    "oliver", "peter", "queen", "ron", "susan", "tim", "uma", "vicky",
    "walter", "xenia", "yasmin", "zoe",
]

POSTS = [
    ("The Power of Habit", "Develop good habits that stick and transform your life."),
    ("Embracing Minimalism", "Declutter your home and your mind with a minimalist lifestyle."),
    ("Healthy Eating Tips", "Eat healthy on a budget without sacrificing flavor."),
    ("Travel on a Budget", "Seeing the world does not have to be expensive."),
    ("Mindfulness Meditation", "Reduce stress and improve your well-being with meditation."),
    ("Boost Your Productivity", "Simple and effective strategies to get more done."),
    ("Home Office Setup", "Set up a home office that is efficient and comfortable."),
    ("Digital Detox", "Reconnect with the real world and improve your mental health."),
    ("Gardening Basics", "Start your gardening journey with these tips for beginners."),
    ("DIY Home Projects", "Transform your home with fun and easy DIY projects."),
    ("Yoga for Beginners", "Beginner-friendly poses to stay fit and flexible."),
    ("Sustainable Living", "Eco-friendly choices that are good for you and the planet."),
    ("Mastering Time Management", "Get more done in less time."),
    ("Exploring Nature", "The benefits of spending time outdoors."),
    ("Simple Cooking Recipes", "Delicious meals that are quick to make."),
    ("Fitness at Home", "Effective workouts that need no gym."),
    ("Personal Finance Tips", "Take control of your finances."),
    ("Creative Writing", "Prompts and exercises to unleash your creativity."),
    ("Mental Health Awareness", "Mental health matters as much as physical health."),
    ("Learning New Skills", "Ideas to make learning fun and rewarding."),
]

TAGS = [
    "Self Improvement", "Minimalism", "Health", "Travel", "Mindfulness",
    "Productivity", "Home Office", "Digital Detox", "Gardening", "DIY",
    "Yoga", "Sustainability", "Time Management", "Nature", "Cooking",
    "Fitness", "Personal Finance", "Writing", "Mental Health", "Learning",
]

COMMENTS = [
    "Great post! Thanks for sharing.",
    "I completely agree with your thoughts.",
    "Thanks for the tips, very helpful.",
    "Interesting perspective, I hadn't considered that.",
    "Thanks for sharing your experience.",
    "Well written, I enjoyed reading this.",
    "This is very insightful, thanks for posting.",
    "Great advice, I'll definitely try that.",
    "I love this, very inspirational.",
    "Thanks for the information, very useful.",
]


@dataclass(frozen=True)
class SeedSummary:
    users: int
    follows: int
    posts: int
    comments: int


def _has_any_users(db: Session) -> bool:
    return db.execute(select(User.id).limit(1)).first() is not None


def _seed_users(db: Session, now: datetime) -> list[User]:
    password_hash = hash_password(SEED_PASSWORD)
    expires_at = now + timedelta(hours=1)
    users = []
    for username in USERNAMES:
        raw_token = generate_raw_token(32)
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=password_hash,
        )
        user_service.create_and_invite(db, user, raw_token, expires_at)
        users.append(user_service.activate(db, raw_token, now=now))
    return users


def _seed_follows(db: Session, users: list[User], rng: random.Random) -> int:
    count = 0
    for user in users:
        others = [u for u in users if u.id != user.id]
        for followed in rng.sample(others, k=min(FOLLOWS_PER_USER, len(others))):
            follower_service.follow(db, user.id, followed.id)
            count += 1
    return count


def _seed_posts(
    db: Session, users: list[User], rng: random.Random, now: datetime
) -> list[Post]:
    posts = []
    for i, (title, content) in enumerate(POSTS):
        post = Post(
            user_id=rng.choice(users).id,
            title=title,
            content=content,
            tags=rng.sample(TAGS, k=rng.randint(2, 4)),
        )
        created_at = now - timedelta(hours=len(POSTS) - i)
        posts.append(post_service.create_post(db, post, now=created_at))
    return posts


def _seed_comments(
    db: Session, users: list[User], posts: list[Post], rng: random.Random
) -> int:
    count = 0
    for post in posts:
        for n in range(rng.randint(2, 5)):
            comment = Comment(
                post_id=post.id,
                user_id=rng.choice(users).id,
                content=rng.choice(COMMENTS),
            )
            created_at = post.created_at + timedelta(minutes=n + 1)
            comment_service.create_comment(db, comment, now=created_at)
            count += 1
    return count


def seed_database(
    db: Session,
    *,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> SeedSummary | None:
    """
    Fill an empty database with demo users, follows, posts and comments.

    Every seeded user is active and logs in with ``SEED_PASSWORD``. Returns
    ``None`` without writing anything when users already exist.
    """
    if _has_any_users(db):
        logger.info("Seed skipped: database already has users")
        return None

    rng = rng or random.Random()
    now = now or datetime.now(UTC)

    users = _seed_users(db, now)
    follows = _seed_follows(db, users, rng)
    posts = _seed_posts(db, users, rng, now)
    comments = _seed_comments(db, users, posts, rng)

    summary = SeedSummary(
        users=len(users), follows=follows, posts=len(posts), comments=comments
    )
    logger.info(
        "Seeded %s users, %s follows, %s posts and %s comments",
        summary.users,
        summary.follows,
        summary.posts,
        summary.comments,
    )
    return summary


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        stream=sys.stdout,
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_database(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()

import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.api import auth, posts, users
from app.api.errors import register_error_handlers
from app.core.config import get_settings
from app.core.database import engine, ping_database
from app.models import Base
from app.workers.mailer import MailDispatcher

settings = get_settings()

root = logging.getLogger()
if not root.handlers:  # don't double-add in reloads
    h = logging.StreamHandler(sys.stdout)
    h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(h)

root.setLevel(settings.log_level.upper())

logger = logging.getLogger("app.http")


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    mailer = MailDispatcher(max_workers=settings.mail_workers)
    app.state.mailer = mailer
    try:
        yield
    finally:
        mailer.shutdown(wait=True)


app = FastAPI(title="Social API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(auth.router)
app.include_router(posts.router)
app.include_router(users.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %s (%.1f ms)",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - start) * 1000,
    )
    return response


@app.get("/v1/health", tags=["health"])
def health_check():
    """Report service status and confirm database connectivity."""
    database_status = "ok" if ping_database() else "error"
    return {
        "status": "ok",
        "env": settings.app_env,
        "database": database_status,
    }

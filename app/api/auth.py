import logging
from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.errors import NotFoundError
from app.core.security import create_access, generate_raw_token, hash_password
from app.models.users import User
from app.schemas.users import (
    ActivateIn,
    LoginIn,
    LoginOut,
    RegisterIn,
    UserOut,
    UserWithToken,
)
from app.services import user_service
from app.services.email_service import build_activation_url, send_invitation_via_smtp
from app.workers.mailer import MailDispatcher, get_mailer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])
settings = get_settings()


@router.post("/register", response_model=UserWithToken, status_code=201)
def register(
    payload: RegisterIn,
    db: Session = Depends(get_db),
    mailer: MailDispatcher = Depends(get_mailer),
):
    user = User(
        username=payload.username.strip(),
        email=payload.email.strip().lower(),
        password_hash=hash_password(payload.password.get_secret_value()),
    )
    raw_token = generate_raw_token(32)
    expires_at = (
        datetime.now(UTC) + timedelta(hours=settings.invite_ttl_hours)
    ).replace(microsecond=0)

    user = user_service.create_and_invite(db, user, raw_token, expires_at)

    mailer.submit(
        f"activation email to {user.email}",
        send_invitation_via_smtp,
        user.email,
        user.username,
        build_activation_url(raw_token),
        expires_at,
    )

    return UserWithToken(**UserOut.model_validate(user).model_dump(), token=raw_token)


@router.put("/activate")
def activate(body: ActivateIn, db: Session = Depends(get_db)):
    user_service.activate(db, body.token.get_secret_value())
    return {"message": "User activated successfully"}


@router.post("/login", response_model=LoginOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    try:
        user = user_service.authenticate(
            db,
            payload.email.strip().lower(),
            payload.password.get_secret_value(),
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials"
        )

    access = create_access(str(user.id))
    logger.info("User %s logged in", user.id)

    body = LoginOut(token=access, user=UserOut.model_validate(user))
    resp = JSONResponse(body.model_dump(mode="json"))
    resp.headers["Cache-Control"] = "no-store"
    resp.set_cookie(
        key="access_token",
        value=access,
        httponly=True,
        secure=settings.app_env == "production",
        samesite="lax",
        max_age=settings.access_min * 60,
        path="/",
    )
    return resp

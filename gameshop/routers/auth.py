from fastapi import APIRouter, Depends, HTTPException, Request, Response

from gameshop.auth import (
    Identity, authenticate, create_session, get_identity, register_user,
    revoke_session, session_token_from, update_profile,
)
from gameshop.config import settings
from gameshop.db import SessionLocal
from gameshop.models import User
from gameshop.schemas import LoginIn, RegisterIn, UserOut, UserSelfUpdate

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserOut, status_code=201)
def register(payload: RegisterIn):
    with SessionLocal() as db:
        return register_user(db, payload.username, payload.email, payload.password)


@router.post("/login", response_model=UserOut)
def login(payload: LoginIn, request: Request, response: Response):
    with SessionLocal() as db:
        user = authenticate(db, payload.username_or_email, payload.password)
        token = create_session(
            db, user.id,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
        response.set_cookie(
            settings.session_cookie_name,
            token,
            httponly=True,
            samesite="lax",
            secure=settings.session_cookie_secure,
            max_age=settings.session_ttl_hours * 3600,
        )
        db.refresh(user)
        return user


@router.post("/logout")
def logout(request: Request, response: Response):
    token = session_token_from(request)
    if not token:
        raise HTTPException(status_code=400, detail="No token")
    with SessionLocal() as db:
        revoke_session(db, token)
    response.delete_cookie(settings.session_cookie_name, path="/")
    return {"ok": True}


@router.get("/me", response_model=UserOut)
def me(identity: Identity = Depends(get_identity)):
    with SessionLocal() as db:
        return db.get(User, identity.user_id)


@router.put("/me", response_model=UserOut)
def update_me(payload: UserSelfUpdate, identity: Identity = Depends(get_identity)):
    with SessionLocal() as db:
        return update_profile(db, identity.user_id, payload.username, payload.email)

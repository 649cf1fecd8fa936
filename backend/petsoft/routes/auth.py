"""Sign-up, log-in and log-out."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from sqlmodel import Session

from petsoft.database import get_session
from petsoft.models.user import User
from petsoft.routes.deps import require_caller
from petsoft.services.auth_service import (
    SESSION_USER_KEY,
    CallerIdentity,
    EmailAlreadyRegisteredError,
    authenticate_user,
    sign_up,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth")


class Credentials(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=100)

    @field_validator("password")
    @classmethod
    def validate_password_bytes(cls, v):
        # bcrypt only looks at the first 72 bytes
        if len(v.encode("utf-8")) > 72:
            raise ValueError("password must be at most 72 bytes")
        return v


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    has_access: bool


def _start_session(request: Request, user: User) -> None:
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id


@router.post("/signup", response_model=AccountResponse, status_code=201)
def signup(credentials: Credentials, request: Request, session: Session = Depends(get_session)):
    """Create an account and log it in"""
    try:
        user = sign_up(session, email=credentials.email, password=credentials.password)
    except EmailAlreadyRegisteredError:
        raise HTTPException(status_code=409, detail="Email already exists.")
    _start_session(request, user)
    return user


@router.post("/login", response_model=AccountResponse)
def login(credentials: Credentials, request: Request, session: Session = Depends(get_session)):
    """Log in with email and password"""
    user = authenticate_user(session, email=credentials.email, password=credentials.password)
    if user is None:
        request.session.clear()
        return JSONResponse(status_code=401, content={"message": "Invalid credentials."})
    _start_session(request, user)
    return user


@router.post("/logout")
def logout(request: Request):
    """Drop the session and send the caller to the landing page"""
    request.session.clear()
    return RedirectResponse(url="/", status_code=303)


@router.get("/me", response_model=AccountResponse)
def me(caller: CallerIdentity = Depends(require_caller), session: Session = Depends(get_session)):
    """Current account, including the access flag"""
    user = session.get(User, caller.user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required.")
    return user

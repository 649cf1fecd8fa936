"""
Accounts and session resolution.

Passwords are hashed with bcrypt. Session issuance itself belongs to the
session cookie middleware; this module only decides *who* a stored
``user_id`` refers to and fails closed when it refers to no one.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import bcrypt
from sqlmodel import Session, select

from petsoft.models.user import User

logger = logging.getLogger(__name__)

_BCRYPT_ROUNDS = 10

# Key under which the authenticated user's id lives in the session cookie
SESSION_USER_KEY = "user_id"


class EmailAlreadyRegisteredError(ValueError):
    """Raised when signing up with an email that already has an account."""

    def __init__(self, email: str):
        super().__init__(f"Email already registered: {email}")
        self.email = email


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated caller, resolved once per request."""

    user_id: int
    email: str


def normalize_email(email: str) -> str:
    return email.strip().lower()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored password hash could not be parsed")
        return False


def get_user_by_email(session: Session, email: str) -> Optional[User]:
    return session.exec(select(User).where(User.email == normalize_email(email))).first()


def sign_up(session: Session, *, email: str, password: str) -> User:
    """
    Create a user with a hashed credential.

    Hashing and storage faults are not caught here; they propagate to the
    caller as fatal errors.

    Raises:
        EmailAlreadyRegisteredError: an account with this email exists
    """
    email = normalize_email(email)
    if get_user_by_email(session, email) is not None:
        raise EmailAlreadyRegisteredError(email)

    user = User(email=email, hashed_password=hash_password(password))
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info(f"User {user.id} signed up")
    return user


def authenticate_user(session: Session, *, email: str, password: str) -> Optional[User]:
    """Return the user for valid credentials, None otherwise."""
    user = get_user_by_email(session, email)
    if user is None:
        logger.info("Login failed: no user found")
        return None
    if not verify_password(password, user.hashed_password):
        logger.info(f"Login failed: invalid credentials for user {user.id}")
        return None
    return user


def resolve_caller(session: Session, user_id: Any) -> Optional[CallerIdentity]:
    """
    Resolve a session's stored user id to a caller identity.

    Returns None when there is no id, the id is malformed, or the user
    no longer exists.
    """
    if user_id is None or isinstance(user_id, bool):
        return None
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring malformed session user id: {user_id!r}")
        return None

    user = session.get(User, user_id)
    if user is None:
        logger.warning(f"Session refers to missing user {user_id}")
        return None
    return CallerIdentity(user_id=user.id, email=user.email)

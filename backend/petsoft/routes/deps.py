"""Request-scoped dependencies shared by the routers."""

from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlmodel import Session

from petsoft.database import get_session
from petsoft.services.auth_service import SESSION_USER_KEY, CallerIdentity, resolve_caller


def get_caller(request: Request, session: Session = Depends(get_session)) -> Optional[CallerIdentity]:
    """Resolve the session cookie to a caller, or None when not logged in."""
    caller = resolve_caller(session, request.session.get(SESSION_USER_KEY))
    if caller is None and SESSION_USER_KEY in request.session:
        # Stale cookie (user gone or id mangled)
        request.session.clear()
    return caller


def require_caller(caller: Optional[CallerIdentity] = Depends(get_caller)) -> CallerIdentity:
    if caller is None:
        raise HTTPException(status_code=401, detail="Authentication required.")
    return caller

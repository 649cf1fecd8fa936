"""Stripe webhook and checkout endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

from petsoft.database import get_session
from petsoft.routes.deps import require_caller
from petsoft.services.auth_service import CallerIdentity
from petsoft.services.stripe_service import (
    PaymentsNotConfiguredError,
    StripeService,
    WebhookVerificationError,
    get_stripe_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe")


async def get_raw_body(request: Request) -> bytes:
    """Unparsed request body, needed for signature verification"""
    return await request.body()


@router.post("/webhook")
def stripe_webhook(
    request: Request,
    payload: bytes = Depends(get_raw_body),
    session: Session = Depends(get_session),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """
    Receive a Stripe event.

    The signature is verified against the raw body, and the access grant is
    committed before responding so the status code reflects the outcome.
    """
    try:
        event = stripe_service.verify_event(payload, request.headers.get("stripe-signature"))
        result = stripe_service.fulfill(session, event)
    except WebhookVerificationError as e:
        logger.warning(f"Rejected Stripe webhook: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    if not result.user_found:
        return JSONResponse(status_code=404, content={"message": "User not found."})
    return {"received": True, "fulfilled": result.fulfilled}


@router.post("/checkout")
def create_checkout(
    caller: CallerIdentity = Depends(require_caller),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    """Start a Stripe Checkout session for the caller"""
    try:
        url = stripe_service.create_checkout_session(caller.email)
    except PaymentsNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=f"Payments not configured. {e}")
    return {"url": url}

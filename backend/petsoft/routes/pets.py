"""
Pet endpoints.

Bodies are accepted as raw JSON and handed to the pet actions untouched;
validation is the actions' first stage, so a malformed body and a missing
session are reported in the same order as for any other caller.
"""

from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlmodel import Session

from petsoft.database import get_session
from petsoft.routes.deps import get_caller, require_caller
from petsoft.services.auth_service import CallerIdentity
from petsoft.services.pet_actions import ActionResult, FailureKind, add_pet, delete_pet, edit_pet
from petsoft.services.pet_list_cache import get_pet_list_cache

router = APIRouter()

FAILURE_STATUS = {
    FailureKind.VALIDATION_FAILURE: 422,
    FailureKind.AUTHENTICATION_REQUIRED: 401,
    FailureKind.NOT_FOUND: 404,
    FailureKind.NOT_AUTHORIZED: 403,
    FailureKind.MUTATION_FAILED: 500,
}


class PetResponse(BaseModel):
    id: str
    name: str
    species: str
    age: Optional[int]
    notes: Optional[str]
    image_url: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def _failure_response(result: ActionResult) -> JSONResponse:
    return JSONResponse(status_code=FAILURE_STATUS[result.failure.kind], content={"message": result.failure.message})


@router.get("/pets", response_model=List[PetResponse])
def list_pets(caller: CallerIdentity = Depends(require_caller), session: Session = Depends(get_session)):
    """List the caller's pets"""
    return get_pet_list_cache().get_pets(session, caller.user_id)


@router.post("/pets", response_model=PetResponse, status_code=201)
def create_pet(
    payload: Any = Body(default=None),
    caller: Optional[CallerIdentity] = Depends(get_caller),
    session: Session = Depends(get_session),
):
    """Add a pet for the caller"""
    result = add_pet(session, caller, payload)
    if not result.ok:
        return _failure_response(result)
    return result.pet


@router.patch("/pets/{pet_id}", status_code=204)
def update_pet(
    pet_id: str,
    payload: Any = Body(default=None),
    caller: Optional[CallerIdentity] = Depends(get_caller),
    session: Session = Depends(get_session),
):
    """Edit one of the caller's pets"""
    result = edit_pet(session, caller, pet_id, payload)
    if not result.ok:
        return _failure_response(result)
    return Response(status_code=204)


@router.delete("/pets/{pet_id}", status_code=204)
def remove_pet(
    pet_id: str,
    caller: Optional[CallerIdentity] = Depends(get_caller),
    session: Session = Depends(get_session),
):
    """Check out (delete) one of the caller's pets"""
    result = delete_pet(session, caller, pet_id)
    if not result.ok:
        return _failure_response(result)
    return Response(status_code=204)

"""
Pet actions: add, edit and delete.

Each action walks the same pipeline and stops at the first failing stage:

    VALIDATING -> AUTHENTICATING -> AUTHORIZING -> MUTATING -> INVALIDATING -> DONE

(add has nothing to authorize and skips that stage). Failures come back as
an ``ActionResult`` carrying an ``ActionFailure``; nothing raised inside the
pipeline escapes to the caller.

The caller identity is passed in explicitly. It is resolved once at the
HTTP boundary; ``None`` means the request carried no valid session.

Ownership is checked and then mutated in two separate steps with no lock or
version check between them, so concurrent edits are last-write-wins.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from petsoft.config import get_settings
from petsoft.models.pet import Pet
from petsoft.services.auth_service import CallerIdentity
from petsoft.services.pet_list_cache import PetListCache, PetView, get_pet_list_cache
from petsoft.services.validation import (
    INVALID_PET_DATA,
    Invalid,
    validate_pet_form,
    validate_pet_id,
    validate_pet_update,
)

logger = logging.getLogger(__name__)

AUTHENTICATION_REQUIRED = "Authentication required."
PET_NOT_FOUND = "Pet not found."
NOT_AUTHORIZED = "Not authorized."
COULD_NOT_ADD = "Could not add pet."
COULD_NOT_EDIT = "Could not edit pet."
COULD_NOT_DELETE = "Could not delete pet."


class ActionStage(str, Enum):
    VALIDATING = "validating"
    AUTHENTICATING = "authenticating"
    AUTHORIZING = "authorizing"
    MUTATING = "mutating"
    INVALIDATING = "invalidating"
    DONE = "done"


class FailureKind(str, Enum):
    VALIDATION_FAILURE = "validation_failure"
    AUTHENTICATION_REQUIRED = "authentication_required"
    NOT_FOUND = "not_found"
    NOT_AUTHORIZED = "not_authorized"
    MUTATION_FAILED = "mutation_failed"


@dataclass(frozen=True)
class ActionFailure:
    kind: FailureKind
    message: str


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one pet action.

    ``stage`` is DONE on success, otherwise the stage that aborted.
    ``pet`` is only set by a successful add.
    """

    stage: ActionStage
    failure: Optional[ActionFailure] = None
    pet: Optional[PetView] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def message(self) -> Optional[str]:
        return self.failure.message if self.failure else None


def _abort(stage: ActionStage, kind: FailureKind, message: str) -> ActionResult:
    return ActionResult(stage=stage, failure=ActionFailure(kind=kind, message=message))


def _pace(delay_seconds: Optional[float]) -> None:
    """Minimum latency floor applied before any work starts."""
    if delay_seconds is None:
        delay_seconds = get_settings().action_delay_seconds
    if delay_seconds > 0:
        time.sleep(delay_seconds)


def get_pet_by_id(session: Session, pet_id: str) -> Optional[Pet]:
    return session.get(Pet, pet_id)


def authorize_pet_owner(
    session: Session, pet_id: str, caller: CallerIdentity
) -> Tuple[Optional[Pet], Optional[ActionFailure]]:
    """
    Check that ``pet_id`` exists and belongs to ``caller``.

    Existence is checked first so a missing pet and somebody else's pet
    produce different failures.

    Returns:
        (pet, None) when the caller owns the pet, (None, failure) otherwise
    """
    pet = get_pet_by_id(session, pet_id)
    if pet is None:
        return None, ActionFailure(FailureKind.NOT_FOUND, PET_NOT_FOUND)
    if pet.user_id != caller.user_id:
        logger.warning(f"User {caller.user_id} tried to modify pet {pet_id} owned by user {pet.user_id}")
        return None, ActionFailure(FailureKind.NOT_AUTHORIZED, NOT_AUTHORIZED)
    return pet, None


def _invalidate(cache: Optional[PetListCache], user_id: int) -> None:
    (cache or get_pet_list_cache()).invalidate(user_id)


def add_pet(
    session: Session,
    caller: Optional[CallerIdentity],
    raw_pet: Any,
    *,
    cache: Optional[PetListCache] = None,
    delay_seconds: Optional[float] = None,
) -> ActionResult:
    """Create a pet owned by the caller. Not idempotent."""
    _pace(delay_seconds)

    validated = validate_pet_form(raw_pet)
    if isinstance(validated, Invalid):
        logger.warning(f"add_pet rejected: {validated.reason}")
        return _abort(ActionStage.VALIDATING, FailureKind.VALIDATION_FAILURE, INVALID_PET_DATA)

    if caller is None:
        return _abort(ActionStage.AUTHENTICATING, FailureKind.AUTHENTICATION_REQUIRED, AUTHENTICATION_REQUIRED)

    try:
        pet = Pet(user_id=caller.user_id, **validated.value.model_dump())
        session.add(pet)
        session.commit()
        session.refresh(pet)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"add_pet failed for user {caller.user_id}: {e}")
        return _abort(ActionStage.MUTATING, FailureKind.MUTATION_FAILED, COULD_NOT_ADD)

    view = PetView.from_pet(pet)
    _invalidate(cache, caller.user_id)
    logger.info(f"User {caller.user_id} added pet {pet.id}")
    return ActionResult(stage=ActionStage.DONE, pet=view)


def edit_pet(
    session: Session,
    caller: Optional[CallerIdentity],
    raw_pet_id: Any,
    raw_changes: Any,
    *,
    cache: Optional[PetListCache] = None,
    delay_seconds: Optional[float] = None,
) -> ActionResult:
    """Apply a partial update to one of the caller's pets."""
    _pace(delay_seconds)

    # Both inputs are validated before either result is looked at
    validated_id = validate_pet_id(raw_pet_id)
    validated_changes = validate_pet_update(raw_changes)
    if isinstance(validated_id, Invalid) or isinstance(validated_changes, Invalid):
        reasons = [v.reason for v in (validated_id, validated_changes) if isinstance(v, Invalid)]
        logger.warning(f"edit_pet rejected: {'; '.join(reasons)}")
        return _abort(ActionStage.VALIDATING, FailureKind.VALIDATION_FAILURE, INVALID_PET_DATA)

    if caller is None:
        return _abort(ActionStage.AUTHENTICATING, FailureKind.AUTHENTICATION_REQUIRED, AUTHENTICATION_REQUIRED)

    try:
        pet, failure = authorize_pet_owner(session, validated_id.value, caller)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"edit_pet lookup failed for pet {validated_id.value}: {e}")
        return _abort(ActionStage.AUTHORIZING, FailureKind.MUTATION_FAILED, COULD_NOT_EDIT)
    if failure is not None:
        return ActionResult(stage=ActionStage.AUTHORIZING, failure=failure)

    try:
        for field, value in validated_changes.value.changes().items():
            setattr(pet, field, value)
        pet.updated_at = datetime.utcnow()
        session.add(pet)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"edit_pet failed for pet {validated_id.value}: {e}")
        return _abort(ActionStage.MUTATING, FailureKind.MUTATION_FAILED, COULD_NOT_EDIT)

    _invalidate(cache, caller.user_id)
    logger.info(f"User {caller.user_id} edited pet {validated_id.value}")
    return ActionResult(stage=ActionStage.DONE)


def delete_pet(
    session: Session,
    caller: Optional[CallerIdentity],
    raw_pet_id: Any,
    *,
    cache: Optional[PetListCache] = None,
    delay_seconds: Optional[float] = None,
) -> ActionResult:
    """Remove one of the caller's pets. A second delete reports NOT_FOUND."""
    _pace(delay_seconds)

    validated_id = validate_pet_id(raw_pet_id)
    if isinstance(validated_id, Invalid):
        logger.warning(f"delete_pet rejected: {validated_id.reason}")
        return _abort(ActionStage.VALIDATING, FailureKind.VALIDATION_FAILURE, INVALID_PET_DATA)

    if caller is None:
        return _abort(ActionStage.AUTHENTICATING, FailureKind.AUTHENTICATION_REQUIRED, AUTHENTICATION_REQUIRED)

    try:
        pet, failure = authorize_pet_owner(session, validated_id.value, caller)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"delete_pet lookup failed for pet {validated_id.value}: {e}")
        return _abort(ActionStage.AUTHORIZING, FailureKind.MUTATION_FAILED, COULD_NOT_DELETE)
    if failure is not None:
        return ActionResult(stage=ActionStage.AUTHORIZING, failure=failure)

    try:
        session.delete(pet)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"delete_pet failed for pet {validated_id.value}: {e}")
        return _abort(ActionStage.MUTATING, FailureKind.MUTATION_FAILED, COULD_NOT_DELETE)

    _invalidate(cache, caller.user_id)
    logger.info(f"User {caller.user_id} deleted pet {validated_id.value}")
    return ActionResult(stage=ActionStage.DONE)

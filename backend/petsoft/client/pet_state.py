"""
Optimistic pet list.

Mirrors the server-side pet actions for a single logged-in client:

- add shows the new pet immediately under a correlation id, then either
  swaps it for the authoritative list or removes exactly that entry
- edit and delete wait for the round trip and then refresh
- a delete clears the selection whatever the outcome

Failures are surfaced as warning notifications; successes are silent.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4

import httpx

from petsoft.client.api import ActionOutcome

logger = logging.getLogger(__name__)

PENDING_ID_PREFIX = "pending-"


class PetActionsClient(Protocol):
    def list_pets(self) -> List[Dict[str, Any]]: ...

    def add_pet(self, pet: Dict[str, Any]) -> ActionOutcome: ...

    def edit_pet(self, pet_id: str, changes: Dict[str, Any]) -> ActionOutcome: ...

    def delete_pet(self, pet_id: str) -> ActionOutcome: ...


@dataclass(frozen=True)
class Notification:
    level: str  # warning
    message: str


def new_correlation_id() -> str:
    return f"{PENDING_ID_PREFIX}{uuid4().hex}"


class PetState:
    def __init__(self, client: PetActionsClient, pets: Optional[List[Dict[str, Any]]] = None):
        self.client = client
        self._pets: List[Dict[str, Any]] = [dict(p) for p in (pets or [])]
        # correlation id -> speculative pet, in submission order
        self._pending: Dict[str, Dict[str, Any]] = {}
        self.selected_pet_id: Optional[str] = None
        self.notifications: List[Notification] = []

    # -- derived state ------------------------------------------------------

    @property
    def pets(self) -> List[Dict[str, Any]]:
        return self._pets + list(self._pending.values())

    @property
    def pending_ids(self) -> List[str]:
        return list(self._pending)

    @property
    def selected_pet(self) -> Optional[Dict[str, Any]]:
        return next((p for p in self.pets if p.get("id") == self.selected_pet_id), None)

    @property
    def number_of_pets(self) -> int:
        return len(self._pets) + len(self._pending)

    # -- handlers -----------------------------------------------------------

    def handle_add_pet(self, new_pet: Dict[str, Any]) -> Optional[str]:
        """Add a pet optimistically. Returns the failure message, if any."""
        correlation_id = new_correlation_id()
        self._pending[correlation_id] = {**new_pet, "id": correlation_id}

        outcome = self.client.add_pet(new_pet)
        self._pending.pop(correlation_id, None)
        if not outcome.ok:
            self._warn(outcome.message)
            return outcome.message

        if not self.refresh() and outcome.pet is not None:
            # Fall back to the pet the server echoed back
            self._pets.append(dict(outcome.pet))
        return None

    def handle_edit_pet(self, pet_id: str, new_pet_data: Dict[str, Any]) -> Optional[str]:
        outcome = self.client.edit_pet(pet_id, new_pet_data)
        if not outcome.ok:
            self._warn(outcome.message)
            return outcome.message

        self.refresh()
        return None

    def handle_check_out_pet(self, pet_id: str) -> Optional[str]:
        outcome = self.client.delete_pet(pet_id)
        self.selected_pet_id = None
        if not outcome.ok:
            self._warn(outcome.message)
            return outcome.message

        self.refresh()
        return None

    def handle_change_selected_pet_id(self, pet_id: Optional[str]) -> None:
        self.selected_pet_id = pet_id

    # -- reconciliation -----------------------------------------------------

    def refresh(self) -> bool:
        """Replace the authoritative list with a fresh read from the server."""
        try:
            self._pets = [dict(p) for p in self.client.list_pets()]
        except httpx.HTTPError as e:
            # Keep the last known list; the next successful action refreshes it
            logger.warning(f"Could not refresh pet list: {e}")
            return False
        return True

    def _warn(self, message: Optional[str]) -> None:
        logger.warning(f"Pet action failed: {message}")
        self.notifications.append(Notification(level="warning", message=message or "Something went wrong."))

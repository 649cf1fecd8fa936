"""
Client-side pieces: an HTTP client for the pet actions and the
optimistic pet list that sits on top of it.
"""

from petsoft.client.api import ActionOutcome, PetSoftClient
from petsoft.client.pet_state import Notification, PetState

__all__ = ["ActionOutcome", "Notification", "PetSoftClient", "PetState"]

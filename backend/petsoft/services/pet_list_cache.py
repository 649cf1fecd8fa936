"""
Per-user pet list view.

Reads go through the cache; every successful pet mutation invalidates the
owner's entry so the next read is recomputed from the database.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlmodel import Session, select

from petsoft.models.pet import Pet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PetView:
    """Read-only snapshot of a pet as shown in the list view."""

    id: str
    name: str
    species: str
    age: Optional[int]
    notes: Optional[str]
    image_url: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_pet(cls, pet: Pet) -> "PetView":
        return cls(
            id=pet.id,
            name=pet.name,
            species=pet.species,
            age=pet.age,
            notes=pet.notes,
            image_url=pet.image_url,
            created_at=pet.created_at,
            updated_at=pet.updated_at,
        )


class PetListCache:
    def __init__(self):
        self._views: Dict[int, Tuple[PetView, ...]] = {}
        # Bumped on every invalidate; a load only stores if it is unchanged
        self._generations: Dict[int, int] = {}
        self._lock = threading.Lock()

    def get_pets(self, session: Session, user_id: int) -> List[PetView]:
        """Return the user's pets, loading them on a cache miss."""
        with self._lock:
            cached = self._views.get(user_id)
            generation = self._generations.get(user_id, 0)
        if cached is not None:
            return list(cached)

        pets = session.exec(select(Pet).where(Pet.user_id == user_id).order_by(Pet.created_at, Pet.id)).all()
        views = tuple(PetView.from_pet(p) for p in pets)
        with self._lock:
            if self._generations.get(user_id, 0) == generation:
                self._views[user_id] = views
        return list(views)

    def invalidate(self, user_id: int) -> None:
        with self._lock:
            dropped = self._views.pop(user_id, None)
            self._generations[user_id] = self._generations.get(user_id, 0) + 1
        logger.debug(f"Invalidated pet list for user {user_id} (cached={dropped is not None})")

    def is_cached(self, user_id: int) -> bool:
        with self._lock:
            return user_id in self._views

    def clear(self) -> None:
        with self._lock:
            self._views.clear()


# Singleton instance
_pet_list_cache: Optional[PetListCache] = None


def get_pet_list_cache() -> PetListCache:
    """Get or create the singleton PetListCache instance."""
    global _pet_list_cache
    if _pet_list_cache is None:
        _pet_list_cache = PetListCache()
    return _pet_list_cache

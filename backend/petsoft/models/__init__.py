from petsoft.models.pet import Pet
from petsoft.models.user import User

__all__ = [
    "User",
    "Pet",
]

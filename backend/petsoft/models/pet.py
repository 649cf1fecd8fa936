from datetime import datetime
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from petsoft.models.user import User

PLACEHOLDER_IMAGE_URL = "https://static.petsoft.app/images/pet-placeholder.png"


def new_pet_id() -> str:
    return uuid4().hex


class Pet(SQLModel, table=True):
    id: str = Field(default_factory=new_pet_id, primary_key=True, max_length=32)
    # Owner is set once at creation; edits never touch it
    user_id: int = Field(foreign_key="user.id", index=True)
    name: str
    species: str
    age: Optional[int] = Field(default=None)
    notes: Optional[str] = None
    image_url: str = Field(default=PLACEHOLDER_IMAGE_URL)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    user: "User" = Relationship(back_populates="pets")

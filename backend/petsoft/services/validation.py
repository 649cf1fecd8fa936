"""
Input validation for pet actions.

Every pet action runs its raw, untyped input through one of these
validators before touching the session, the database or the cache.
Validators are pure: they return ``Valid(value)`` or ``Invalid(reason)``
and never raise.

The reason is for logs only. Callers outside the service layer only ever
see ``INVALID_PET_DATA``.
"""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from petsoft.models.pet import PLACEHOLDER_IMAGE_URL

T = TypeVar("T")

INVALID_PET_DATA = "Invalid pet data."


@dataclass(frozen=True)
class Valid(Generic[T]):
    value: T


@dataclass(frozen=True)
class Invalid:
    reason: str


ValidationResult = Union[Valid[T], Invalid]


def _check_image_url(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return v
    if not (v.startswith("http://") or v.startswith("https://")) or len(v) < 11:
        raise ValueError("image_url must be an http(s) URL")
    return v


class PetForm(BaseModel):
    """Full pet payload, used by add."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    species: str = Field(min_length=1, max_length=100)
    age: Optional[int] = Field(default=None, ge=0, le=99999, strict=True)
    notes: Optional[str] = Field(default=None, max_length=1000)
    image_url: Optional[str] = Field(default=None, max_length=2048)

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v):
        return _check_image_url(v)

    @model_validator(mode="after")
    def default_image(self):
        if not self.image_url:
            self.image_url = PLACEHOLDER_IMAGE_URL
        return self


class PetUpdate(BaseModel):
    """Partial pet payload, used by edit. Ownership is not editable."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    species: Optional[str] = Field(default=None, min_length=1, max_length=100)
    age: Optional[int] = Field(default=None, ge=0, le=99999, strict=True)
    notes: Optional[str] = Field(default=None, max_length=1000)
    image_url: Optional[str] = Field(default=None, max_length=2048)

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v):
        return _check_image_url(v)

    @model_validator(mode="after")
    def require_a_field(self):
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided")
        for required in ("name", "species"):
            if required in self.model_fields_set and getattr(self, required) is None:
                raise ValueError(f"{required} cannot be null")
        if "image_url" in self.model_fields_set and not self.image_url:
            self.image_url = PLACEHOLDER_IMAGE_URL
        return self

    def changes(self) -> dict:
        """Only the fields the caller actually sent."""
        return self.model_dump(exclude_unset=True)


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "payload"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def validate_pet_form(raw: Any) -> ValidationResult[PetForm]:
    """Validate a complete pet payload."""
    if not isinstance(raw, dict):
        return Invalid(f"expected an object, got {type(raw).__name__}")
    try:
        return Valid(PetForm.model_validate(raw))
    except ValidationError as e:
        return Invalid(_describe(e))


def validate_pet_update(raw: Any) -> ValidationResult[PetUpdate]:
    """Validate a partial pet payload (at least one field)."""
    if not isinstance(raw, dict):
        return Invalid(f"expected an object, got {type(raw).__name__}")
    try:
        return Valid(PetUpdate.model_validate(raw))
    except ValidationError as e:
        return Invalid(_describe(e))


def validate_pet_id(raw: Any) -> ValidationResult[str]:
    """
    Validate a pet identifier.

    Accepts the 32-char hex form and the hyphenated UUID form, and
    normalises to lowercase hex (the form stored in ``pet.id``).
    """
    if not isinstance(raw, str):
        return Invalid(f"pet id must be a string, got {type(raw).__name__}")
    candidate = raw.strip()
    if len(candidate) not in (32, 36):
        return Invalid(f"malformed pet id: {raw!r}")
    try:
        return Valid(UUID(candidate).hex)
    except ValueError:
        return Invalid(f"malformed pet id: {raw!r}")

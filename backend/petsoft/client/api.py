"""HTTP client for the PetSoft API."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong."


@dataclass(frozen=True)
class ActionOutcome:
    """Result of a pet action as seen by the client: a message means failure."""

    message: Optional[str] = None
    pet: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.message is None


def _failure(response: Optional[httpx.Response]) -> ActionOutcome:
    if response is None:
        return ActionOutcome(message=GENERIC_FAILURE)
    try:
        body = response.json()
    except ValueError:
        body = None
    message = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail")
    if not isinstance(message, str):
        message = GENERIC_FAILURE
    return ActionOutcome(message=message)


class PetSoftClient:
    """
    Thin wrapper around an ``httpx.Client`` (or a FastAPI ``TestClient``).

    The wrapped client keeps the session cookie between calls. Transport
    errors on actions come back as failed outcomes, not exceptions.
    """

    def __init__(self, http: httpx.Client, prefix: str = "/api"):
        self.http = http
        self.prefix = prefix.rstrip("/")

    def _send(self, method: str, path: str, **kwargs) -> Optional[httpx.Response]:
        try:
            return self.http.request(method, f"{self.prefix}{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            return None

    def sign_up(self, email: str, password: str) -> ActionOutcome:
        response = self._send("POST", "/auth/signup", json={"email": email, "password": password})
        return ActionOutcome() if response is not None and response.status_code == 201 else _failure(response)

    def log_in(self, email: str, password: str) -> ActionOutcome:
        response = self._send("POST", "/auth/login", json={"email": email, "password": password})
        return ActionOutcome() if response is not None and response.status_code == 200 else _failure(response)

    def log_out(self) -> None:
        self._send("POST", "/auth/logout", follow_redirects=False)

    def list_pets(self) -> List[Dict[str, Any]]:
        response = self.http.get(f"{self.prefix}/pets")
        response.raise_for_status()
        return response.json()

    def add_pet(self, pet: Dict[str, Any]) -> ActionOutcome:
        response = self._send("POST", "/pets", json=pet)
        if response is not None and response.status_code == 201:
            return ActionOutcome(pet=response.json())
        return _failure(response)

    def edit_pet(self, pet_id: str, changes: Dict[str, Any]) -> ActionOutcome:
        response = self._send("PATCH", f"/pets/{pet_id}", json=changes)
        return ActionOutcome() if response is not None and response.status_code == 204 else _failure(response)

    def delete_pet(self, pet_id: str) -> ActionOutcome:
        response = self._send("DELETE", f"/pets/{pet_id}")
        return ActionOutcome() if response is not None and response.status_code == 204 else _failure(response)

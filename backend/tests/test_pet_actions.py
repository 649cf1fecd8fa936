"""Tests for the add/edit/delete pet pipeline."""

from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from petsoft.models.pet import Pet
from petsoft.services import pet_actions
from petsoft.services.auth_service import CallerIdentity
from petsoft.services.pet_actions import (
    ActionStage,
    FailureKind,
    add_pet,
    authorize_pet_owner,
    delete_pet,
    edit_pet,
)
from petsoft.services.pet_list_cache import PetListCache, PetView

REX = {"name": "Rex", "species": "dog"}


def _pet_count(session: Session) -> int:
    return len(session.exec(select(Pet)).all())


def _boom(*args, **kwargs):
    raise OperationalError("COMMIT", {}, Exception("database is locked"))


# ---------------------------------------------------------------------------
# Validation runs first and has no side effects
# ---------------------------------------------------------------------------


class TestValidationFailures:
    @pytest.mark.parametrize("payload", [{"species": "dog"}, {"name": 5, "species": "dog"}, None])
    def test_add_rejects_malformed_payload_without_writing(self, session, owner, payload):
        result = add_pet(session, owner, payload)

        assert result.failure.kind == FailureKind.VALIDATION_FAILURE
        assert result.message == "Invalid pet data."
        assert result.stage == ActionStage.VALIDATING
        assert _pet_count(session) == 0

    def test_edit_rejects_bad_id_and_bad_payload(self, session, owner):
        added = add_pet(session, owner, REX)

        bad_id = edit_pet(session, owner, "nope", {"name": "Rex2"})
        bad_payload = edit_pet(session, owner, added.pet.id, {"age": "old"})

        for result in (bad_id, bad_payload):
            assert result.failure.kind == FailureKind.VALIDATION_FAILURE
            assert result.stage == ActionStage.VALIDATING
        assert session.get(Pet, added.pet.id).name == "Rex"

    def test_edit_evaluates_both_validations(self, session, owner, monkeypatch):
        calls = []
        real_id, real_update = pet_actions.validate_pet_id, pet_actions.validate_pet_update
        monkeypatch.setattr(pet_actions, "validate_pet_id", lambda raw: calls.append("id") or real_id(raw))
        monkeypatch.setattr(pet_actions, "validate_pet_update", lambda raw: calls.append("update") or real_update(raw))

        result = edit_pet(session, owner, "nope", {"bogus": True})

        assert result.failure.kind == FailureKind.VALIDATION_FAILURE
        assert calls == ["id", "update"]

    def test_delete_rejects_malformed_id(self, session, owner):
        result = delete_pet(session, owner, {"id": "x"})
        assert result.failure.kind == FailureKind.VALIDATION_FAILURE


# ---------------------------------------------------------------------------
# No session, no mutation
# ---------------------------------------------------------------------------


class TestAuthenticationRequired:
    def test_add_without_caller(self, session):
        result = add_pet(session, None, REX)

        assert result.failure.kind == FailureKind.AUTHENTICATION_REQUIRED
        assert result.stage == ActionStage.AUTHENTICATING
        assert _pet_count(session) == 0

    def test_edit_and_delete_without_caller_do_not_reveal_existence(self, session, owner):
        added = add_pet(session, owner, REX)
        missing_id = uuid4().hex

        for pet_id in (added.pet.id, missing_id):
            edited = edit_pet(session, None, pet_id, {"name": "Rex2"})
            deleted = delete_pet(session, None, pet_id)
            assert edited.failure.kind == FailureKind.AUTHENTICATION_REQUIRED
            assert deleted.failure.kind == FailureKind.AUTHENTICATION_REQUIRED

        assert session.get(Pet, added.pet.id).name == "Rex"


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------


class TestOwnership:
    def test_authorizer_checks_existence_before_owner(self, session, owner, stranger):
        added = add_pet(session, owner, REX)

        pet, failure = authorize_pet_owner(session, uuid4().hex, stranger)
        assert pet is None and failure.kind == FailureKind.NOT_FOUND

        pet, failure = authorize_pet_owner(session, added.pet.id, stranger)
        assert pet is None and failure.kind == FailureKind.NOT_AUTHORIZED

        pet, failure = authorize_pet_owner(session, added.pet.id, owner)
        assert failure is None and pet.id == added.pet.id

    def test_edit_missing_pet(self, session, owner):
        result = edit_pet(session, owner, uuid4().hex, {"name": "Ghost"})
        assert result.failure.kind == FailureKind.NOT_FOUND
        assert result.message == "Pet not found."
        assert result.stage == ActionStage.AUTHORIZING

    def test_edit_someone_elses_pet(self, session, owner, stranger):
        added = add_pet(session, owner, REX)

        result = edit_pet(session, stranger, added.pet.id, {"name": "Rex2"})

        assert result.failure.kind == FailureKind.NOT_AUTHORIZED
        assert result.message == "Not authorized."
        session.expire_all()
        assert session.get(Pet, added.pet.id).name == "Rex"

    def test_delete_someone_elses_pet(self, session, owner, stranger):
        added = add_pet(session, owner, REX)

        result = delete_pet(session, stranger, added.pet.id)

        assert result.failure.kind == FailureKind.NOT_AUTHORIZED
        assert _pet_count(session) == 1

    def test_owner_can_edit(self, session, owner):
        added = add_pet(session, owner, {**REX, "age": 3})

        result = edit_pet(session, owner, added.pet.id, {"name": "Rex2"})

        assert result.ok
        assert result.stage == ActionStage.DONE
        session.expire_all()
        pet = session.get(Pet, added.pet.id)
        assert pet.name == "Rex2"
        assert pet.species == "dog"  # untouched fields survive a partial update
        assert pet.age == 3
        assert pet.user_id == owner.user_id

    def test_owner_can_delete(self, session, owner):
        added = add_pet(session, owner, REX)

        result = delete_pet(session, owner, added.pet.id)

        assert result.ok
        assert _pet_count(session) == 0


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------


def test_deleting_twice_reports_not_found(session, owner):
    added = add_pet(session, owner, REX)

    first = delete_pet(session, owner, added.pet.id)
    second = delete_pet(session, owner, added.pet.id)

    assert first.ok
    assert second.failure.kind == FailureKind.NOT_FOUND


def test_add_twice_creates_two_pets(session, owner):
    first = add_pet(session, owner, REX)
    second = add_pet(session, owner, REX)

    assert first.ok and second.ok
    assert first.pet.id != second.pet.id
    assert _pet_count(session) == 2


def test_added_pet_is_owned_by_caller(session, owner):
    result = add_pet(session, owner, REX)

    pet = session.get(Pet, result.pet.id)
    assert pet.user_id == owner.user_id


# ---------------------------------------------------------------------------
# Persistence failures
# ---------------------------------------------------------------------------


class TestMutationFailures:
    def test_add_commit_failure(self, session, owner, monkeypatch):
        monkeypatch.setattr(session, "commit", _boom)

        result = add_pet(session, owner, REX)

        assert result.failure.kind == FailureKind.MUTATION_FAILED
        assert result.message == "Could not add pet."
        assert result.stage == ActionStage.MUTATING

    def test_edit_commit_failure(self, session, owner, monkeypatch):
        added = add_pet(session, owner, REX)
        monkeypatch.setattr(session, "commit", _boom)

        result = edit_pet(session, owner, added.pet.id, {"name": "Rex2"})

        assert result.failure.kind == FailureKind.MUTATION_FAILED
        assert result.message == "Could not edit pet."

    def test_delete_commit_failure(self, session, owner, monkeypatch):
        added = add_pet(session, owner, REX)
        monkeypatch.setattr(session, "commit", _boom)

        result = delete_pet(session, owner, added.pet.id)

        assert result.failure.kind == FailureKind.MUTATION_FAILED
        assert result.message == "Could not delete pet."

    def test_edit_lookup_failure(self, session, owner, monkeypatch):
        added = add_pet(session, owner, REX)
        monkeypatch.setattr(session, "get", _boom)

        result = edit_pet(session, owner, added.pet.id, {"name": "Rex2"})

        assert result.failure.kind == FailureKind.MUTATION_FAILED
        assert result.message == "Could not edit pet."
        assert result.stage == ActionStage.AUTHORIZING

    def test_delete_lookup_failure(self, session, owner, monkeypatch):
        added = add_pet(session, owner, REX)
        monkeypatch.setattr(session, "get", _boom)

        result = delete_pet(session, owner, added.pet.id)

        assert result.failure.kind == FailureKind.MUTATION_FAILED
        assert result.message == "Could not delete pet."
        monkeypatch.undo()
        assert _pet_count(session) == 1

    def test_failed_mutation_keeps_cached_view(self, session, owner, monkeypatch):
        cache = PetListCache()
        cache.get_pets(session, owner.user_id)
        monkeypatch.setattr(session, "commit", _boom)

        add_pet(session, owner, REX, cache=cache)

        assert cache.is_cached(owner.user_id)


# ---------------------------------------------------------------------------
# View invalidation
# ---------------------------------------------------------------------------


def test_successful_actions_invalidate_list_view(session, owner):
    cache = PetListCache()
    assert cache.get_pets(session, owner.user_id) == []

    added = add_pet(session, owner, REX, cache=cache)
    assert not cache.is_cached(owner.user_id)
    assert [p.name for p in cache.get_pets(session, owner.user_id)] == ["Rex"]

    edit_pet(session, owner, added.pet.id, {"name": "Rex2"}, cache=cache)
    assert [p.name for p in cache.get_pets(session, owner.user_id)] == ["Rex2"]

    delete_pet(session, owner, added.pet.id, cache=cache)
    assert cache.get_pets(session, owner.user_id) == []


def test_invalidation_during_load_is_not_lost(session, owner, monkeypatch):
    cache = PetListCache()
    added = add_pet(session, owner, REX, cache=cache)
    original_from_pet = PetView.from_pet.__func__
    calls = []

    def from_pet_then_edit(cls, pet):
        view = original_from_pet(cls, pet)
        if not calls:
            calls.append(pet.id)
            # Another request commits an edit while this load is in flight
            edit_pet(session, owner, added.pet.id, {"name": "Rex2"}, cache=cache)
        return view

    monkeypatch.setattr(PetView, "from_pet", classmethod(from_pet_then_edit))

    assert [p.name for p in cache.get_pets(session, owner.user_id)] == ["Rex"]
    assert not cache.is_cached(owner.user_id)

    monkeypatch.undo()
    assert [p.name for p in cache.get_pets(session, owner.user_id)] == ["Rex2"]


def test_rejected_action_leaves_other_users_view_alone(session, owner, stranger):
    cache = PetListCache()
    added = add_pet(session, owner, REX, cache=cache)
    cache.get_pets(session, owner.user_id)

    edit_pet(session, stranger, added.pet.id, {"name": "Rex2"}, cache=cache)

    assert cache.is_cached(owner.user_id)


# ---------------------------------------------------------------------------
# Minimum latency
# ---------------------------------------------------------------------------


class TestActionDelay:
    def test_explicit_delay_sleeps_before_validation(self, session, monkeypatch):
        slept = []
        monkeypatch.setattr(pet_actions.time, "sleep", slept.append)

        result = add_pet(session, None, {"bad": "payload"}, delay_seconds=0.25)

        assert slept == [0.25]
        assert result.failure.kind == FailureKind.VALIDATION_FAILURE

    def test_configured_delay_of_zero_does_not_sleep(self, session, owner, monkeypatch):
        slept = []
        monkeypatch.setattr(pet_actions.time, "sleep", slept.append)

        add_pet(session, owner, REX)
        delete_pet(session, owner, uuid4().hex)

        assert slept == []


def test_caller_identity_is_explicit(session, owner):
    impostor = CallerIdentity(user_id=owner.user_id + 1000, email="ghost@example.com")
    added = add_pet(session, owner, REX)

    result = delete_pet(session, impostor, added.pet.id)

    assert result.failure.kind == FailureKind.NOT_AUTHORIZED

"""Tests for the error hierarchy."""

from __future__ import annotations

import pytest

from deskstate.core.errors import (
    DuplicateObjectError,
    ErrorCode,
    InvariantViolationError,
    NotFoundError,
    PersistenceError,
    StaleObjectError,
    StateError,
    error_from_dict,
    wrap_error,
)


def test_wrap_error_keeps_kind_and_fields() -> None:
    original = NotFoundError(message="window not found", otype="window", oid="w1")
    wrapped = wrap_error(original, "error getting window")

    assert isinstance(wrapped, NotFoundError)
    assert wrapped.message == "error getting window: window not found"
    assert wrapped.oid == "w1"
    assert original.message == "window not found"


def test_wrapped_errors_nest() -> None:
    error = InvariantViolationError(message="no windows exist")
    error = wrap_error(wrap_error(error, "bootstrap"), "agree tos")
    assert error.message == "agree tos: bootstrap: no windows exist"
    assert str(error) == "[invariant_violation] agree tos: bootstrap: no windows exist"


def test_stale_object_is_a_persistence_error() -> None:
    error = StaleObjectError(otype="client", oid="c1", expected_version=1, current_version=3)
    assert isinstance(error, PersistenceError)
    payload = error.to_dict()
    assert payload["error"] == ErrorCode.STALE_OBJECT
    assert payload["expected_version"] == 1
    assert payload["current_version"] == 3


def test_to_dict_includes_details_only_when_present() -> None:
    assert "details" not in PersistenceError().to_dict()
    payload = PersistenceError(details={"path": "/tmp/x.db"}).to_dict()
    assert payload["details"] == {"path": "/tmp/x.db"}


@pytest.mark.parametrize(
    "error",
    [
        NotFoundError(message="gone"),
        InvariantViolationError(message="bad", details={"step": 2}),
        PersistenceError(message="disk"),
        DuplicateObjectError(message="client 'client' already exists"),
    ],
)
def test_error_from_dict_restores_kind(error: StateError) -> None:
    restored = error_from_dict(error.to_dict())
    assert type(restored) is type(error)
    assert restored.message == error.message
    assert restored.details == error.details


def test_error_from_dict_unknown_code() -> None:
    restored = error_from_dict({"error": "quota", "message": "too many"})
    assert type(restored) is StateError
    assert restored.error_code == "quota"


def test_errors_can_be_raised_and_caught() -> None:
    with pytest.raises(StateError) as excinfo:
        raise NotFoundError(otype="tab", oid="t1")
    assert excinfo.value.error_code == ErrorCode.NOT_FOUND

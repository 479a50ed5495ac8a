"""Tests for catalog and loan policy validation rules."""

from __future__ import annotations

from dataclasses import replace

import pytest

from borrowdesk.domain.constraints import validate_loan_policy, validate_resource_type
from borrowdesk.domain.models import LoanPolicy, ResourceType


def valid_resource_type(**overrides) -> ResourceType:
    """Return a valid baseline ResourceType, optionally overriding fields."""
    base = ResourceType(
        id=1,
        name="Tablet",
        attributes={"brand": "Samsung"},
        default_loan_days=7,
        max_loan_days=30,
        repair_days=5,
    )
    return replace(base, **overrides)


# --- Baseline pass ---

def test_valid_resource_type_passes() -> None:
    validate_resource_type(valid_resource_type())


def test_valid_loan_policy_passes() -> None:
    validate_loan_policy(LoanPolicy(default_loan_days=7, max_loan_days=10))


# --- resource type ---

def test_resource_type_id_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_resource_type(valid_resource_type(id=0))


def test_resource_type_blank_name_raises() -> None:
    with pytest.raises(ValueError):
        validate_resource_type(valid_resource_type(name="   "))


def test_default_loan_days_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_resource_type(valid_resource_type(default_loan_days=0))


def test_max_below_default_raises() -> None:
    with pytest.raises(ValueError):
        validate_resource_type(valid_resource_type(default_loan_days=10, max_loan_days=9))


def test_repair_days_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_resource_type(valid_resource_type(repair_days=0))


# --- loan policy ---

def test_loan_policy_negative_max_raises() -> None:
    with pytest.raises(ValueError):
        validate_loan_policy(LoanPolicy(default_loan_days=0, max_loan_days=-1))


def test_loan_policy_max_below_default_raises() -> None:
    with pytest.raises(ValueError):
        validate_loan_policy(LoanPolicy(default_loan_days=7, max_loan_days=3))


# --- Boundary values ---

def test_loan_policy_without_rights_passes() -> None:
    """A role that cannot borrow has zero-length limits."""
    validate_loan_policy(LoanPolicy(default_loan_days=0, max_loan_days=0))


def test_max_equal_to_default_passes() -> None:
    validate_resource_type(valid_resource_type(default_loan_days=5, max_loan_days=5))

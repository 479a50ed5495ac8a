"""Domain-level validation rules for catalog entries and loan policies."""

from __future__ import annotations

from borrowdesk.domain.models import LoanPolicy, ResourceType


def validate_resource_type(resource_type: ResourceType) -> None:
    if resource_type.id <= 0:
        raise ValueError("resource type id must be > 0")
    if not resource_type.name.strip():
        raise ValueError("resource type name must be non-empty")
    if resource_type.default_loan_days <= 0:
        raise ValueError("default_loan_days must be > 0")
    if resource_type.max_loan_days < resource_type.default_loan_days:
        raise ValueError("max_loan_days must be >= default_loan_days")
    if resource_type.repair_days <= 0:
        raise ValueError("repair_days must be > 0")


def validate_loan_policy(policy: LoanPolicy) -> None:
    if policy.default_loan_days < 0:
        raise ValueError("default_loan_days must be >= 0")
    if policy.max_loan_days < 0:
        raise ValueError("max_loan_days must be >= 0")
    if policy.max_loan_days < policy.default_loan_days:
        raise ValueError("max_loan_days must be >= default_loan_days")

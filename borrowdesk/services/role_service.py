"""Resolves requesters to the loan policy granted by their role."""

from __future__ import annotations

from typing import Optional

from borrowdesk.domain.constraints import validate_loan_policy
from borrowdesk.domain.errors import UnknownRequesterError
from borrowdesk.domain.models import LoanPolicy
from borrowdesk.repository.data_repository import DataRepository
from borrowdesk.utils.config import Settings, get_settings


class RolePolicyService:
    """Maps a requester id to the loan capabilities of their role."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def policy_for_role(self, role: str) -> LoanPolicy:
        role_settings = self._settings.role_policies.get(role)
        if role_settings is None:
            raise UnknownRequesterError(f"Role '{role}' has no loan policy")
        policy = LoanPolicy(
            default_loan_days=role_settings.default_loan_days,
            max_loan_days=role_settings.max_loan_days,
            requires_validation=role_settings.requires_validation,
        )
        validate_loan_policy(policy)
        return policy

    def policy_for(self, requester_id: int) -> LoanPolicy:
        role = self._repository.get_requester_role(requester_id)
        if role is None:
            raise UnknownRequesterError(f"Requester {requester_id} is not registered")
        return self.policy_for_role(role)

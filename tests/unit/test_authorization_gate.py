"""Unit tests for the authorization gate."""

import uuid

import pytest

from citytrees.kernel.errors import (
    ForbiddenError,
    InvalidTransitionError,
    LookupFailedError,
    NotFoundError,
    UnauthenticatedError,
)
from citytrees.kernel.permissions.evaluator import DenyReason, PermissionEvaluator
from citytrees.kernel.permissions.policy import Domain, Permission
from citytrees.orchestration.authorization_gate import AuthorizationGate
from citytrees.orchestration.state_machine import ModerationOutcome, TreeStatus


def _gate(lookup) -> AuthorizationGate:
    return AuthorizationGate(PermissionEvaluator(lookup))


class TestAuthorize:

    @pytest.mark.asyncio
    async def test_returns_decision_unchanged(self, ownership, tree_id, other_user):
        decision = await _gate(ownership).authorize(other_user, Domain.TREE, tree_id, Permission.EDIT)
        assert decision.reason == DenyReason.FORBIDDEN

    @pytest.mark.asyncio
    async def test_require_allows_owner(self, ownership, tree_id, basic_user):
        decision = await _gate(ownership).require(basic_user, Domain.TREE, tree_id, Permission.DELETE)
        assert decision.allowed

    @pytest.mark.asyncio
    async def test_require_anonymous(self, ownership, tree_id):
        with pytest.raises(UnauthenticatedError) as exc_info:
            await _gate(ownership).require(None, Domain.TREE, tree_id, Permission.EDIT)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_require_forbidden_names_permission(self, ownership, tree_id, other_user):
        with pytest.raises(ForbiddenError) as exc_info:
            await _gate(ownership).require(other_user, Domain.TREE, tree_id, Permission.EDIT)
        assert exc_info.value.status_code == 403
        assert "EDIT" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_require_missing_tree(self, ownership, basic_user):
        with pytest.raises(NotFoundError):
            await _gate(ownership).require(basic_user, Domain.TREE, uuid.uuid4(), Permission.DELETE)

    @pytest.mark.asyncio
    async def test_require_lookup_failure_chains_cause(self, fake_ownership, tree_id, basic_user):
        cause = ConnectionError("store unreachable")
        with pytest.raises(LookupFailedError) as exc_info:
            await _gate(fake_ownership(error=cause)).require(basic_user, Domain.TREE, tree_id, Permission.EDIT)
        assert exc_info.value.status_code == 503
        assert exc_info.value.__cause__ is cause


class TestAuthorizeTransition:

    @pytest.mark.asyncio
    async def test_moderator_approves_submitted(self, ownership, tree_id, moderator):
        to_state = await _gate(ownership).authorize_transition(
            moderator, tree_id, TreeStatus.SUBMITTED, ModerationOutcome.APPROVE
        )
        assert to_state == TreeStatus.APPROVED

    @pytest.mark.asyncio
    async def test_admin_rejects_submitted(self, ownership, tree_id, admin):
        to_state = await _gate(ownership).authorize_transition(
            admin, tree_id, TreeStatus.SUBMITTED, ModerationOutcome.REJECT
        )
        assert to_state == TreeStatus.REJECTED

    @pytest.mark.asyncio
    async def test_owner_cannot_moderate(self, ownership, tree_id, basic_user):
        with pytest.raises(ForbiddenError):
            await _gate(ownership).authorize_transition(
                basic_user, tree_id, TreeStatus.SUBMITTED, ModerationOutcome.APPROVE
            )

    @pytest.mark.asyncio
    async def test_anonymous_cannot_moderate(self, ownership, tree_id):
        with pytest.raises(UnauthenticatedError):
            await _gate(ownership).authorize_transition(
                None, tree_id, TreeStatus.SUBMITTED, ModerationOutcome.REJECT
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("current", [TreeStatus.APPROVED, TreeStatus.REJECTED])
    async def test_terminal_status_is_invalid_transition(self, ownership, tree_id, moderator, current):
        with pytest.raises(InvalidTransitionError) as exc_info:
            await _gate(ownership).authorize_transition(
                moderator, tree_id, current, ModerationOutcome.APPROVE
            )
        assert exc_info.value.status_code == 403
        assert exc_info.value.code == "invalid_transition"

    @pytest.mark.asyncio
    async def test_permission_checked_before_lifecycle(self, ownership, tree_id, other_user):
        # A forbidden caller never learns the tree is already moderated
        with pytest.raises(ForbiddenError):
            await _gate(ownership).authorize_transition(
                other_user, tree_id, TreeStatus.APPROVED, ModerationOutcome.APPROVE
            )

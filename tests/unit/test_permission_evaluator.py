"""Unit tests for the permission evaluator."""

import uuid

import pytest

from citytrees.kernel.permissions.evaluator import (
    Decision,
    DenyReason,
    GrantSource,
    PermissionEvaluator,
)
from citytrees.kernel.permissions.policy import (
    Domain,
    OWNER_PERMISSIONS,
    Permission,
    Principal,
    ResourceRef,
    Role,
)


class TestAdminBypass:
    """Admins are allowed everything, on any tree, existing or not."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("permission", list(Permission))
    async def test_admin_allowed_on_owned_tree(self, ownership, tree_id, admin, permission):
        decision = await PermissionEvaluator(ownership).evaluate(admin, Domain.TREE, tree_id, permission)
        assert decision.allowed

    @pytest.mark.asyncio
    @pytest.mark.parametrize("permission", list(Permission))
    async def test_admin_allowed_on_unknown_tree(self, ownership, admin, permission):
        decision = await PermissionEvaluator(ownership).evaluate(admin, Domain.TREE, uuid.uuid4(), permission)
        assert decision.allowed

    @pytest.mark.asyncio
    async def test_admin_never_consults_ownership(self, fake_ownership, admin, tree_id):
        lookup = fake_ownership(error=RuntimeError("store down"))
        evaluator = PermissionEvaluator(lookup)

        for permission in Permission:
            decision = await evaluator.evaluate(admin, Domain.TREE, tree_id, permission)
            assert decision.allowed
        assert lookup.calls == 0

    @pytest.mark.asyncio
    async def test_admin_with_other_roles(self, ownership, tree_id):
        principal = Principal(id=uuid.uuid4(), roles=frozenset({Role.BASIC, Role.ADMIN}))
        decision = await PermissionEvaluator(ownership).evaluate(principal, Domain.TREE, tree_id, Permission.DELETE)
        assert decision.granted_by == GrantSource.ADMIN


class TestAnonymous:

    @pytest.mark.asyncio
    async def test_view_is_open(self, ownership, tree_id):
        decision = await PermissionEvaluator(ownership).evaluate(None, Domain.TREE, tree_id, Permission.VIEW)
        assert decision.allowed
        assert decision.granted_by == GrantSource.OPEN

    @pytest.mark.asyncio
    @pytest.mark.parametrize("permission", [Permission.EDIT, Permission.DELETE, Permission.APPROVE])
    async def test_everything_else_is_unauthenticated(self, ownership, tree_id, permission):
        decision = await PermissionEvaluator(ownership).evaluate(None, Domain.TREE, tree_id, permission)
        assert not decision.allowed
        assert decision.reason == DenyReason.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_view_does_not_touch_ownership(self, fake_ownership, tree_id):
        lookup = fake_ownership(error=RuntimeError("store down"))
        decision = await PermissionEvaluator(lookup).evaluate(None, Domain.TREE, tree_id, Permission.VIEW)
        assert decision.allowed
        assert lookup.calls == 0


class TestOwnership:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("permission", [Permission.EDIT, Permission.DELETE])
    async def test_owner_allowed_without_special_role(self, ownership, tree_id, basic_user, permission):
        decision = await PermissionEvaluator(ownership).evaluate(basic_user, Domain.TREE, tree_id, permission)
        assert decision.allowed
        assert decision.granted_by == GrantSource.OWNER

    @pytest.mark.asyncio
    async def test_owner_cannot_approve_own_tree(self, ownership, tree_id, basic_user):
        decision = await PermissionEvaluator(ownership).evaluate(basic_user, Domain.TREE, tree_id, Permission.APPROVE)
        assert not decision.allowed
        assert decision.reason == DenyReason.FORBIDDEN

    @pytest.mark.asyncio
    @pytest.mark.parametrize("permission", [Permission.EDIT, Permission.DELETE, Permission.APPROVE])
    async def test_non_owner_forbidden(self, ownership, tree_id, other_user, permission):
        decision = await PermissionEvaluator(ownership).evaluate(other_user, Domain.TREE, tree_id, permission)
        assert not decision.allowed
        assert decision.reason == DenyReason.FORBIDDEN

    @pytest.mark.asyncio
    async def test_missing_tree_is_not_found(self, ownership, basic_user):
        decision = await PermissionEvaluator(ownership).evaluate(
            basic_user, Domain.TREE, uuid.uuid4(), Permission.EDIT
        )
        assert not decision.allowed
        assert decision.reason == DenyReason.NOT_FOUND

    def test_approve_is_never_owner_grantable(self):
        for permissions in OWNER_PERMISSIONS.values():
            assert Permission.APPROVE not in permissions


class TestModerator:

    @pytest.mark.asyncio
    async def test_moderator_may_approve_any_tree(self, ownership, tree_id, moderator):
        decision = await PermissionEvaluator(ownership).evaluate(moderator, Domain.TREE, tree_id, Permission.APPROVE)
        assert decision.allowed
        assert decision.granted_by == GrantSource.ROLE

    @pytest.mark.asyncio
    async def test_moderator_may_approve_unknown_tree(self, ownership, moderator):
        # Existence is checked when the transition is loaded, not here
        decision = await PermissionEvaluator(ownership).evaluate(
            moderator, Domain.TREE, uuid.uuid4(), Permission.APPROVE
        )
        assert decision.allowed

    @pytest.mark.asyncio
    @pytest.mark.parametrize("permission", [Permission.EDIT, Permission.DELETE])
    async def test_moderator_cannot_edit_others_trees(self, ownership, tree_id, moderator, permission):
        decision = await PermissionEvaluator(ownership).evaluate(moderator, Domain.TREE, tree_id, permission)
        assert decision.reason == DenyReason.FORBIDDEN

    @pytest.mark.asyncio
    async def test_moderator_owner_edits_own_tree(self, fake_ownership, tree_id, moderator):
        lookup = fake_ownership({tree_id: moderator.id})
        decision = await PermissionEvaluator(lookup).evaluate(moderator, Domain.TREE, tree_id, Permission.EDIT)
        assert decision.granted_by == GrantSource.OWNER


class TestLookupFailure:

    @pytest.mark.asyncio
    async def test_lookup_error_denies(self, fake_ownership, tree_id, basic_user):
        error = ConnectionError("store unreachable")
        lookup = fake_ownership(error=error)

        decision = await PermissionEvaluator(lookup).evaluate(basic_user, Domain.TREE, tree_id, Permission.EDIT)

        assert not decision.allowed
        assert decision.reason == DenyReason.LOOKUP_FAILED
        assert decision.cause is error
        assert lookup.calls == 1

    @pytest.mark.asyncio
    async def test_lookup_error_is_not_masked_by_role(self, fake_ownership, tree_id, moderator):
        lookup = fake_ownership(error=TimeoutError())
        decision = await PermissionEvaluator(lookup).evaluate(moderator, Domain.TREE, tree_id, Permission.DELETE)
        assert decision.reason == DenyReason.LOOKUP_FAILED


class TestPurity:

    @pytest.mark.asyncio
    async def test_same_inputs_same_decision(self, ownership, tree_id, basic_user, other_user):
        evaluator = PermissionEvaluator(ownership)
        for principal in (None, basic_user, other_user):
            for permission in Permission:
                first = await evaluator.evaluate(principal, Domain.TREE, tree_id, permission)
                second = await evaluator.evaluate(principal, Domain.TREE, tree_id, permission)
                assert first == second

    @pytest.mark.asyncio
    async def test_evaluate_ref_matches_evaluate(self, ownership, tree_id, basic_user):
        evaluator = PermissionEvaluator(ownership)
        ref = ResourceRef(domain=Domain.TREE, id=tree_id)
        assert await evaluator.evaluate_ref(basic_user, ref, Permission.EDIT) == await evaluator.evaluate(
            basic_user, Domain.TREE, tree_id, Permission.EDIT
        )


class TestDecision:

    def test_truthiness(self):
        assert Decision.allow(GrantSource.OPEN)
        assert not Decision.deny(DenyReason.FORBIDDEN)

    def test_principal_of_ignores_unknown_roles(self):
        principal = Principal.of(uuid.uuid4(), ["MODERATOR", "GARDENER"])
        assert principal.roles == frozenset({Role.MODERATOR})
        assert not principal.is_admin

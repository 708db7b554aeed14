"""Tests for RBAC roles, permission catalogue and capability engine."""

import pytest

from themis.core.outcomes import DenialReason, PermissionDenied
from themis.core.rbac import (
    PERMISSION_RULES,
    AccessLevel,
    Actor,
    PermissionName,
    ResourceContext,
    Role,
    RoleCapabilityEngine,
    can_view,
    evaluate,
    explain,
    get_access_level,
    get_role_permissions,
    parse_role,
)
from themis.core.rbac.checker import (
    can_approve_change_request,
    can_approve_weekly_update,
    get_change_request_approval_sequence,
    get_weekly_update_approval_sequence,
)
from themis.core.rbac.permissions import (
    PermissionRule,
    get_all_permissions,
    get_permission_rule,
    is_valid_permission,
    parse_permission,
)
from themis.core.rbac.roles import DEFAULT_ROLES, get_role_label


OWN = ResourceContext(is_own_item=True)
NOT_OWN = ResourceContext(is_own_item=False)


class TestRoles:
    """Test role definitions."""

    def test_every_role_has_defaults(self):
        """Test that each role has a label and an access level entry."""
        for role in Role:
            assert role in DEFAULT_ROLES
            assert DEFAULT_ROLES[role]["name"]

    def test_parse_role(self):
        assert parse_role("SUB_PMO") == Role.SUB_PMO
        assert parse_role(" main_pmo ") == Role.MAIN_PMO
        assert parse_role(Role.ADMIN) == Role.ADMIN

    def test_parse_unknown_role(self):
        assert parse_role("SUPERUSER") is None
        assert parse_role("") is None
        assert parse_role(None) is None
        assert parse_role(42) is None

    def test_access_levels(self):
        """Test role visibility levels."""
        assert get_access_level(Role.ADMIN) == AccessLevel.ALL
        assert get_access_level(Role.MAIN_PMO) == AccessLevel.ALL
        assert get_access_level(Role.EXECUTIVE) == AccessLevel.ALL
        assert get_access_level(Role.SUB_PMO) == AccessLevel.DEPARTMENT
        assert get_access_level(Role.DEPARTMENT_DIRECTOR) == AccessLevel.DEPARTMENT
        assert get_access_level(Role.PROJECT_MANAGER) == AccessLevel.OWN
        assert get_access_level(Role.DEVELOPER) == AccessLevel.OWN

    def test_pending_and_unknown_have_no_access(self):
        assert get_access_level(Role.PENDING) is None
        assert get_access_level("GHOST") is None

    def test_role_labels(self):
        assert get_role_label(Role.SUB_PMO) == "Sub PMO"
        assert get_role_label("GHOST") == "GHOST"
        assert get_role_label(None) == "Unknown"


class TestPermissionCatalogue:
    """Test the closed permission catalogue."""

    def test_every_permission_has_a_rule(self):
        for perm in PermissionName:
            assert isinstance(PERMISSION_RULES[perm], PermissionRule)

    def test_catalogue_matches_enum(self):
        assert set(get_all_permissions()) == {p.value for p in PermissionName}

    def test_parse_permission(self):
        assert parse_permission("approve_project") == PermissionName.APPROVE_PROJECT
        assert parse_permission("FLY_TO_MOON") is None
        assert parse_permission(None) is None

    def test_is_valid_permission(self):
        assert is_valid_permission("CREATE_PROJECT")
        assert not is_valid_permission("projects:create")

    def test_get_permission_rule(self):
        rule = get_permission_rule("APPROVE_PROJECT")
        assert Role.SUB_PMO in rule.not_own
        assert get_permission_rule("UNKNOWN") is None

    def test_holders_never_include_pending(self):
        for rule in PERMISSION_RULES.values():
            assert Role.PENDING not in rule.holders


class TestEvaluateFailSafe:
    """Test that anything unrecognized is denied without raising."""

    @pytest.mark.parametrize("permission", list(PermissionName))
    def test_actor_without_role_is_denied(self, permission):
        for actor in (
            None,
            Actor(user_id="u1", role=None),
            Actor(user_id="u1", role=""),
            Actor(user_id="u1", role="NOT_A_ROLE"),
        ):
            assert evaluate(permission, actor, OWN) is False
            assert evaluate(permission, actor) is False

    @pytest.mark.parametrize("permission", list(PermissionName))
    def test_pending_role_is_denied(self, permission):
        actor = Actor(user_id="u1", role=Role.PENDING)
        assert evaluate(permission, actor, OWN) is False

    def test_unknown_permission_is_denied(self):
        admin = Actor(user_id="a1", role=Role.ADMIN)
        for name in ("DELETE_EVERYTHING", "", None, 7, "projects:read"):
            assert evaluate(name, admin) is False

    def test_explain_unknown_permission(self):
        denial = explain("DELETE_EVERYTHING", Actor(user_id="a1", role=Role.ADMIN))
        assert isinstance(denial, PermissionDenied)
        assert denial.reason == DenialReason.UNKNOWN_PERMISSION

    def test_explain_unknown_role(self):
        denial = explain(PermissionName.CREATE_PROJECT, Actor(user_id="u1", role="WIZARD"))
        assert denial.reason == DenialReason.UNKNOWN_ROLE
        assert denial.details["role"] == "WIZARD"

    def test_explain_granted_is_none(self):
        assert explain(PermissionName.CREATE_PROJECT, Actor(user_id="a1", role=Role.ADMIN)) is None

    def test_denials_are_falsy(self):
        denial = explain(PermissionName.MANAGE_USERS, Actor(user_id="d1", role=Role.DEVELOPER))
        assert not denial
        assert denial.reason == DenialReason.PERMISSION_DENIED
        assert denial.to_dict()["reason"] == "permission_denied"


class TestDecisionRules:
    """Test representative catalogue decisions."""

    @pytest.mark.parametrize("role", [
        Role.ADMIN, Role.PROJECT_MANAGER, Role.MAIN_PMO, Role.SUB_PMO,
    ])
    def test_create_project_allowed(self, role):
        assert evaluate(PermissionName.CREATE_PROJECT, Actor(user_id="u1", role=role))

    @pytest.mark.parametrize("role", [
        Role.DEVELOPER, Role.DESIGNER, Role.QA, Role.TEAM_LEAD,
        Role.EXECUTIVE, Role.DEPARTMENT_DIRECTOR, Role.MANAGER,
    ])
    def test_create_project_denied(self, role):
        assert not evaluate(PermissionName.CREATE_PROJECT, Actor(user_id="u1", role=role))

    def test_project_manager_edits_only_own_project(self):
        pm = Actor(user_id="pm-1", role=Role.PROJECT_MANAGER)
        assert evaluate("EDIT_PROJECT", pm, OWN) is True
        assert evaluate("EDIT_PROJECT", pm, NOT_OWN) is False
        assert evaluate("EDIT_PROJECT", pm) is False

    def test_ownership_derived_from_owner_id(self):
        pm = Actor(user_id="pm-1", role=Role.PROJECT_MANAGER)
        assert evaluate("EDIT_PROJECT", pm, ResourceContext(owner_id="pm-1"))
        assert not evaluate("EDIT_PROJECT", pm, ResourceContext(owner_id="pm-2"))

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.MAIN_PMO, Role.SUB_PMO])
    def test_edit_project_unconditional(self, role):
        actor = Actor(user_id="u1", role=role)
        assert evaluate("EDIT_PROJECT", actor, OWN)
        assert evaluate("EDIT_PROJECT", actor, NOT_OWN)

    def test_sub_pmo_cannot_approve_own_project(self):
        sub = Actor(user_id="sub-1", role=Role.SUB_PMO)
        assert evaluate("APPROVE_PROJECT", sub, OWN) is False
        assert evaluate("APPROVE_PROJECT", sub, NOT_OWN) is True

    def test_sub_pmo_approval_needs_context(self):
        sub = Actor(user_id="sub-1", role=Role.SUB_PMO)
        assert evaluate("APPROVE_PROJECT", sub) is False

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.MAIN_PMO])
    def test_final_authority_approves_regardless_of_ownership(self, role):
        actor = Actor(user_id="u1", role=role)
        assert evaluate("APPROVE_PROJECT", actor, OWN)
        assert evaluate("APPROVE_PROJECT", actor, NOT_OWN)

    def test_sub_pmo_approval_scoped_to_department(self):
        sub = Actor(user_id="sub-1", role=Role.SUB_PMO, department_id="eng")
        same = ResourceContext(owner_id="pm-1", department_id="eng")
        other = ResourceContext(owner_id="pm-1", department_id="finance")
        assert evaluate("APPROVE_PROJECT", sub, same)
        assert not evaluate("APPROVE_PROJECT", sub, other)

    def test_main_pmo_not_scoped_to_department(self):
        main = Actor(user_id="main-1", role=Role.MAIN_PMO, department_id="eng")
        other = ResourceContext(owner_id="pm-1", department_id="finance")
        assert evaluate("APPROVE_PROJECT", main, other)

    def test_developer_cannot_approve(self):
        dev = Actor(user_id="dev-1", role=Role.DEVELOPER)
        assert not evaluate("APPROVE_PROJECT", dev, NOT_OWN)

    def test_developer_edits_own_task(self):
        dev = Actor(user_id="dev-1", role=Role.DEVELOPER)
        assert evaluate("EDIT_TASK", dev, OWN)
        assert not evaluate("EDIT_TASK", dev, NOT_OWN)

    def test_string_role_accepted(self):
        assert evaluate("CREATE_PROJECT", Actor(user_id="u1", role="project_manager"))


class TestPurity:
    """Test that evaluation is deterministic and side-effect free."""

    def test_repeated_evaluation_is_stable(self):
        sub = Actor(user_id="sub-1", role=Role.SUB_PMO, department_id="eng")
        ctx = ResourceContext(owner_id="pm-1", department_id="eng")
        results = {evaluate("APPROVE_PROJECT", sub, ctx) for _ in range(100)}
        assert results == {True}

    def test_evaluation_does_not_mutate_inputs(self):
        actor = Actor(user_id="pm-1", role=Role.PROJECT_MANAGER)
        ctx = ResourceContext(owner_id="pm-1")
        for perm in PermissionName:
            evaluate(perm, actor, ctx)
        assert actor == Actor(user_id="pm-1", role=Role.PROJECT_MANAGER)
        assert ctx == ResourceContext(owner_id="pm-1")

    def test_custom_rule_table(self):
        engine = RoleCapabilityEngine({
            PermissionName.CREATE_PROJECT: PermissionRule(allow=frozenset([Role.QA])),
        })
        assert engine.evaluate("CREATE_PROJECT", Actor(user_id="q", role=Role.QA))
        assert not engine.evaluate("CREATE_PROJECT", Actor(user_id="a", role=Role.ADMIN))
        assert not engine.evaluate("EDIT_PROJECT", Actor(user_id="a", role=Role.ADMIN))


class TestRolePermissions:
    """Test permission listing per role."""

    def test_admin_holds_most_permissions(self):
        perms = get_role_permissions(Role.ADMIN)
        assert PermissionName.MANAGE_USERS in perms
        assert PermissionName.APPROVE_PROJECT in perms
        assert PermissionName.CREATE_CHANGE_REQUEST not in perms

    def test_project_manager_permissions(self):
        perms = get_role_permissions("PROJECT_MANAGER")
        assert PermissionName.EDIT_PROJECT in perms
        assert PermissionName.APPROVE_PROJECT not in perms

    def test_unknown_role_has_none(self):
        assert get_role_permissions("GHOST") == []
        assert get_role_permissions(Role.PENDING) == []


class TestVisibility:
    """Test project visibility by access level."""

    def test_all_level_sees_everything(self):
        exec_ = Actor(user_id="x1", role=Role.EXECUTIVE)
        assert can_view(exec_, ResourceContext(owner_id="pm-9", department_id="ops"))

    def test_department_level(self):
        sub = Actor(user_id="sub-1", role=Role.SUB_PMO, department_id="eng")
        assert can_view(sub, ResourceContext(owner_id="pm-1", department_id="eng"))
        assert not can_view(sub, ResourceContext(owner_id="pm-1", department_id="ops"))
        assert can_view(sub, ResourceContext(owner_id="sub-1", department_id="ops"))

    def test_department_level_without_department(self):
        director = Actor(user_id="d1", role=Role.DEPARTMENT_DIRECTOR)
        assert not can_view(director, ResourceContext(owner_id="pm-1", department_id="eng"))

    def test_own_level(self):
        pm = Actor(user_id="pm-1", role=Role.PROJECT_MANAGER, department_id="eng")
        assert can_view(pm, ResourceContext(owner_id="pm-1"))
        assert not can_view(pm, ResourceContext(owner_id="pm-2", department_id="eng"))

    def test_no_role_sees_nothing(self):
        assert not can_view(None, ResourceContext(owner_id="pm-1"))
        assert not can_view(Actor(user_id="p", role=Role.PENDING), ResourceContext(owner_id="p"))


class TestTieredApprovals:
    """Test weekly update and change request approval tiers."""

    def test_weekly_update_tiers(self):
        sub = Actor(user_id="s", role=Role.SUB_PMO)
        main = Actor(user_id="m", role=Role.MAIN_PMO)
        assert can_approve_weekly_update(sub, "SUB_PMO")
        assert not can_approve_weekly_update(sub, "MAIN_PMO")
        assert can_approve_weekly_update(main, "SUB_PMO")
        assert can_approve_weekly_update(main, "main_pmo")
        assert not can_approve_weekly_update(main, "DIRECTOR")

    def test_change_request_tiers(self):
        director = Actor(user_id="d", role=Role.DEPARTMENT_DIRECTOR)
        admin = Actor(user_id="a", role=Role.ADMIN)
        assert can_approve_change_request(director, "DIRECTOR")
        assert not can_approve_change_request(director, "SUB_PMO")
        for level in ("SUB_PMO", "MAIN_PMO", "DIRECTOR"):
            assert can_approve_change_request(admin, level)

    def test_approval_sequences(self):
        assert get_weekly_update_approval_sequence() == [Role.SUB_PMO, Role.MAIN_PMO]
        assert get_change_request_approval_sequence() == [
            Role.SUB_PMO, Role.MAIN_PMO, Role.DEPARTMENT_DIRECTOR,
        ]

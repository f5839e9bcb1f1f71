"""
Tests for the access guard.

Verifies:
- Strict role equality with no hierarchy
- Anonymous requests are denied with a redirect to the entry point
- Role strings are accepted and unknown roles rejected
"""

import pytest

from core.access import ANONYMOUS_ENTRY_POINT, authorize
from core.identity import Identity, Role


def identity_for(role: Role) -> Identity:
    return Identity(role=role, subject_id=f"{role.value}-1", credential_token="tok")


class TestAuthorize:
    @pytest.mark.parametrize("held", list(Role))
    @pytest.mark.parametrize("required", list(Role))
    def test_allowed_only_on_exact_match(self, held, required):
        decision = authorize(identity_for(held), required)
        assert decision.allowed is (held is required)
        assert bool(decision) is (held is required)

    def test_denial_redirects_to_entry_point(self):
        decision = authorize(identity_for(Role.CITIZEN), Role.ADMIN)
        assert decision.redirect_to == ANONYMOUS_ENTRY_POINT

    def test_allowed_decision_has_no_redirect(self):
        assert authorize(identity_for(Role.SUPERVISOR), Role.SUPERVISOR).redirect_to is None

    def test_anonymous_is_denied(self):
        for role in Role:
            decision = authorize(None, role)
            assert not decision.allowed
            assert decision.redirect_to == ANONYMOUS_ENTRY_POINT

    def test_admin_is_not_a_supervisor(self):
        assert not authorize(identity_for(Role.ADMIN), Role.SUPERVISOR).allowed
        assert not authorize(identity_for(Role.ADMIN), Role.CITIZEN).allowed

    def test_role_given_as_string(self):
        assert authorize(identity_for(Role.ADMIN), "admin").allowed


class TestRoleParsing:
    def test_known_values(self):
        assert Role.parse("citizen") is Role.CITIZEN
        assert Role.parse(Role.ADMIN) is Role.ADMIN

    def test_unknown_value(self):
        assert Role.parse("superuser") is None
        assert Role.parse(None) is None

"""
Tests for role-based access decisions.
"""
import pytest

from onboarding.access import (
    AccessDenied,
    AccessGranted,
    BACKGROUND_CHECK_VIEWERS,
    ONBOARDING_PACKET_VIEWERS,
    decide_access,
)


class TestDecideAccess:

    @pytest.mark.parametrize("role", ["admin", "hr", "exec", "backgroundchecker"])
    def test_background_check_viewers_granted(self, role):
        decision = decide_access(role, BACKGROUND_CHECK_VIEWERS)
        assert decision == AccessGranted(role=role, via="role")

    @pytest.mark.parametrize("role", ["worker", "vendor", "manager", "finance"])
    def test_other_roles_denied(self, role):
        decision = decide_access(role, BACKGROUND_CHECK_VIEWERS)
        assert isinstance(decision, AccessDenied)
        assert role in decision.reason

    def test_role_is_trimmed_and_case_insensitive(self):
        decision = decide_access("  Admin \n", BACKGROUND_CHECK_VIEWERS)
        assert isinstance(decision, AccessGranted)
        assert decision.role == "admin"

    @pytest.mark.parametrize("role", ["background-checker", "background_checker", "Background Checker"])
    def test_legacy_background_checker_spellings_granted(self, role):
        decision = decide_access(role, BACKGROUND_CHECK_VIEWERS)
        assert decision == AccessGranted(role="backgroundchecker", via="role")

    def test_missing_role_denied(self):
        decision = decide_access(None, BACKGROUND_CHECK_VIEWERS)
        assert decision == AccessDenied(reason="No role assigned")

    def test_background_checker_cannot_view_packets(self):
        decision = decide_access("backgroundchecker", ONBOARDING_PACKET_VIEWERS)
        assert isinstance(decision, AccessDenied)

    def test_self_access_when_allowed(self):
        decision = decide_access(
            "worker",
            ONBOARDING_PACKET_VIEWERS,
            caller_id="user-1",
            subject_id="user-1",
            allow_self=True,
        )
        assert decision == AccessGranted(role="worker", via="self")

    def test_self_access_not_allowed_by_default(self):
        decision = decide_access(
            "worker",
            BACKGROUND_CHECK_VIEWERS,
            caller_id="user-1",
            subject_id="user-1",
        )
        assert isinstance(decision, AccessDenied)

    def test_other_user_denied_even_with_allow_self(self):
        decision = decide_access(
            "worker",
            ONBOARDING_PACKET_VIEWERS,
            caller_id="user-1",
            subject_id="user-2",
            allow_self=True,
        )
        assert isinstance(decision, AccessDenied)

    def test_privileged_role_wins_over_self(self):
        decision = decide_access(
            "hr",
            ONBOARDING_PACKET_VIEWERS,
            caller_id="user-1",
            subject_id="user-1",
            allow_self=True,
        )
        assert decision.via == "role"

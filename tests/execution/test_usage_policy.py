"""Tests for the guest-trial and token-balance usage policy."""

import pytest

from execution.usage_policy import UsageLedger, UsagePolicy, UserContext


@pytest.fixture
def policy():
    return UsagePolicy(guest_free_uses=2)


class TestGuests:
    def test_guest_allowed_within_free_uses(self, policy):
        guest = UserContext()
        assert guest.is_guest
        assert policy.consume(guest, "paraphrase").allowed
        assert policy.consume(guest, "paraphrase").allowed
        assert guest.guest_usage_count == 2

    def test_guest_denied_after_free_uses(self, policy):
        guest = UserContext(guest_usage_count=2)
        decision = policy.consume(guest, "summarize")
        assert not decision.allowed
        assert "free guest attempts" in decision.reason
        assert guest.guest_usage_count == 2

    def test_check_does_not_consume(self, policy):
        guest = UserContext()
        policy.check(guest)
        assert guest.guest_usage_count == 0

    def test_guest_cannot_get_tokens(self, policy):
        with pytest.raises(ValueError, match="login"):
            policy.reward_ad(UserContext())


class TestSignedInUsers:
    def test_consume_spends_a_token(self, policy):
        user = UserContext(user_id="u1", tokens=3)
        assert policy.consume(user, "grammar").allowed
        assert user.tokens == 2
        assert user.usage_log[-1]["tool"] == "grammar"

    def test_denied_without_tokens(self, policy):
        user = UserContext(user_id="u1", tokens=0)
        decision = policy.consume(user, "grammar")
        assert not decision.allowed
        assert "tokens left" in decision.reason
        assert user.usage_log == []

    def test_reward_ad_adds_tokens(self, policy):
        user = UserContext(user_id="u1", tokens=0)
        assert policy.reward_ad(user) == 5
        assert policy.consume(user, "plagiarism").allowed

    def test_add_tokens_rejects_non_positive(self, policy):
        with pytest.raises(ValueError, match="positive"):
            policy.add_tokens(UserContext(user_id="u1"), 0)


class TestUsageLedger:
    def test_same_key_same_context(self):
        ledger = UsageLedger()
        first = ledger.context_for("guest:1.2.3.4")
        assert ledger.context_for("guest:1.2.3.4") is first

    def test_user_id_applied_on_creation(self):
        ledger = UsageLedger()
        context = ledger.context_for("user:u1", user_id="u1")
        assert not context.is_guest
        assert context.user_id == "u1"

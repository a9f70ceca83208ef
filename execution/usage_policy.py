"""Usage policy: the guest-trial and token-balance capability check.

Guests get a small number of free generations; signed-in users spend one
token per generation. Callers ask ``check`` (pure) or ``consume`` (check and
record) before every LLM call. Billing and authentication themselves live
outside this module; a UserContext is whatever the caller says it is.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from config.settings import AD_REWARD_TOKENS, DEFAULT_TOKENS, GUEST_FREE_USES

logger = logging.getLogger(__name__)


@dataclass
class UserContext:
    """Per-caller usage state."""

    user_id: str | None = None
    tokens: int = DEFAULT_TOKENS
    guest_usage_count: int = 0
    usage_log: list[dict] = field(default_factory=list)

    @property
    def is_guest(self) -> bool:
        return self.user_id is None


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str = ""


class UsagePolicy:
    """Decides whether a UserContext may issue another generation."""

    def __init__(self, guest_free_uses: int = GUEST_FREE_USES):
        self.guest_free_uses = guest_free_uses
        self._lock = threading.Lock()

    def check(self, user: UserContext) -> AccessDecision:
        if user.is_guest:
            if user.guest_usage_count < self.guest_free_uses:
                return AccessDecision(True)
            return AccessDecision(
                False,
                f"You've used all {self.guest_free_uses} free guest attempts. "
                "Please login or create an account to continue.",
            )
        if user.tokens > 0:
            return AccessDecision(True)
        return AccessDecision(False, "You don't have any tokens left. Watch an ad to earn more tokens.")

    def consume(self, user: UserContext, tool: str) -> AccessDecision:
        """Check access and, when allowed, record one use of ``tool``."""
        with self._lock:
            decision = self.check(user)
            if not decision.allowed:
                logger.info("Usage denied for %s on %s", user.user_id or "guest", tool)
                return decision
            if user.is_guest:
                user.guest_usage_count += 1
            else:
                user.tokens -= 1
            user.usage_log.append({
                "tool": tool,
                "used_at": datetime.now(timezone.utc).isoformat(),
            })
            return decision

    def add_tokens(self, user: UserContext, amount: int) -> int:
        """Credit tokens to a signed-in user and return the new balance.

        Raises:
            ValueError: For guests or a non-positive amount.
        """
        if user.is_guest:
            raise ValueError("Guests cannot hold tokens; please login first")
        if amount <= 0:
            raise ValueError(f"Token amount must be positive, got {amount}")
        with self._lock:
            user.tokens += amount
            return user.tokens

    def reward_ad(self, user: UserContext) -> int:
        return self.add_tokens(user, AD_REWARD_TOKENS)


class UsageLedger:
    """Holds one UserContext per caller key."""

    def __init__(self):
        self._contexts: dict[str, UserContext] = {}
        self._lock = threading.Lock()

    def context_for(self, key: str, user_id: str | None = None) -> UserContext:
        with self._lock:
            if key not in self._contexts:
                self._contexts[key] = UserContext(user_id=user_id)
            return self._contexts[key]

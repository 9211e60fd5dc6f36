"""Static membership/grant table policy engine."""

from fnmatch import fnmatchcase
from typing import Mapping, Optional, Sequence

from ..broker.ports import PolicyPort
from ..models import PolicyDecision


class StaticPolicyEngine(PolicyPort):
    """Grants actions from fixed tables.

    ``memberships`` maps user_id -> tenant_id. ``grants`` maps tenant_id ->
    ``"resource:action"`` patterns; ``*`` and ``?`` wildcards follow fnmatch.
    """

    def __init__(
        self,
        memberships: Mapping[str, str],
        grants: Mapping[str, Sequence[str]],
    ):
        self.memberships = dict(memberships)
        self.grants = {tenant: list(patterns) for tenant, patterns in grants.items()}

    async def tenant_for_user(self, user_id: str) -> Optional[str]:
        return self.memberships.get(user_id)

    async def decide(
        self,
        tenant_id: str,
        user_id: str,
        resource: str,
        action: str,
    ) -> PolicyDecision:
        if self.memberships.get(user_id) != tenant_id:
            return PolicyDecision(allow=False, reason="tenant_mismatch")

        target = f"{resource}:{action}"
        for pattern in self.grants.get(tenant_id, []):
            if fnmatchcase(target, pattern):
                return PolicyDecision(allow=True, policy_id=f"{tenant_id}/{pattern}")

        return PolicyDecision(allow=False, reason="no_matching_grant")

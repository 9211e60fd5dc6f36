"""Authorization gate - tenant isolation and policy decisions."""

from dataclasses import replace
from typing import NoReturn, Optional

import structlog

from ..errors import AuthorizationError
from ..models import PolicyDecision
from .ports import PolicyPort

logger = structlog.get_logger(__name__)


class AuthorizationGate:
    """Decides whether {tenant, user} may perform {action} on {resource}."""

    def __init__(self, policy: PolicyPort):
        """
        Initialize authorization gate.

        Args:
            policy: PolicyPort implementation owned by the process entry point
        """
        self.policy = policy

    async def decide(
        self,
        tenant_id: str,
        user_id: str,
        resource: str,
        action: str,
        correlation_id: Optional[str] = None,
    ) -> PolicyDecision:
        """
        Return an allow decision or raise.

        Checks, in order:
        1. Tenant and user identifiers are present
        2. The policy engine places the user in the claimed tenant
        3. The policy engine allows the action on the resource

        Policy engine failures deny (fail closed).

        Args:
            tenant_id: Tenant claimed by the caller
            user_id: Authenticated user
            resource: Resource being accessed (provider name)
            action: Action being performed (e.g. supabase.create_table)
            correlation_id: Request correlation ID stamped on the decision

        Returns:
            PolicyDecision with allow=True and the request's correlation_id

        Raises:
            AuthorizationError: On any invalid identity, mismatch or denial
        """
        if not _is_identifier(tenant_id) or not _is_identifier(user_id):
            self._deny(tenant_id, user_id, resource, action, correlation_id, "missing_auth_context")

        try:
            member_of = await self.policy.tenant_for_user(user_id)
        except Exception as e:
            logger.error(
                "policy_engine_error",
                correlation_id=correlation_id,
                step="tenant_for_user",
                error_type=type(e).__name__,
            )
            self._deny(tenant_id, user_id, resource, action, correlation_id, "policy_unavailable")

        if member_of != tenant_id:
            self._deny(tenant_id, user_id, resource, action, correlation_id, "tenant_mismatch")

        try:
            decision = await self.policy.decide(tenant_id, user_id, resource, action)
        except Exception as e:
            logger.error(
                "policy_engine_error",
                correlation_id=correlation_id,
                step="decide",
                error_type=type(e).__name__,
            )
            self._deny(tenant_id, user_id, resource, action, correlation_id, "policy_unavailable")

        if not isinstance(decision, PolicyDecision):
            self._deny(tenant_id, user_id, resource, action, correlation_id, "policy_unavailable")

        if decision.allow is not True:
            self._deny(
                tenant_id,
                user_id,
                resource,
                action,
                correlation_id,
                decision.reason or "policy_denied",
                decision.policy_id,
            )

        decision = replace(decision, correlation_id=correlation_id)
        logger.info(
            "authorization_granted",
            correlation_id=correlation_id,
            tenant_id=tenant_id,
            user_id=user_id,
            resource=resource,
            action=action,
            policy_id=decision.policy_id,
        )
        return decision

    def _deny(
        self,
        tenant_id: str,
        user_id: str,
        resource: str,
        action: str,
        correlation_id: Optional[str],
        reason: str,
        policy_id: Optional[str] = None,
    ) -> NoReturn:
        logger.warning(
            "authorization_denied",
            correlation_id=correlation_id,
            tenant_id=tenant_id,
            user_id=user_id,
            resource=resource,
            action=action,
            reason=reason,
            policy_id=policy_id,
        )
        details = {"reason": reason}
        if policy_id:
            details["policy_id"] = policy_id
        raise AuthorizationError("Unauthorized", details=details)


def _is_identifier(value) -> bool:
    return isinstance(value, str) and bool(value.strip())

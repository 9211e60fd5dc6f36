"""Shared fakes for broker tests.

Every fake appends to a shared ``call_log`` so tests can assert the order in
which the broker touches its ports.
"""

import asyncio

import pytest

from tokenproxy.broker import (
    AuditPort,
    BrokerOrchestrator,
    PolicyPort,
    ProviderPort,
    SecretsPort,
)
from tokenproxy.models import CredentialHandle, OperationRequest, PolicyDecision

SERVICE_KEY = "SERVICE_ROLE_FAKE"
SUPABASE_URL = "https://example.supabase.co"


class FakePolicy(PolicyPort):
    def __init__(self, call_log, memberships=None, allow=True, reason=None, policy_id="policy-1"):
        self.call_log = call_log
        self.memberships = memberships if memberships is not None else {"user-1": "tenant-1"}
        self.allow = allow
        self.reason = reason
        self.policy_id = policy_id
        self.error = None
        self.delay = 0
        self.decide_calls = []

    async def tenant_for_user(self, user_id):
        self.call_log.append("policy.tenant_for_user")
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.memberships.get(user_id)

    async def decide(self, tenant_id, user_id, resource, action):
        self.call_log.append("policy.decide")
        self.decide_calls.append((tenant_id, user_id, resource, action))
        return PolicyDecision(allow=self.allow, reason=self.reason, policy_id=self.policy_id)


class FakeSecrets(SecretsPort):
    def __init__(self, call_log):
        self.call_log = call_log
        self.material = {"url": SUPABASE_URL, "key": SERVICE_KEY}
        self.error = None
        self.owner_tenant = None
        self.handles = []

    async def get_credential(self, tenant_id, provider, token_ref=None):
        self.call_log.append("secrets.get_credential")
        if self.error is not None:
            raise self.error
        handle = CredentialHandle(
            provider=provider,
            tenant_id=self.owner_tenant or tenant_id,
            material=self.material,
            token_ref=token_ref,
        )
        self.handles.append(handle)
        return handle


class RecordingAuditSink(AuditPort):
    def __init__(self, call_log):
        self.call_log = call_log
        self.events = []
        self.error = None

    async def record(self, event):
        self.call_log.append("audit.record")
        if self.error is not None:
            raise self.error
        self.events.append(event)


class FakeProvider(ProviderPort):
    """Records each call and the key it was handed."""

    name = "supabase"

    def __init__(self, call_log):
        self.call_log = call_log
        self.calls = []
        self.result = None
        self.error = None
        self.delay = 0

    async def _call(self, op, payload, credential):
        self.call_log.append(f"provider.{op}")
        self.calls.append((op, dict(payload), credential.reveal("key")))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return {"op": op}

    async def create_table(self, payload, credential):
        return await self._call("create_table", payload, credential)

    async def query(self, payload, credential):
        return await self._call("query", payload, credential)

    async def insert(self, payload, credential):
        return await self._call("insert", payload, credential)

    async def update(self, payload, credential):
        return await self._call("update", payload, credential)

    async def delete(self, payload, credential):
        return await self._call("delete", payload, credential)


@pytest.fixture
def call_log():
    return []


@pytest.fixture
def policy(call_log):
    return FakePolicy(call_log)


@pytest.fixture
def secrets(call_log):
    return FakeSecrets(call_log)


@pytest.fixture
def audit_sink(call_log):
    return RecordingAuditSink(call_log)


@pytest.fixture
def provider(call_log):
    return FakeProvider(call_log)


@pytest.fixture
def broker(policy, secrets, audit_sink, provider):
    return BrokerOrchestrator.from_ports(
        policy=policy,
        secrets=secrets,
        audit_sink=audit_sink,
        providers=[provider],
    )


@pytest.fixture
def make_request():
    def _make(**overrides):
        fields = {
            "tenant_id": "tenant-1",
            "user_id": "user-1",
            "correlation_id": "corr-123",
            "provider": "supabase",
            "operation_type": "create_table",
            "payload": {"name": "widgets"},
        }
        fields.update(overrides)
        return OperationRequest(**fields)

    return _make

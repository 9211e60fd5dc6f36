"""Unit tests for the credential broker."""

from unittest.mock import AsyncMock

import pytest

from tokenproxy.broker.credentials import CredentialBroker
from tokenproxy.errors import (
    AuthorizationError,
    CredentialError,
    InvalidCredential,
    MissingCredential,
)
from tokenproxy.models import CredentialHandle, PolicyDecision

ALLOW = PolicyDecision(allow=True, policy_id="p-1", correlation_id="corr-123")


def _handle(tenant_id="tenant-1", provider="supabase"):
    return CredentialHandle(
        provider=provider,
        tenant_id=tenant_id,
        material={"url": "https://example.supabase.co", "key": "SERVICE_ROLE_FAKE"},
    )


@pytest.fixture
def secrets_port():
    port = AsyncMock()
    port.get_credential.return_value = _handle()
    return port


@pytest.mark.asyncio
async def test_resolve_returns_handle(secrets_port):
    broker = CredentialBroker(secrets_port)

    handle = await broker.resolve("tenant-1", "supabase", "tok_1", decision=ALLOW)

    assert handle.reveal("key") == "SERVICE_ROLE_FAKE"
    secrets_port.get_credential.assert_awaited_once_with("tenant-1", "supabase", "tok_1")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "decision",
    [PolicyDecision(allow=False, reason="denied"), None, {"allow": True}],
)
async def test_requires_allow_decision(secrets_port, decision):
    broker = CredentialBroker(secrets_port)

    with pytest.raises(AuthorizationError):
        await broker.resolve("tenant-1", "supabase", decision=decision)

    secrets_port.get_credential.assert_not_called()


@pytest.mark.asyncio
async def test_missing_credential_propagates(secrets_port):
    secrets_port.get_credential.side_effect = MissingCredential("not configured")
    broker = CredentialBroker(secrets_port)

    with pytest.raises(MissingCredential):
        await broker.resolve("tenant-1", "supabase", decision=ALLOW)


@pytest.mark.asyncio
async def test_none_is_missing_credential(secrets_port):
    secrets_port.get_credential.return_value = None
    broker = CredentialBroker(secrets_port)

    with pytest.raises(MissingCredential):
        await broker.resolve("tenant-1", "supabase", decision=ALLOW)


@pytest.mark.asyncio
async def test_store_failure_wrapped(secrets_port):
    secrets_port.get_credential.side_effect = OSError("vault unreachable")
    broker = CredentialBroker(secrets_port)

    with pytest.raises(CredentialError) as exc_info:
        await broker.resolve("tenant-1", "supabase", decision=ALLOW)

    assert type(exc_info.value) is CredentialError
    assert "vault" not in exc_info.value.message


@pytest.mark.asyncio
async def test_raw_secret_rejected(secrets_port):
    secrets_port.get_credential.return_value = "SERVICE_ROLE_FAKE"
    broker = CredentialBroker(secrets_port)

    with pytest.raises(CredentialError):
        await broker.resolve("tenant-1", "supabase", decision=ALLOW)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handle",
    [_handle(tenant_id="tenant-2"), _handle(provider="stripe")],
)
async def test_mismatched_handle_blocked_and_wiped(secrets_port, handle):
    secrets_port.get_credential.return_value = handle
    broker = CredentialBroker(secrets_port)

    with pytest.raises(InvalidCredential) as exc_info:
        await broker.resolve("tenant-1", "supabase", decision=ALLOW)

    assert exc_info.value.details["reason"] == "tenant_or_provider_mismatch"
    assert handle.discarded is True

"""In-memory provider token store."""

from __future__ import annotations

import asyncio
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import structlog

from ..broker.ports import SecretsPort
from ..errors import InvalidCredential, MissingCredential
from ..models import CredentialHandle
from ..redaction import mask_secret

logger = structlog.get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TokenRecord:
    """Stored provider token. ``secret`` is excluded from repr."""

    id: str
    provider: str
    tenant_id: str
    secret: str = field(repr=False)
    url: Optional[str] = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def public_view(self) -> dict:
        """Record fields safe to return to a caller; the secret is masked."""
        return {
            "id": self.id,
            "provider": self.provider,
            "tenant_id": self.tenant_id,
            "secret": mask_secret(self.secret),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class MemoryTokenStore(SecretsPort):
    """Keeps token records in process memory, keyed by opaque id."""

    def __init__(self):
        self._records: dict[str, TokenRecord] = {}
        self._lock = asyncio.Lock()

    async def put(
        self,
        provider: str,
        tenant_id: str,
        secret: str,
        url: Optional[str] = None,
    ) -> TokenRecord:
        """Store a token and return its record (with a generated ``tok_`` id)."""
        record = TokenRecord(
            id=f"tok_{secrets.token_urlsafe(12)}",
            provider=provider,
            tenant_id=tenant_id,
            secret=secret,
            url=url,
        )
        async with self._lock:
            self._records[record.id] = record
        logger.info("token_stored", token_ref=record.id, provider=provider, tenant_id=tenant_id)
        return record

    async def get(self, token_id: str) -> Optional[TokenRecord]:
        return self._records.get(token_id)

    async def list_tokens(self, tenant_id: str) -> list[dict]:
        """Masked views of every token stored for a tenant."""
        return [r.public_view() for r in self._records.values() if r.tenant_id == tenant_id]

    async def delete(self, token_id: str) -> None:
        async with self._lock:
            self._records.pop(token_id, None)
        logger.info("token_deleted", token_ref=token_id)

    async def get_credential(
        self,
        tenant_id: str,
        provider: str,
        token_ref: Optional[str] = None,
    ) -> CredentialHandle:
        """
        Resolve a stored token into a handle.

        Raises:
            MissingCredential: If token_ref is absent or unknown
            InvalidCredential: If the token belongs to another tenant or provider
        """
        if not token_ref:
            raise MissingCredential("missing tokenId", details={"provider": provider})

        record = await self.get(token_ref)
        if record is None:
            raise MissingCredential(
                "Credential not found",
                details={"provider": provider, "token_ref": token_ref},
            )

        if record.provider != provider or record.tenant_id != tenant_id:
            raise InvalidCredential(
                "invalid token",
                details={"provider": provider, "token_ref": token_ref},
            )

        material = {"secret": record.secret}
        if record.url:
            material["url"] = record.url
            material["key"] = record.secret
        return CredentialHandle(
            provider=record.provider,
            tenant_id=record.tenant_id,
            material=material,
            token_ref=record.id,
        )

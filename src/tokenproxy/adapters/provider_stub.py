"""Stub Supabase provider returning deterministic results."""

from typing import Any, Mapping

import structlog

from ..broker.ports import ProviderPort
from ..models import CredentialHandle

logger = structlog.get_logger(__name__)


class StubSupabaseProvider(ProviderPort):
    """Stand-in for a Supabase REST client; performs no network I/O."""

    name = "supabase"

    def _check(self, credential: CredentialHandle) -> None:
        if not (credential.has("key") or credential.has("secret")):
            raise ValueError("credential has no usable key")

    async def create_table(self, payload: Mapping[str, Any], credential: CredentialHandle) -> Any:
        self._check(credential)
        logger.debug("stub_supabase_op", op="create_table", table=payload.get("name"))
        return {"created": True, "table": payload.get("name")}

    async def query(self, payload: Mapping[str, Any], credential: CredentialHandle) -> Any:
        self._check(credential)
        logger.debug("stub_supabase_op", op="query", table=payload.get("table"))
        return {"rows": [], "table": payload.get("table")}

    async def insert(self, payload: Mapping[str, Any], credential: CredentialHandle) -> Any:
        self._check(credential)
        values = payload.get("values")
        count = len(values) if isinstance(values, list) else 1
        logger.debug("stub_supabase_op", op="insert", table=payload.get("table"))
        return {"inserted": count, "table": payload.get("table")}

    async def update(self, payload: Mapping[str, Any], credential: CredentialHandle) -> Any:
        self._check(credential)
        logger.debug("stub_supabase_op", op="update", table=payload.get("table"))
        return {"updated": 0, "table": payload.get("table")}

    async def delete(self, payload: Mapping[str, Any], credential: CredentialHandle) -> Any:
        self._check(credential)
        logger.debug("stub_supabase_op", op="delete", table=payload.get("table"))
        return {"deleted": 0, "table": payload.get("table")}

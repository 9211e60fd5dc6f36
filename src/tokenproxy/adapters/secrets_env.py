"""Environment-variable secrets store."""

import os
from typing import Mapping, Optional

import structlog

from ..broker.ports import SecretsPort
from ..errors import MissingCredential
from ..models import CredentialHandle

logger = structlog.get_logger(__name__)

SUPABASE_PROVIDER = "supabase"


class EnvSecretsStore(SecretsPort):
    """Reads a shared Supabase service credential from the environment.

    The credential is process-wide, so the handle is issued for the requesting
    tenant. Use a token store when credentials are tenant-specific.
    """

    def __init__(
        self,
        url_env: str = "SUPABASE_URL",
        key_env: str = "SUPABASE_SERVICE_KEY",
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.url_env = url_env
        self.key_env = key_env
        self._environ = environ if environ is not None else os.environ

    async def get_credential(
        self,
        tenant_id: str,
        provider: str,
        token_ref: Optional[str] = None,
    ) -> CredentialHandle:
        if provider != SUPABASE_PROVIDER:
            raise MissingCredential(
                "Credential not configured",
                details={"provider": provider},
            )

        url = self._environ.get(self.url_env)
        key = self._environ.get(self.key_env)
        if not url or not key:
            logger.warning(
                "env_credentials_missing",
                provider=provider,
                url_env=self.url_env,
                key_env=self.key_env,
            )
            raise MissingCredential(
                "Supabase credentials not configured",
                details={"provider": provider},
            )

        return CredentialHandle(
            provider=provider,
            tenant_id=tenant_id,
            material={"url": url, "key": key},
            token_ref=token_ref,
        )

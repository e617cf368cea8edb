"""
Credential Store
Per-tenant auth data (API URL + app token) persisted in saleor_app_configuration.
Rows are soft-deleted via is_active so a reinstall can reactivate them.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import select, text, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database import AppConfiguration, AsyncSessionLocal
from settings import APP_NAME, missing_credential_store_vars
from utils import mask_token, retry_async

logger = logging.getLogger(__name__)


@dataclass
class AuthData:
    """What the app installation handshake leaves behind for a tenant."""
    saleor_api_url: str
    token: str
    app_id: Optional[str] = None
    domain: Optional[str] = None

    @classmethod
    def from_configuration(cls, config: Dict[str, Any]) -> "AuthData":
        return cls(
            saleor_api_url=config.get("saleorApiUrl") or config.get("saleor_api_url") or "",
            token=config.get("token") or "",
            app_id=config.get("appId") or config.get("app_id"),
            domain=config.get("domain"),
        )

    def to_configuration(self) -> Dict[str, Any]:
        return {
            "saleorApiUrl": self.saleor_api_url,
            "token": self.token,
            "appId": self.app_id,
            "domain": self.domain,
        }


class CredentialStore:
    """Repository over AppConfiguration rows scoped to one app name."""

    def __init__(
        self,
        app_name: str = APP_NAME,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    ):
        self.app_name = app_name
        self._session_factory = session_factory

    @retry_async(max_retries=2, base_delay=0.25)
    async def get(self, tenant: str) -> Optional[AuthData]:
        """Active auth data for `tenant` (its API URL), or None when not installed."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(AppConfiguration.configurations).where(
                    AppConfiguration.tenant == tenant,
                    AppConfiguration.app_name == self.app_name,
                    AppConfiguration.is_active.is_(True),
                )
            )
            config = result.scalars().first()

        if config is None:
            logger.info(f"No active auth data found for tenant: {tenant}, app: {self.app_name}")
            return None

        auth = AuthData.from_configuration(config)
        logger.info(f"Auth data found for tenant: {tenant}, app: {self.app_name}, token {mask_token(auth.token)}")
        return auth

    async def set(self, auth: AuthData) -> None:
        """Insert or replace auth data for auth.saleor_api_url and mark it active."""
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    select(AppConfiguration).where(
                        AppConfiguration.tenant == auth.saleor_api_url,
                        AppConfiguration.app_name == self.app_name,
                    )
                )
                row = result.scalar_one_or_none()
                if row is None:
                    db.add(
                        AppConfiguration(
                            tenant=auth.saleor_api_url,
                            app_name=self.app_name,
                            configurations=auth.to_configuration(),
                            is_active=True,
                        )
                    )
                else:
                    row.configurations = auth.to_configuration()
                    row.is_active = True
        logger.info(
            f"Auth data saved and activated for tenant: {auth.saleor_api_url}, "
            f"app: {self.app_name}, token {mask_token(auth.token)}"
        )

    async def _set_active(self, tenant: str, active: bool) -> int:
        async with self._session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(AppConfiguration)
                    .where(
                        AppConfiguration.tenant == tenant,
                        AppConfiguration.app_name == self.app_name,
                    )
                    .values(is_active=active)
                )
        return result.rowcount or 0

    async def delete(self, tenant: str) -> int:
        """Soft delete: the row stays, is_active flips to False."""
        count = await self._set_active(tenant, False)
        logger.info(f"Soft deleted {count} rows for tenant: {tenant}, app: {self.app_name}")
        return count

    async def activate(self, tenant: str) -> int:
        count = await self._set_active(tenant, True)
        logger.info(f"Activated {count} rows for tenant: {tenant}, app: {self.app_name}")
        return count

    async def get_all(self) -> List[AuthData]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(AppConfiguration.configurations).where(
                    AppConfiguration.app_name == self.app_name,
                    AppConfiguration.is_active.is_(True),
                )
            )
            configs = result.scalars().all()
        logger.info(f"Retrieved {len(configs)} auth data entries for app: {self.app_name}")
        return [AuthData.from_configuration(c) for c in configs]

    async def is_ready(self) -> Dict[str, Any]:
        try:
            async with self._session_factory() as db:
                await db.execute(text("SELECT 1"))
            return {"ready": True}
        except Exception as e:
            logger.error(f"Credential store readiness check failed: {e}")
            return {"ready": False, "error": str(e)}

    def is_configured(self) -> Dict[str, Any]:
        missing = missing_credential_store_vars()
        if missing:
            return {
                "configured": False,
                "error": f"Missing required environment variables: {', '.join(missing)}",
            }
        return {"configured": True}


# Global instance for application use
credential_store = CredentialStore()

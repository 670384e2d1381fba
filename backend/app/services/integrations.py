"""Integration connections for the calling user within a tenant."""

import logging
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.errors import NotFoundError, ValidationError
from backend.app.db.models import Connection
from backend.app.integrations.base import (
    AdapterRegistry,
    ConnectionRef,
    IntegrationAdapter,
)
from backend.app.models.common import ConnectionStatus, IntegrationMethod, IntegrationProvider
from backend.app.services.base import BaseEntityService, PermissionContext

logger = logging.getLogger(__name__)

EMAIL_INGESTOR = "new_email"


class ConnectionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    connection_id: uuid.UUID
    provider: IntegrationProvider
    method: IntegrationMethod
    external_id: str | None
    status: ConnectionStatus
    enabled_capabilities: list[str]
    metadata: dict[str, Any] = Field(validation_alias="metadata_")
    created_at: datetime
    updated_at: datetime


class ConnectOut(BaseModel):
    provider: IntegrationProvider
    method: IntegrationMethod
    provider_account_id: str
    connection_data: dict[str, Any]


def _ref(connection: Connection) -> ConnectionRef:
    return ConnectionRef(
        connection_id=connection.connection_id,
        tenant_id=connection.tenant_id,
        user_id=connection.user_id,
        external_id=connection.external_id,
    )


class IntegrationService(BaseEntityService):
    """Connect, finalize and disconnect provider accounts via adapters."""

    def __init__(
        self,
        session: AsyncSession,
        permission_context: PermissionContext,
        adapters: AdapterRegistry,
    ) -> None:
        super().__init__(session, permission_context)
        self.adapters = adapters

    def _adapter(
        self, provider: IntegrationProvider, method: IntegrationMethod
    ) -> IntegrationAdapter:
        adapter = self.adapters.get(provider, method)
        if adapter is None:
            raise ValidationError(
                f"No adapter available for provider {provider.value} and method {method.value}",
                details=[
                    {"field": "provider", "message": "Unsupported provider/method", "type": "adapter"}
                ],
            )
        return adapter

    async def _find(self, provider: IntegrationProvider) -> Connection | None:
        result = await self.session.execute(
            select(Connection).where(
                Connection.tenant_id == self.tenant_id,
                Connection.user_id == self.user_id,
                Connection.provider == provider.value,
            )
        )
        return result.scalars().first()

    async def list_connections(self) -> list[ConnectionOut]:
        """List the caller's own connections in this tenant."""
        self.require("read", "Insufficient permissions to list integrations")

        result = await self.session.execute(
            select(Connection)
            .where(Connection.tenant_id == self.tenant_id, Connection.user_id == self.user_id)
            .order_by(Connection.created_at)
        )
        return [ConnectionOut.model_validate(row) for row in result.scalars()]

    def available_providers(self) -> list[dict[str, str]]:
        return self.adapters.available()

    async def connect(
        self, provider: IntegrationProvider, method: IntegrationMethod
    ) -> ConnectOut:
        """Start the provider flow. Nothing is stored until the callback."""
        self.require("create", "Insufficient permissions to connect integrations")
        adapter = self._adapter(provider, method)

        result = await adapter.connect(self.tenant_id, self.user_id)
        return ConnectOut(
            provider=provider,
            method=method,
            provider_account_id=result.provider_account_id,
            connection_data=result.connection_data,
        )

    async def finalize_connection(
        self,
        provider: IntegrationProvider,
        method: IntegrationMethod,
        provider_account_id: str,
        connection_data: dict[str, Any] | None = None,
    ) -> ConnectionOut:
        """Upsert the connection after the provider flow completes.

        Google connections also get a new-email ingestor deployed.
        """
        self.require("create", "Insufficient permissions to connect integrations")
        adapter = self._adapter(provider, method)

        connection = await self._find(provider)
        if connection is None:
            connection = Connection(
                tenant_id=self.tenant_id,
                user_id=self.user_id,
                provider=provider.value,
                method=method.value,
                enabled_capabilities=list(adapter.capabilities),
            )
            self.session.add(connection)

        connection.method = method.value
        connection.external_id = provider_account_id
        connection.status = ConnectionStatus.active.value
        connection.credentials = {}
        connection.metadata_ = dict(connection_data or {})
        await self.session.flush()

        if provider == IntegrationProvider.google:
            ingestor = await adapter.deploy_ingestor(_ref(connection), EMAIL_INGESTOR)
            logger.info(
                f"Deployed {EMAIL_INGESTOR} ingestor for connection {connection.connection_id}",
                extra={"structured": {"ingestor_id": ingestor.ingestor_id, "provider": provider.value}},
            )

        return ConnectionOut.model_validate(connection)

    async def disconnect(self, provider: IntegrationProvider, method: IntegrationMethod) -> None:
        """Remove ingestors, release the provider account, then delete the row.

        Raises:
            NotFoundError: If the caller has no connection for the provider
        """
        self.require("create", "Insufficient permissions to disconnect integrations")
        adapter = self._adapter(provider, method)

        connection = await self._find(provider)
        if connection is None:
            raise NotFoundError("Connection not found")

        ref = _ref(connection)
        for ingestor in await adapter.list_ingestors(ref):
            await adapter.remove_ingestor(ref, ingestor.ingestor_id)
        await adapter.disconnect(ref)

        await self.session.delete(connection)
        await self.session.flush()

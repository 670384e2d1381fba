"""Integration adapter interface and registry."""

import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from backend.app.models.common import IntegrationMethod, IntegrationProvider


class ProviderError(Exception):
    """An outbound provider call failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class ConnectionRef:
    """What an adapter needs to know about a stored connection."""

    connection_id: uuid.UUID
    tenant_id: uuid.UUID
    user_id: uuid.UUID | None
    external_id: str | None


@dataclass
class ConnectionResult:
    """Outcome of starting a connection.

    provider_account_id is "pending" until the provider calls back.
    """

    provider_account_id: str
    connection_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Ingestor:
    ingestor_id: str
    name: str


class IntegrationAdapter(ABC):
    """One provider reached through one connection method."""

    provider: IntegrationProvider
    method: IntegrationMethod
    capabilities: tuple[str, ...] = ()

    @abstractmethod
    async def connect(self, tenant_id: uuid.UUID, user_id: uuid.UUID) -> ConnectionResult:
        """Start (or reuse) a provider connection for a user in a tenant."""

    @abstractmethod
    async def disconnect(self, connection: ConnectionRef) -> None:
        """Release provider-side resources for a connection."""

    @abstractmethod
    async def deploy_ingestor(self, connection: ConnectionRef, kind: str) -> Ingestor:
        """Deploy an ingestor that pushes provider events back to us."""

    @abstractmethod
    async def list_ingestors(self, connection: ConnectionRef) -> list[Ingestor]:
        """List ingestors currently deployed for a connection."""

    @abstractmethod
    async def remove_ingestor(self, connection: ConnectionRef, ingestor_id: str) -> None:
        """Remove one deployed ingestor."""


class AdapterRegistry:
    """Adapters keyed by (provider, method), built once at startup."""

    def __init__(self, adapters: Iterable[IntegrationAdapter] = ()) -> None:
        self._adapters: dict[tuple[IntegrationProvider, IntegrationMethod], IntegrationAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: IntegrationAdapter) -> None:
        self._adapters[(adapter.provider, adapter.method)] = adapter

    def get(
        self, provider: IntegrationProvider, method: IntegrationMethod
    ) -> IntegrationAdapter | None:
        return self._adapters.get((provider, method))

    def available(self) -> list[dict[str, str]]:
        return [
            {"provider": provider.value, "method": method.value}
            for provider, method in self._adapters
        ]

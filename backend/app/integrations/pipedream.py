"""Pipedream Connect client and the Gmail adapter built on it."""

import asyncio
import logging
import time
import uuid
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import httpx

from backend.app.config import Settings
from backend.app.integrations.base import (
    ConnectionRef,
    ConnectionResult,
    Ingestor,
    IntegrationAdapter,
    ProviderError,
)
from backend.app.models.common import IntegrationMethod, IntegrationProvider

logger = logging.getLogger(__name__)

# Refresh the OAuth token this many seconds before it expires
TOKEN_EXPIRY_MARGIN_S = 60

GMAIL_NEW_EMAIL_TRIGGER = "gmail-new-email-received"
GMAIL_NEW_EMAIL_TRIGGER_VERSION = "0.3.3"
GMAIL_POLL_INTERVAL_S = 15


class PipedreamClient:
    """Thin async client for the Pipedream Connect REST API.

    The http client is injected and owned by the caller. Requests are
    authenticated with a client-credentials OAuth token cached on the
    instance until shortly before expiry.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        client_id: str,
        client_secret: str,
        project_id: str,
        environment: str = "development",
        base_url: str = "https://api.pipedream.com/v1",
    ) -> None:
        if not client_id or not client_secret or not project_id:
            raise ValueError(
                "Missing Pipedream configuration: "
                f"client_id={bool(client_id)}, client_secret={bool(client_secret)}, "
                f"project_id={bool(project_id)}"
            )
        self._client = client
        self._client_id = client_id
        self._client_secret = client_secret
        self._project_id = project_id
        self._environment = environment
        self._base_url = base_url.rstrip("/")
        self._token: str | None = None
        self._token_expires_at = 0.0

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "PipedreamClient":
        return cls(
            client,
            client_id=settings.pipedream_client_id,
            client_secret=settings.pipedream_client_secret,
            project_id=settings.pipedream_project_id,
            environment=settings.pipedream_environment,
            base_url=settings.pipedream_api_base_url,
        )

    @staticmethod
    def external_user_id(tenant_id: uuid.UUID | str, user_id: uuid.UUID | str) -> str:
        return f"{tenant_id}:{user_id}"

    async def _oauth_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        response = await self._client.post(
            f"{self._base_url}/oauth/token",
            json={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "scope": "connect:*",
            },
        )
        if response.is_error:
            raise ProviderError(
                f"Failed to generate OAuth token: {response.status_code}", response.status_code
            )

        data = response.json()
        self._token = data["access_token"]
        self._token_expires_at = time.monotonic() + int(data["expires_in"]) - TOKEN_EXPIRY_MARGIN_S
        return self._token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        missing_ok: bool = False,
    ) -> Any:
        token = await self._oauth_token()
        response = await self._client.request(
            method,
            f"{self._base_url}/connect/{self._project_id}{path}",
            params=params,
            json=json,
            headers={
                "Authorization": f"Bearer {token}",
                "x-pd-environment": self._environment,
            },
        )
        if missing_ok and response.status_code == 404:
            return None
        if response.is_error:
            raise ProviderError(
                f"Pipedream {method} {path} failed: {response.status_code}", response.status_code
            )
        if not response.content:
            return None
        return response.json()

    async def list_accounts(
        self, tenant_id: uuid.UUID, user_id: uuid.UUID, app: str | None = None
    ) -> list[dict[str, Any]]:
        params = {"external_user_id": self.external_user_id(tenant_id, user_id)}
        if app:
            params["app"] = app
        data = await self._request("GET", "/accounts", params=params)
        return list((data or {}).get("data", []))

    async def create_connect_token(
        self,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        *,
        app: str,
        site_url: str,
        provider: str,
        method: str,
    ) -> dict[str, Any]:
        """Create a Connect token for the hosted account-linking flow.

        Returns:
            Dict with token, connect_url (with the app preselected) and expires_at
        """
        redirect_query = urlencode(
            {"provider": provider, "method": method, "organizationId": str(tenant_id)}
        )
        data = await self._request(
            "POST",
            "/tokens",
            json={
                "external_user_id": self.external_user_id(tenant_id, user_id),
                "allowed_origins": [site_url],
                "success_redirect_uri": f"{site_url}/integrations/callback/success?{redirect_query}",
                "error_redirect_uri": f"{site_url}/integrations/callback/error?{redirect_query}",
                "webhook_uri": f"{site_url}/api/webhooks/pipedream",
            },
        )

        parsed = urlparse(data["connect_link_url"])
        query = parse_qsl(parsed.query) + [("app", app)]
        return {
            "token": data["token"],
            "connect_url": urlunparse(parsed._replace(query=urlencode(query))),
            "expires_at": data.get("expires_at"),
        }

    async def delete_account(self, account_id: str) -> None:
        """Delete a connected account. An already-deleted account counts as success."""
        await self._request("DELETE", f"/accounts/{account_id}", missing_ok=True)

    async def deploy_trigger(
        self, tenant_id: uuid.UUID, user_id: uuid.UUID, trigger: dict[str, Any]
    ) -> dict[str, Any]:
        data = await self._request(
            "POST",
            "/triggers/deploy",
            json={"external_user_id": self.external_user_id(tenant_id, user_id), **trigger},
        )
        return dict((data or {}).get("data") or {})

    async def list_deployed_triggers(
        self, tenant_id: uuid.UUID, user_id: uuid.UUID
    ) -> list[dict[str, Any]]:
        data = await self._request(
            "GET",
            "/deployed-triggers",
            params={"external_user_id": self.external_user_id(tenant_id, user_id)},
        )
        items = (data or {}).get("data")
        return list(items) if isinstance(items, list) else []

    async def delete_deployed_trigger(
        self, tenant_id: uuid.UUID, user_id: uuid.UUID, trigger_id: str
    ) -> None:
        await self._request(
            "DELETE",
            f"/deployed-triggers/{trigger_id}",
            params={"external_user_id": self.external_user_id(tenant_id, user_id)},
            missing_ok=True,
        )


class GmailPipedreamAdapter(IntegrationAdapter):
    """Google mail connected through Pipedream Connect."""

    provider = IntegrationProvider.google
    method = IntegrationMethod.pipedream_connect
    capabilities = ("sync_inbox", "send_email")
    app = "gmail"

    def __init__(self, client: PipedreamClient, *, site_url: str, ingestor_endpoint: str) -> None:
        self._client = client
        self._site_url = site_url
        self._ingestor_endpoint = ingestor_endpoint

    async def connect(self, tenant_id: uuid.UUID, user_id: uuid.UUID) -> ConnectionResult:
        """Reuse a healthy linked account, or hand out a Connect token."""
        accounts = await self._client.list_accounts(tenant_id, user_id, self.app)
        active = next((a for a in accounts if a.get("healthy") and not a.get("dead")), None)
        if active is not None:
            return ConnectionResult(
                provider_account_id=active["id"],
                connection_data={"account_id": active["id"], "account_name": active.get("name")},
            )

        token = await self._client.create_connect_token(
            tenant_id,
            user_id,
            app=self.app,
            site_url=self._site_url,
            provider=self.provider.value,
            method=self.method.value,
        )
        return ConnectionResult(
            provider_account_id="pending",
            connection_data={
                "connect_token": token["token"],
                "connect_url": token["connect_url"],
                "expires_at": token["expires_at"],
                "external_user_id": PipedreamClient.external_user_id(tenant_id, user_id),
            },
        )

    async def disconnect(self, connection: ConnectionRef) -> None:
        """Delete every linked account for the connection's user.

        Best effort: provider failures are logged so the local disconnect
        can still proceed.
        """
        if connection.user_id is None:
            return

        try:
            accounts = await self._client.list_accounts(
                connection.tenant_id, connection.user_id, self.app
            )
        except (ProviderError, httpx.HTTPError) as e:
            logger.warning("Failed to list Pipedream accounts for disconnect: %s", e)
            return

        results = await asyncio.gather(
            *(self._client.delete_account(a["id"]) for a in accounts), return_exceptions=True
        )
        for account, result in zip(accounts, results):
            if isinstance(result, Exception):
                logger.warning("Failed to delete Pipedream account %s: %s", account["id"], result)

    async def deploy_ingestor(self, connection: ConnectionRef, kind: str) -> Ingestor:
        if kind != "new_email":
            raise ValueError(f"Unsupported ingestor type: {kind}")
        if not self._ingestor_endpoint:
            raise ProviderError("INGESTOR_ENDPOINT_GMAIL is not set")
        if connection.user_id is None:
            raise ProviderError("Gmail ingestors require a user-owned connection")

        webhook_url = f"{self._ingestor_endpoint}?{urlencode({'connectionId': str(connection.connection_id)})}"
        source = await self._client.deploy_trigger(
            connection.tenant_id,
            connection.user_id,
            {
                "id": GMAIL_NEW_EMAIL_TRIGGER,
                "version": GMAIL_NEW_EMAIL_TRIGGER_VERSION,
                "configured_props": {
                    "gmail": {"authProvisionId": connection.external_id or ""},
                    "timer": {"intervalSeconds": GMAIL_POLL_INTERVAL_S},
                    "labels": ["INBOX", "SENT"],
                },
                "webhook_url": webhook_url,
                "emit_on_deploy": False,
            },
        )
        return Ingestor(ingestor_id=source.get("id", ""), name=source.get("name", ""))

    async def list_ingestors(self, connection: ConnectionRef) -> list[Ingestor]:
        if connection.user_id is None:
            return []
        triggers = await self._client.list_deployed_triggers(connection.tenant_id, connection.user_id)
        return [Ingestor(ingestor_id=t["id"], name=t.get("name", "")) for t in triggers]

    async def remove_ingestor(self, connection: ConnectionRef, ingestor_id: str) -> None:
        if connection.user_id is None:
            return
        await self._client.delete_deployed_trigger(
            connection.tenant_id, connection.user_id, ingestor_id
        )

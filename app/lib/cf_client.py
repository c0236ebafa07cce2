"""Cloud Controller v2 API client for inventory listing."""

from __future__ import annotations

import asyncio
import time
from contextlib import AbstractAsyncContextManager
from typing import Any

import httpx
from pydantic import ValidationError

from app.applications.schemas import Organization, Space, SpaceSummary
from app.lib.logger import get_logger
from app.lib.metrics import METRICS


class CloudFoundryClientError(RuntimeError):
    """Raised when the Cloud Controller or UAA request fails."""


logger = get_logger(__name__)

_TOKEN_EXPIRY_MARGIN_SECONDS = 30.0


class CloudFoundryClient(AbstractAsyncContextManager["CloudFoundryClient"]):
    """Thin async wrapper around the Cloud Controller v2 endpoints the exporter reads."""

    def __init__(
        self,
        api_url: str,
        *,
        username: str | None = None,
        password: str | None = None,
        client_id: str = "cf",
        client_secret: str = "",
        skip_ssl_validation: bool = False,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self._username = username
        self._password = password
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = httpx.AsyncClient(
            base_url=self.api_url,
            timeout=timeout,
            verify=not skip_ssl_validation,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._token_endpoint: str | None = None
        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    async def __aenter__(self) -> "CloudFoundryClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    # ---- Inventory ----

    async def list_organizations(self) -> list[Organization]:
        resources = await self._list_resources("/v2/organizations", scope="organizations")
        return [self._parse(Organization.from_resource, resource) for resource in resources]

    async def list_organization_spaces(self, organization_guid: str) -> list[Space]:
        resources = await self._list_resources(
            f"/v2/organizations/{organization_guid}/spaces",
            scope="spaces",
        )
        return [self._parse(Space.from_resource, resource) for resource in resources]

    async def get_space_summary(self, space_guid: str) -> SpaceSummary:
        data = await self._get_json(f"/v2/spaces/{space_guid}/summary", scope="space_summary")
        return self._parse(SpaceSummary.model_validate, data)

    # ---- Plumbing ----

    @staticmethod
    def _parse(factory, payload: dict[str, Any]):
        try:
            return factory(payload)
        except (ValidationError, TypeError) as exc:
            raise CloudFoundryClientError(f"Unexpected Cloud Controller response shape: {exc}") from exc

    async def _list_resources(self, path: str, *, scope: str) -> list[dict[str, Any]]:
        """Collect `resources` across every page, following `next_url`."""

        resources: list[dict[str, Any]] = []
        url: str | None = path
        while url:
            data = await self._get_json(url, scope=scope)
            page = data.get("resources")
            if not isinstance(page, list):
                raise CloudFoundryClientError(f"Unexpected Cloud Controller list response for {path}")
            resources.extend(page)
            url = data.get("next_url")
        return resources

    async def _get_json(self, url: str, *, scope: str, retry_auth: bool = True) -> dict[str, Any]:
        token = await self._get_access_token()
        response = await self._send("GET", url, scope=scope, headers={"Authorization": f"bearer {token}"})
        if response.status_code == 401 and retry_auth:
            logger.info("cf.token.rejected", extra={"url": url, "scope": scope})
            await self._invalidate_token(token)
            return await self._get_json(url, scope=scope, retry_auth=False)
        self._raise_for_status(response, url=url, scope=scope)
        return self._decode(response, scope=scope)

    async def _send(self, method: str, url: str, *, scope: str, **kwargs: Any) -> httpx.Response:
        logger.debug("cf.request", extra={"method": method, "url": url, "scope": scope})
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            METRICS.increment("cf.requests.error")
            logger.warning(
                "cf.request.network_error",
                extra={"method": method, "url": url, "scope": scope, "reason": str(exc)},
            )
            raise CloudFoundryClientError(f"Cloud Foundry request failed (network): {method} {url}") from exc

    def _raise_for_status(self, response: httpx.Response, *, url: str, scope: str) -> None:
        if response.status_code < 400:
            return
        METRICS.increment("cf.requests.error")
        try:
            detail_json = response.json()
            if isinstance(detail_json, dict):
                detail = detail_json.get("description") or detail_json.get("error_description") or detail_json
            else:
                detail = detail_json
        except ValueError:  # response not json
            detail = response.text
        detail_display = detail[:200] if isinstance(detail, str) else str(detail)[:200]
        logger.warning(
            "cf.request.http_error",
            extra={"url": url, "scope": scope, "status": response.status_code, "detail": detail_display},
        )
        raise CloudFoundryClientError(
            f"Cloud Foundry request failed ({response.status_code}) for {url}: {detail_display}"
        )

    @staticmethod
    def _decode(response: httpx.Response, *, scope: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise CloudFoundryClientError(f"Invalid JSON returned from Cloud Foundry ({scope})") from exc
        if not isinstance(data, dict):
            raise CloudFoundryClientError(f"Unexpected Cloud Foundry response shape ({scope})")
        return data

    # ---- Authentication ----

    async def _get_access_token(self) -> str:
        async with self._token_lock:
            if self._access_token is None or time.monotonic() >= self._token_expires_at:
                await self._refresh_token()
            assert self._access_token is not None
            return self._access_token

    async def _invalidate_token(self, rejected: str) -> None:
        """Drop the cached token unless a concurrent request already replaced it."""

        async with self._token_lock:
            if self._access_token == rejected:
                self._access_token = None

    async def _discover_token_endpoint(self) -> str:
        if self._token_endpoint is None:
            response = await self._send("GET", "/v2/info", scope="info")
            self._raise_for_status(response, url="/v2/info", scope="info")
            info = self._decode(response, scope="info")
            endpoint = info.get("token_endpoint")
            if not isinstance(endpoint, str) or not endpoint:
                raise CloudFoundryClientError("Cloud Controller info did not advertise a token endpoint")
            self._token_endpoint = endpoint.rstrip("/")
        return self._token_endpoint

    async def _refresh_token(self) -> None:
        token_url = f"{await self._discover_token_endpoint()}/oauth/token"
        if self._username:
            form = {"grant_type": "password", "username": self._username, "password": self._password or ""}
        else:
            form = {"grant_type": "client_credentials"}

        logger.info(
            "cf.token.refresh",
            extra={"token_url": token_url, "grant_type": form["grant_type"], "client_id": self._client_id},
        )
        response = await self._send(
            "POST",
            token_url,
            scope="token",
            data=form,
            auth=(self._client_id, self._client_secret),
        )
        self._raise_for_status(response, url=token_url, scope="token")
        payload = self._decode(response, scope="token")

        token = payload.get("access_token")
        if not isinstance(token, str) or not token:
            raise CloudFoundryClientError("UAA token response missing access_token")
        try:
            expires_in = float(payload.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0.0

        self._access_token = token
        self._token_expires_at = time.monotonic() + max(expires_in - _TOKEN_EXPIRY_MARGIN_SECONDS, 0.0)
